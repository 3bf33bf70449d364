"""
Cross-device sync coordinator.

Connection lifecycle:
    inactive -> activating -> active_unreachable <-> active_reachable

Outbound envelopes go over the immediate channel while the peer is reachable
and into the shared context (last value per key) otherwise. Inbound envelopes
are decoded one by one and merged into the LocalStore.

The coordinator owns no replicated data; it reads the store to build
envelopes and writes merged results back to it.
"""

from enum import Enum
from typing import Any

from notizen.config import SyncConfig
from notizen.core.transport.base import Transport
from notizen.models.digest import DigestBundle
from notizen.models.envelope import (
    BatteryUpdatePayload,
    CategorySetPayload,
    DigestBatchPayload,
    EnvelopeKind,
    NotificationBatchPayload,
    PingPayload,
    SyncEnvelope,
    decode_envelope,
    encode_envelope,
)
from notizen.models.notification import NotificationEvent
from notizen.services.local_store import (
    BATTERY_FIELD,
    CATEGORIES_FIELD,
    DIGEST_WINDOW_FIELD,
    LocalStore,
)
from notizen.utils.clock import Clock, LogicalStamp
from notizen.utils.exceptions import DeliveryError, EnvelopeDecodeError, HandshakeError
from notizen.utils.logger import get_logger

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Peer session state."""

    INACTIVE = "inactive"
    ACTIVATING = "activating"
    ACTIVE_UNREACHABLE = "active_unreachable"
    ACTIVE_REACHABLE = "active_reachable"


def shared_context_key(envelope: SyncEnvelope) -> str | None:
    """Shared-context slot for an envelope; None for kinds never stored there."""
    kind = envelope.known_kind
    if kind == EnvelopeKind.BATTERY_UPDATE:
        return "battery"
    if kind == EnvelopeKind.CATEGORY_SET:
        return "categories" if envelope.payload.get("rules") is not None else "digest_window"
    if kind == EnvelopeKind.NOTIFICATION_BATCH:
        return "notifications"
    if kind == EnvelopeKind.DIGEST_BATCH:
        return "digests"
    return None


class SyncCoordinator:
    """
    Moves envelopes between a LocalStore and a Transport.

    Reachability transitions are re-entrant safe: at most one full sync runs
    at a time.
    """

    def __init__(
        self,
        store: LocalStore,
        transport: Transport,
        config: SyncConfig | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize coordinator.

        Args:
            store: Device state to read from and merge into
            transport: Peer transport
            config: Sync configuration
            clock: Wall clock for ping timestamps (defaults to the store's)
        """
        self.store = store
        self.transport = transport
        self.config = config or SyncConfig(device_id=store.device_id)
        self.clock = clock or store.clock

        self.state = ConnectionState.INACTIVE
        self.full_sync_count = 0
        self._full_sync_running = False
        self._seen_context_ids: dict[str, str] = {}

    @property
    def is_reachable(self) -> bool:
        return self.state == ConnectionState.ACTIVE_REACHABLE

    # ═══════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def start(self) -> ConnectionState:
        """Activate the peer session. A failed handshake stays in activating."""
        if self.state != ConnectionState.INACTIVE:
            return self.state

        self._set_state(ConnectionState.ACTIVATING)
        await self._activate()
        return self.state

    async def handle_reachability(self, reachable: bool) -> ConnectionState:
        """
        React to a platform reachability signal.

        While activating, the signal triggers one handshake retry.
        """
        if self.state == ConnectionState.INACTIVE:
            return self.state
        if self.state == ConnectionState.ACTIVATING:
            await self._activate()
            return self.state

        await self._enter_active(reachable)
        return self.state

    async def _activate(self) -> None:
        try:
            reachable = await self.transport.activate()
        except HandshakeError as e:
            logger.bind(device_id=self.store.device_id, **e.context).warning(
                f"Session activation failed: {e.message}"
            )
            return

        await self._enter_active(reachable)

    async def _enter_active(self, reachable: bool) -> None:
        previous = self.state
        self._set_state(
            ConnectionState.ACTIVE_REACHABLE if reachable else ConnectionState.ACTIVE_UNREACHABLE
        )
        if reachable and previous != ConnectionState.ACTIVE_REACHABLE:
            await self.run_full_sync()

    def _set_state(self, state: ConnectionState) -> None:
        if state != self.state:
            logger.bind(device_id=self.store.device_id).info(
                f"Sync state {self.state.value} -> {state.value}"
            )
            self.state = state

    # ═══════════════════════════════════════════════════════════
    # OUTBOUND
    # ═══════════════════════════════════════════════════════════

    async def run_full_sync(self) -> bool:
        """
        Push battery, preferences and digests to the peer.

        Returns:
            False if a full sync was already in progress
        """
        if self._full_sync_running:
            logger.debug("Full sync already in progress, skipping")
            return False

        self._full_sync_running = True
        try:
            self.full_sync_count += 1
            envelopes = [
                self.battery_envelope(),
                self.categories_envelope(),
                self.digest_window_envelope(),
                self.digests_envelope() if self.store.digests else None,
            ]
            sent = 0
            for envelope in envelopes:
                if envelope is not None and await self.send(envelope):
                    sent += 1
            logger.bind(device_id=self.store.device_id, sent=sent).info(
                f"Full sync pushed {sent} envelopes"
            )
        finally:
            self._full_sync_running = False
        return True

    async def send(self, envelope: SyncEnvelope) -> bool:
        """
        Route one envelope.

        Reachable: immediate delivery, a failure is logged and abandoned.
        Otherwise: written to the shared context; collections are replaced by
        the full current collection so nothing is lost to coalescing.

        Returns:
            True if the envelope was delivered or stored
        """
        if self.is_reachable:
            try:
                await self.transport.send_message(encode_envelope(envelope))
                return True
            except DeliveryError as e:
                logger.bind(envelope_id=envelope.id, kind=envelope.kind).warning(
                    f"Delivery of {envelope.kind} envelope {envelope.id} failed: {e.message}"
                )
                return False

        kind = envelope.known_kind
        if kind == EnvelopeKind.NOTIFICATION_BATCH:
            envelope = self.notifications_envelope()
        elif kind == EnvelopeKind.DIGEST_BATCH:
            envelope = self.digests_envelope()

        key = shared_context_key(envelope)
        if key is None:
            return False

        await self.transport.update_shared_context(key, encode_envelope(envelope))
        logger.bind(key=key, envelope_id=envelope.id).debug(
            f"Stored {envelope.kind} envelope in shared context"
        )
        return True

    def battery_envelope(self) -> SyncEnvelope | None:
        stamp = self.store.stamp_for(BATTERY_FIELD)
        if self.store.battery is None or stamp.counter == 0:
            return None
        return SyncEnvelope.build(
            EnvelopeKind.BATTERY_UPDATE, stamp, BatteryUpdatePayload(battery=self.store.battery)
        )

    def categories_envelope(self) -> SyncEnvelope | None:
        stamp = self.store.stamp_for(CATEGORIES_FIELD)
        if stamp.counter == 0:
            return None
        return SyncEnvelope.build(
            EnvelopeKind.CATEGORY_SET, stamp, CategorySetPayload(rules=self.store.categories)
        )

    def digest_window_envelope(self) -> SyncEnvelope | None:
        stamp = self.store.stamp_for(DIGEST_WINDOW_FIELD)
        if self.store.digest_window_end is None or stamp.counter == 0:
            return None
        return SyncEnvelope.build(
            EnvelopeKind.CATEGORY_SET,
            stamp,
            CategorySetPayload(digest_window_end=self.store.digest_window_end),
        )

    def notifications_envelope(
        self, events: list[NotificationEvent] | None = None, stamp: LogicalStamp | None = None
    ) -> SyncEnvelope:
        """Envelope for the given events, or the latest stored ones."""
        if events is None:
            events = self.store.notifications[-self.config.notification_batch_limit :]
        return SyncEnvelope.build(
            EnvelopeKind.NOTIFICATION_BATCH,
            stamp or self.store.current_stamp(),
            NotificationBatchPayload(events=events),
        )

    def digests_envelope(
        self, bundles: list[DigestBundle] | None = None, stamp: LogicalStamp | None = None
    ) -> SyncEnvelope:
        """Envelope for the given bundles, or every stored digest."""
        if bundles is None:
            bundles = self.store.digest_bundles()
        return SyncEnvelope.build(
            EnvelopeKind.DIGEST_BATCH,
            stamp or self.store.current_stamp(),
            DigestBatchPayload(bundles=bundles),
        )

    async def publish_battery(self) -> bool:
        envelope = self.battery_envelope()
        return envelope is not None and await self.send(envelope)

    async def publish_categories(self) -> bool:
        envelope = self.categories_envelope()
        return envelope is not None and await self.send(envelope)

    async def publish_digest_window(self) -> bool:
        envelope = self.digest_window_envelope()
        return envelope is not None and await self.send(envelope)

    async def publish_notifications(
        self, events: list[NotificationEvent], stamp: LogicalStamp | None = None
    ) -> bool:
        if not events:
            return False
        return await self.send(self.notifications_envelope(events, stamp))

    async def publish_digests(
        self, bundles: list[DigestBundle], stamp: LogicalStamp | None = None
    ) -> bool:
        if not bundles:
            return False
        return await self.send(self.digests_envelope(bundles, stamp))

    async def ping(self) -> bool:
        envelope = SyncEnvelope.build(
            EnvelopeKind.PING, self.store.current_stamp(), PingPayload(sent_at=self.clock.now())
        )
        return await self.send(envelope)

    # ═══════════════════════════════════════════════════════════
    # INBOUND
    # ═══════════════════════════════════════════════════════════

    def receive(self, messages: list[Any]) -> dict[str, int]:
        """
        Decode and merge a batch of inbound envelopes.

        Each envelope is handled independently; a bad one never stops the
        rest of the batch. Views are recomputed once at the end.

        Returns:
            Dict with counts: {"applied", "ignored", "dropped", "stale"}
        """
        report = {"applied": 0, "ignored": 0, "dropped": 0, "stale": 0}

        for raw in messages:
            try:
                envelope = decode_envelope(raw)
                outcome = self.store.apply_envelope(envelope, recompute=False)
            except EnvelopeDecodeError as e:
                report["dropped"] += 1
                logger.bind(**e.context).warning(f"Dropped inbound envelope: {e.message}")
                continue
            report[outcome] += 1

        if report["applied"]:
            self.store.recompute_views()

        logger.bind(device_id=self.store.device_id, **report).info(
            f"Received {len(messages)} envelopes: {report['applied']} applied, "
            f"{report['stale']} stale, {report['ignored']} ignored, {report['dropped']} dropped"
        )
        return report

    async def poll_shared_context(self) -> dict[str, int]:
        """Apply the peer's shared context, skipping entries already seen."""
        context = await self.transport.fetch_shared_context()

        fresh = []
        for key in sorted(context):
            raw = context[key]
            envelope_id = raw.get("id") if isinstance(raw, dict) else None
            if envelope_id is not None:
                if self._seen_context_ids.get(key) == envelope_id:
                    continue
                self._seen_context_ids[key] = envelope_id
            fresh.append(raw)

        if not fresh:
            return {"applied": 0, "ignored": 0, "dropped": 0, "stale": 0}
        return self.receive(fresh)
