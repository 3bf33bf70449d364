"""
Per-device replicated state.

LocalStore is the single owner of everything shown on a device:
- Scalars (battery, categories, digest window) merged last-writer-wins on a
  logical stamp (counter, origin)
- Collections (notifications, digests) merged as upserts by id
- Derived views recomputed after every local mutation or merge

Applying the same envelope twice leaves the store unchanged.
"""

from datetime import datetime, time, timedelta

from notizen.config import StoreConfig
from notizen.core.summarizer import Summarizer
from notizen.models.battery import BatteryState
from notizen.models.digest import Digest, DigestBundle
from notizen.models.envelope import CategorySetPayload, EnvelopeKind, SyncEnvelope
from notizen.models.notification import CategoryRule, NotificationEvent, Priority
from notizen.models.views import DashboardItem, DashboardItemType, StoreProjection
from notizen.utils.clock import Clock, LamportClock, LogicalStamp, SystemClock
from notizen.utils.exceptions import ValidationError
from notizen.utils.logger import get_logger

logger = get_logger(__name__)

BATTERY_FIELD = "battery"
CATEGORIES_FIELD = "categories"
DIGEST_WINDOW_FIELD = "digest_window"

APPLIED = "applied"
STALE = "stale"
IGNORED = "ignored"


class LocalStore:
    """Replicated state of one device."""

    def __init__(
        self,
        device_id: str,
        config: StoreConfig | None = None,
        summarizer: Summarizer | None = None,
        clock: Clock | None = None,
        digest_window_end: time | None = None,
    ):
        """
        Initialize store.

        Args:
            device_id: Origin used for local logical stamps
            config: Limits, retention and default categories
            summarizer: Builds view strings
            clock: Wall clock for retention
            digest_window_end: Initial digest window end (unstamped)
        """
        self.device_id = device_id
        self.config = config or StoreConfig()
        self.summarizer = summarizer or Summarizer()
        self.clock = clock or SystemClock()
        self.lamport = LamportClock(device_id)

        self._categories: list[CategoryRule] = list(self.config.default_categories)
        self._digest_window_end = digest_window_end
        self._battery: BatteryState | None = None
        self._stamps: dict[str, LogicalStamp] = {
            BATTERY_FIELD: LogicalStamp(),
            CATEGORIES_FIELD: LogicalStamp(),
            DIGEST_WINDOW_FIELD: LogicalStamp(),
        }

        # Insertion-ordered; upserts keep an id's position
        self._notifications: dict[str, NotificationEvent] = {}
        self._digests: dict[str, Digest] = {}
        self._read_ids: set[str] = set()
        # Archived id -> the notification time, pruned with retention
        self._archived_ids: dict[str, datetime] = {}
        self._notification_cutoff: datetime | None = None
        self._digest_cutoff: datetime | None = None

        self._projection = StoreProjection(device_id=device_id)
        self.recompute_views()

    # ═══════════════════════════════════════════════════════════
    # READ ACCESS
    # ═══════════════════════════════════════════════════════════

    @property
    def categories(self) -> list[CategoryRule]:
        return list(self._categories)

    @property
    def digest_window_end(self) -> time | None:
        return self._digest_window_end

    @property
    def battery(self) -> BatteryState | None:
        return self._battery

    @property
    def notifications(self) -> list[NotificationEvent]:
        return list(self._notifications.values())

    @property
    def digests(self) -> list[Digest]:
        return list(self._digests.values())

    @property
    def read_ids(self) -> frozenset[str]:
        return frozenset(self._read_ids)

    @property
    def archived_ids(self) -> frozenset[str]:
        return frozenset(self._archived_ids)

    def stamp_for(self, field: str) -> LogicalStamp:
        return self._stamps[field]

    def current_stamp(self) -> LogicalStamp:
        """Stamp for re-sending collections without a new write."""
        return LogicalStamp(self.lamport.counter, self.device_id)

    def get_notification(self, notification_id: str) -> NotificationEvent | None:
        return self._notifications.get(notification_id)

    def digest_bundles(self, limit: int | None = None) -> list[DigestBundle]:
        """Digests with the member events this store holds, newest last."""
        digests = list(self._digests.values())
        if limit is not None:
            digests = digests[-limit:]
        return [
            DigestBundle(
                digest=d,
                events=[self._notifications[i] for i in d.notification_ids if i in self._notifications],
            )
            for d in digests
        ]

    def projection(self) -> StoreProjection:
        return self._projection

    # ═══════════════════════════════════════════════════════════
    # LOCAL MUTATIONS
    # ═══════════════════════════════════════════════════════════

    def add_notifications(self, events: list[NotificationEvent]) -> LogicalStamp:
        """Record local notifications; returns the stamp to send them with."""
        stamp = self.lamport.tick()
        for event in events:
            self._upsert_notification(event)
        self.recompute_views()
        return stamp

    def add_digest_bundles(self, bundles: list[DigestBundle]) -> LogicalStamp:
        """Record finalized digests and their stamped members."""
        stamp = self.lamport.tick()
        for bundle in bundles:
            self._upsert_bundle(bundle)
        self.recompute_views()
        return stamp

    def update_categories(self, rules: list[CategoryRule]) -> LogicalStamp:
        """
        Replace the category preferences.

        Raises:
            ValidationError: If two rules share a name
        """
        names = [r.name for r in rules]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate category names: {', '.join(duplicates)}",
                context={"duplicates": duplicates},
            )

        stamp = self.lamport.tick()
        self._categories = list(rules)
        self._stamps[CATEGORIES_FIELD] = stamp
        self.recompute_views()
        return stamp

    def set_digest_window_end(self, value: time) -> LogicalStamp:
        stamp = self.lamport.tick()
        self._digest_window_end = value
        self._stamps[DIGEST_WINDOW_FIELD] = stamp
        self.recompute_views()
        return stamp

    def update_battery(self, state: BatteryState) -> LogicalStamp:
        stamp = self.lamport.tick()
        self._battery = state
        self._stamps[BATTERY_FIELD] = stamp
        self.recompute_views()
        return stamp

    def mark_read(self, notification_ids: list[str]) -> int:
        """Mark notifications read on this device. Returns how many were newly read."""
        known = {i for i in notification_ids if i in self._notifications} - self._read_ids
        self._read_ids |= known
        if known:
            self.recompute_views()
        return len(known)

    def archive(self, notification_ids: list[str]) -> int:
        """Remove notifications from this device; later copies are not re-added."""
        removed = 0
        for notification_id in notification_ids:
            event = self._notifications.pop(notification_id, None)
            self._archived_ids[notification_id] = event.timestamp if event is not None else self.clock.now()
            if event is not None:
                removed += 1
            self._read_ids.discard(notification_id)
        if removed:
            self.recompute_views()
        return removed

    def evict_expired(self, now: datetime | None = None) -> int:
        """Drop notifications and digests older than their retention."""
        now = now or self.clock.now()
        self._notification_cutoff = now - timedelta(hours=self.config.notification_retention_hours)
        self._digest_cutoff = now - timedelta(hours=self.config.digest_retention_hours)

        expired_notifications = [
            i for i, e in self._notifications.items() if e.timestamp < self._notification_cutoff
        ]
        expired_digests = [i for i, d in self._digests.items() if d.created_at < self._digest_cutoff]
        for notification_id in expired_notifications:
            del self._notifications[notification_id]
            self._read_ids.discard(notification_id)
        for digest_id in expired_digests:
            del self._digests[digest_id]
        self._archived_ids = {
            i: ts for i, ts in self._archived_ids.items() if ts >= self._notification_cutoff
        }

        evicted = len(expired_notifications) + len(expired_digests)
        if evicted:
            logger.bind(
                notifications=len(expired_notifications), digests=len(expired_digests)
            ).info(f"Evicted {evicted} expired items")
            self.recompute_views()
        return evicted

    # ═══════════════════════════════════════════════════════════
    # RESTORE
    # ═══════════════════════════════════════════════════════════

    def load_categories(self, rules: list[CategoryRule], stamp: LogicalStamp) -> None:
        self._categories = list(rules)
        self._stamps[CATEGORIES_FIELD] = stamp
        self.lamport.observe(stamp.counter)

    def load_digest_window(self, value: time | None, stamp: LogicalStamp) -> None:
        self._digest_window_end = value
        self._stamps[DIGEST_WINDOW_FIELD] = stamp
        self.lamport.observe(stamp.counter)

    def load_sync_state(
        self, counter: int, battery: BatteryState | None, battery_stamp: LogicalStamp
    ) -> None:
        """Restore the logical clock high-water mark and the stamped battery state."""
        self.lamport.observe(max(counter, battery_stamp.counter))
        if battery is not None and battery_stamp > self._stamps[BATTERY_FIELD]:
            self._battery = battery
            self._stamps[BATTERY_FIELD] = battery_stamp

    def load_history(self, events: list[NotificationEvent], digests: list[Digest]) -> None:
        for event in events:
            self._upsert_notification(event)
        for digest in digests:
            self._upsert_digest(digest)
        self.recompute_views()

    # ═══════════════════════════════════════════════════════════
    # MERGE
    # ═══════════════════════════════════════════════════════════

    def apply_envelope(self, envelope: SyncEnvelope, recompute: bool = True) -> str:
        """
        Merge one decoded envelope.

        Args:
            envelope: Envelope from the peer
            recompute: Recompute views afterwards (batch callers defer this)

        Returns:
            "applied", "stale" (older than current state) or "ignored" (unknown kind)

        Raises:
            EnvelopeDecodeError: If a known payload does not validate
        """
        kind = envelope.known_kind
        if kind is None:
            logger.debug(f"Ignoring envelope {envelope.id} of unknown kind {envelope.kind}")
            return IGNORED

        payload = envelope.parsed_payload()
        self.lamport.observe(envelope.logical_timestamp)
        stamp = envelope.stamp

        if kind == EnvelopeKind.BATTERY_UPDATE:
            result = self._apply_scalar(BATTERY_FIELD, stamp, lambda: self._set_battery(payload.battery))
        elif kind == EnvelopeKind.CATEGORY_SET:
            result = self._apply_category_set(payload, stamp)
        elif kind == EnvelopeKind.NOTIFICATION_BATCH:
            for event in payload.events:
                self._upsert_notification(event)
            result = APPLIED
        elif kind == EnvelopeKind.DIGEST_BATCH:
            for bundle in payload.bundles:
                self._upsert_bundle(bundle)
            result = APPLIED
        else:
            result = APPLIED

        if recompute and result == APPLIED:
            self.recompute_views()
        return result

    def _apply_category_set(self, payload: CategorySetPayload, stamp: LogicalStamp) -> str:
        results = []
        if payload.rules is not None:
            rules = list(payload.rules)
            results.append(self._apply_scalar(CATEGORIES_FIELD, stamp, lambda: self._set_categories(rules)))
        if payload.digest_window_end is not None:
            window_end = payload.digest_window_end
            results.append(
                self._apply_scalar(DIGEST_WINDOW_FIELD, stamp, lambda: self._set_window(window_end))
            )
        return APPLIED if APPLIED in results else STALE

    def _apply_scalar(self, field: str, stamp: LogicalStamp, write) -> str:
        current = self._stamps[field]
        if stamp <= current:
            logger.bind(incoming=stamp.to_dict(), current=current.to_dict()).debug(
                f"Discarding stale {field} write"
            )
            return STALE
        write()
        self._stamps[field] = stamp
        return APPLIED

    def _set_battery(self, state: BatteryState) -> None:
        self._battery = state

    def _set_categories(self, rules: list[CategoryRule]) -> None:
        self._categories = rules

    def _set_window(self, value: time) -> None:
        self._digest_window_end = value

    def _upsert_notification(self, event: NotificationEvent) -> None:
        if event.id in self._archived_ids:
            return
        if self._notification_cutoff is not None and event.timestamp < self._notification_cutoff:
            return

        existing = self._notifications.get(event.id)
        if existing is not None:
            update = {}
            if existing.digest_group_id is not None:
                update["digest_group_id"] = existing.digest_group_id
            if existing.is_classified and not event.is_classified:
                update["classification"] = existing.classification
            if update:
                event = event.model_copy(update=update)

        self._notifications[event.id] = event
        while len(self._notifications) > self.config.max_notifications:
            oldest = next(iter(self._notifications))
            del self._notifications[oldest]
            self._read_ids.discard(oldest)

    def _upsert_digest(self, digest: Digest) -> None:
        if self._digest_cutoff is not None and digest.created_at < self._digest_cutoff:
            return
        self._digests[digest.id] = digest
        while len(self._digests) > self.config.max_digests:
            del self._digests[next(iter(self._digests))]

    def _upsert_bundle(self, bundle: DigestBundle) -> None:
        self._upsert_digest(bundle.digest)
        for event in bundle.events:
            self._upsert_notification(event)

    # ═══════════════════════════════════════════════════════════
    # VIEWS
    # ═══════════════════════════════════════════════════════════

    def recompute_views(self) -> StoreProjection:
        """Rebuild every derived view from the current state."""
        high_events = sorted(
            (e for e in self._notifications.values() if e.priority == Priority.HIGH),
            key=lambda e: e.timestamp,
            reverse=True,
        )
        unread_high = sum(1 for e in high_events if e.id not in self._read_ids)
        high_feed = high_events[: self.config.high_feed_limit]
        digests = sorted(self._digests.values(), key=lambda d: d.created_at, reverse=True)

        items = [
            DashboardItem(
                id=e.id,
                title=e.title or e.app_name,
                snippet=e.message,
                timestamp=e.timestamp,
                type=DashboardItemType.HIGH_PRIORITY,
            )
            for e in high_feed
        ]
        items.extend(
            DashboardItem(
                id=d.id,
                title=d.title,
                snippet=(d.summary or "").split("\n", 1)[0],
                timestamp=d.created_at,
                type=DashboardItemType.DIGEST,
            )
            for d in digests
        )
        items.sort(key=lambda item: item.timestamp, reverse=True)

        self._projection = StoreProjection(
            device_id=self.device_id,
            unread_high_count=unread_high,
            latest_high_message=(
                self.summarizer.summarize_notification(high_feed[0]) if high_feed else "No critical alerts"
            ),
            estimated_hours_remaining=self._battery.hours_remaining if self._battery else None,
            battery=self._battery,
            dashboard_feed=items[: self.config.dashboard_limit],
            digests=digests,
            notification_summary=self.summarizer.overall_summary(digests),
            digest_window_end=self._digest_window_end,
        )
        return self._projection
