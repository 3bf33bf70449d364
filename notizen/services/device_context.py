"""
Device context - composes one device's pipeline.

Brings together:
- Classifier, drain estimator, batching engine and summarizer
- LocalStore and SyncCoordinator over a Transport
- Digest timers and persisted state

Every mutation runs on a single actor task that consumes a mailbox, so
transport callbacks and timers never touch state directly; they post
commands and the actor applies them in order.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import time
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from notizen.config import Config
from notizen.core.batching import BatchingEngine
from notizen.core.battery import DrainEstimator
from notizen.core.classifier import NotificationClassifier
from notizen.core.storage import BlobStore, BlobStoreFactory
from notizen.core.summarizer import Summarizer
from notizen.core.transport import Transport, TransportListener
from notizen.models.battery import BatterySnapshot, BatteryState
from notizen.models.digest import DigestBundle
from notizen.models.notification import CategoryRule, NotificationEvent
from notizen.models.views import StoreProjection
from notizen.services.digest_scheduler import DigestScheduler
from notizen.services.local_store import LocalStore
from notizen.services.state_persistence import StatePersistence
from notizen.services.sync_coordinator import SyncCoordinator
from notizen.utils.clock import Clock, SystemClock
from notizen.utils.exceptions import ValidationError
from notizen.utils.logger import get_logger


@dataclass
class Command:
    """One mailbox entry."""

    name: str
    handler: Callable[..., Awaitable[Any]]
    args: tuple = ()
    future: asyncio.Future | None = None


class DeviceContext:
    """
    One device: phone or watch.

    Features:
    - Classify inbound notifications and route them to the feed or digests
    - Track battery and estimate remaining runtime
    - Keep preferences, notifications and digests in sync with the peer
    - Restore and persist state across restarts
    """

    def __init__(
        self,
        config: Config,
        transport: Transport,
        blob_store: BlobStore | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize device context.

        Args:
            config: Configuration object
            transport: Link to the peer device
            blob_store: Persistent storage (defaults to the configured backend)
            clock: Wall clock shared by every component
        """
        self.config = config
        self.device_id = config.sync.device_id
        self.clock = clock or SystemClock()
        self.log = get_logger(__name__, self.device_id)
        self.transport = transport
        self.blob_store = blob_store or BlobStoreFactory.create(config.storage)

        self.summarizer = Summarizer()
        self.classifier = NotificationClassifier(config.classifier, self.clock)
        self.estimator = DrainEstimator(config.battery)
        self.batching = BatchingEngine(config.batching, self.summarizer, self.clock)

        self.store = LocalStore(
            device_id=self.device_id,
            config=config.store,
            summarizer=self.summarizer,
            clock=self.clock,
            digest_window_end=config.batching.digest_window_end,
        )
        self.coordinator = SyncCoordinator(self.store, transport, config.sync, self.clock)
        self.scheduler = DigestScheduler(
            on_fire=self._on_timer,
            interval_seconds=config.batching.digest_interval_seconds,
            clock=self.clock,
        )
        self.persistence = StatePersistence(self.blob_store)

        self._mailbox: asyncio.Queue[Command] = asyncio.Queue()
        self._actor_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._actor_task is not None and not self._actor_task.done()

    # ═══════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def start(self) -> None:
        """Restore state, start the actor, activate sync and arm timers."""
        if self.running:
            return

        self.log.info("Starting device")

        await self.blob_store.initialize()
        await self.persistence.restore_all(self.store, self.estimator)

        self._actor_task = asyncio.create_task(self._run())
        self.transport.set_listener(
            TransportListener(
                on_reachability_changed=self._on_reachability,
                on_messages=self._on_messages,
            )
        )

        await self._call("start_sync", self._start_sync)
        self.scheduler.start(self.store.digest_window_end)
        self._poll_task = asyncio.create_task(self._poll_worker())

        self.log.bind(state=self.coordinator.state.value).info("Device ready")

    async def stop(self) -> None:
        """Stop timers, digest what is pending, persist state and close storage."""
        if not self.running:
            return

        await self.scheduler.stop()
        if self._poll_task is not None:
            self._poll_task.cancel()
            await asyncio.gather(self._poll_task, return_exceptions=True)
            self._poll_task = None

        try:
            await self._call("finalize_digests", self._finalize_digests)
        except Exception as e:
            self.log.error(f"Final digest pass failed: {e}")

        self.transport.set_listener(None)
        await self.drain()

        self._actor_task.cancel()
        await asyncio.gather(self._actor_task, return_exceptions=True)
        self._actor_task = None

        await self.persistence.save_all(self.store, self.estimator)
        await self.blob_store.close()
        self.log.info("Device stopped")

    async def drain(self) -> None:
        """Wait until every queued command has been processed."""
        await self._mailbox.join()

    def projection(self) -> StoreProjection:
        return self.store.projection()

    # ═══════════════════════════════════════════════════════════
    # PUBLIC API
    # ═══════════════════════════════════════════════════════════

    async def ingest_notification(self, event: NotificationEvent) -> NotificationEvent:
        """Classify, record and route one notification."""
        return await self._call("ingest_notification", self._ingest_notification, event)

    async def ingest_raw_notification(self, raw: dict[str, Any]) -> NotificationEvent | None:
        """Validate a raw notification dict; malformed input is dropped and logged."""
        try:
            event = NotificationEvent.model_validate(raw)
        except PydanticValidationError as e:
            self.log.warning(f"Dropped malformed notification: {e}")
            return None
        return await self.ingest_notification(event)

    async def ingest_snapshot(self, snapshot: BatterySnapshot | dict[str, Any]) -> BatteryState | None:
        """Record a battery sample and publish the new estimate."""
        if isinstance(snapshot, dict):
            try:
                snapshot = BatterySnapshot.model_validate(snapshot)
            except PydanticValidationError as e:
                self.log.warning(f"Dropped malformed battery snapshot: {e}")
                return None
        return await self._call("ingest_snapshot", self._ingest_snapshot, snapshot)

    async def finalize_digests(self) -> list[DigestBundle]:
        return await self._call("finalize_digests", self._finalize_digests)

    async def update_categories(self, rules: list[CategoryRule]) -> None:
        await self._call("update_categories", self._update_categories, rules)

    async def set_digest_window(self, end: time) -> None:
        await self._call("set_digest_window", self._set_digest_window, end)

    async def mark_read(self, notification_ids: list[str]) -> int:
        return await self._call("mark_read", self._mark_read, notification_ids)

    async def archive(self, notification_ids: list[str]) -> int:
        return await self._call("archive", self._archive, notification_ids)

    async def poll_shared_context(self) -> dict[str, int]:
        return await self._call("poll_shared_context", self._poll_shared_context)

    async def persist(self) -> dict[str, bool]:
        return await self._call("persist", self._persist)

    # ═══════════════════════════════════════════════════════════
    # MAILBOX
    # ═══════════════════════════════════════════════════════════

    def _post(self, name: str, handler: Callable[..., Awaitable[Any]], *args: Any) -> None:
        if not self.running:
            self.log.warning(f"Dropped {name}: device is not running")
            return
        self._mailbox.put_nowait(Command(name=name, handler=handler, args=args))

    async def _call(self, name: str, handler: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        if not self.running:
            raise ValidationError(
                f"Device {self.device_id} is not running", context={"command": name}
            )
        future = asyncio.get_running_loop().create_future()
        self._mailbox.put_nowait(Command(name=name, handler=handler, args=args, future=future))
        return await future

    async def _run(self) -> None:
        while True:
            command = await self._mailbox.get()
            try:
                result = await command.handler(*command.args)
            except asyncio.CancelledError:
                if command.future is not None and not command.future.done():
                    command.future.cancel()
                self._mailbox.task_done()
                raise
            except Exception as e:
                if command.future is not None and not command.future.done():
                    command.future.set_exception(e)
                else:
                    self.log.bind(command=command.name).error(f"Command {command.name} failed: {e}")
            else:
                if command.future is not None and not command.future.done():
                    command.future.set_result(result)
            self._mailbox.task_done()

    def _on_reachability(self, reachable: bool) -> None:
        self._post("reachability_changed", self.coordinator.handle_reachability, reachable)

    def _on_messages(self, messages: list[dict[str, Any]]) -> None:
        self._post("envelopes_received", self._receive, messages)

    def _on_timer(self, reason: str) -> None:
        self._post(f"timer_{reason}", self._finalize_digests)

    async def _poll_worker(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.config.sync.shared_context_poll_seconds)
                self._post("poll_shared_context", self._poll_shared_context)
            except asyncio.CancelledError:
                self.log.debug("Shared context poller stopped")
                break

    # ═══════════════════════════════════════════════════════════
    # HANDLERS (actor only)
    # ═══════════════════════════════════════════════════════════

    async def _start_sync(self) -> None:
        await self.coordinator.start()

    async def _ingest_notification(self, event: NotificationEvent) -> NotificationEvent:
        if not event.is_classified:
            event = self.classifier.classify_event(event, self.store.categories)

        stamp = self.store.add_notifications([event])
        stored = self.store.get_notification(event.id)
        if stored is None:
            # Archived or past retention
            return event

        event = stored
        if event.should_digest:
            if event.digest_group_id is None:
                self.batching.add_to_batch(event)
        else:
            await self.coordinator.publish_notifications([event], stamp)
        return event

    async def _ingest_snapshot(self, snapshot: BatterySnapshot) -> BatteryState | None:
        if not self.estimator.add_snapshot(snapshot):
            return None

        state = BatteryState(
            level=snapshot.level,
            charging_state=snapshot.charging_state,
            seconds_remaining=self.estimator.estimate_seconds_remaining(
                snapshot.level, snapshot.charging_state
            ),
            updated_at=snapshot.timestamp,
        )
        self.store.update_battery(state)
        await self.coordinator.publish_battery()
        return state

    async def _finalize_digests(self) -> list[DigestBundle]:
        bundles = self.batching.finalize(self.store.categories)
        if bundles:
            stamp = self.store.add_digest_bundles(bundles)
            await self.coordinator.publish_digests(bundles, stamp)
        self.store.evict_expired()
        return bundles

    async def _update_categories(self, rules: list[CategoryRule]) -> None:
        self.store.update_categories(rules)
        await self.coordinator.publish_categories()

    async def _set_digest_window(self, end: time) -> None:
        self.store.set_digest_window_end(end)
        if self.scheduler.running:
            self.scheduler.schedule_window_end(end)
        await self.coordinator.publish_digest_window()

    async def _mark_read(self, notification_ids: list[str]) -> int:
        return self.store.mark_read(notification_ids)

    async def _archive(self, notification_ids: list[str]) -> int:
        return self.store.archive(notification_ids)

    async def _receive(self, messages: list[dict[str, Any]]) -> dict[str, int]:
        window_before = self.store.digest_window_end
        report = self.coordinator.receive(messages)
        self._follow_window(window_before)
        return report

    async def _poll_shared_context(self) -> dict[str, int]:
        window_before = self.store.digest_window_end
        report = await self.coordinator.poll_shared_context()
        self._follow_window(window_before)
        return report

    def _follow_window(self, previous: time | None) -> None:
        current = self.store.digest_window_end
        if current is not None and current != previous and self.scheduler.running:
            self.scheduler.schedule_window_end(current)

    async def _persist(self) -> dict[str, bool]:
        return await self.persistence.save_all(self.store, self.estimator)
