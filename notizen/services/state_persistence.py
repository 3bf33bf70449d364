"""
Durable device state on top of a BlobStore.

Every key holds a self-describing JSON record:
    {"schema": <key>, "version": 1, "data": ...}

Keys load independently: a missing, corrupt or foreign record degrades that
key to its default and never blocks the others. Storage failures are logged
and the in-memory state stays authoritative.
"""

import json
from datetime import time
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from notizen.core.battery import DrainEstimator
from notizen.core.storage.base import BlobStore
from notizen.models.battery import BatterySnapshot, BatteryState
from notizen.models.digest import Digest
from notizen.models.notification import CategoryRule, NotificationEvent
from notizen.services.local_store import (
    BATTERY_FIELD,
    CATEGORIES_FIELD,
    DIGEST_WINDOW_FIELD,
    LocalStore,
)
from notizen.utils.clock import LogicalStamp
from notizen.utils.exceptions import StorageError
from notizen.utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

CATEGORY_PREFERENCES = "category_preferences"
DIGEST_WINDOW = "digest_window"
BATTERY_HISTORY = "battery_history"
NOTIFICATION_HISTORY = "notification_history"
DIGEST_HISTORY = "digest_history"
SYNC_STATE = "sync_state"

PERSISTED_KEYS = (
    CATEGORY_PREFERENCES,
    DIGEST_WINDOW,
    BATTERY_HISTORY,
    NOTIFICATION_HISTORY,
    DIGEST_HISTORY,
    SYNC_STATE,
)


class StampRecord(BaseModel):
    counter: int = Field(default=0, ge=0)
    origin: str = ""

    def to_stamp(self) -> LogicalStamp:
        return LogicalStamp(self.counter, self.origin)


class CategoryPreferencesRecord(BaseModel):
    rules: list[CategoryRule]
    stamp: StampRecord = Field(default_factory=StampRecord)


class DigestWindowRecord(BaseModel):
    end: time | None = None
    stamp: StampRecord = Field(default_factory=StampRecord)


class SyncStateRecord(BaseModel):
    """Logical clock high-water mark and the last battery write."""

    lamport: int = Field(default=0, ge=0)
    battery: BatteryState | None = None
    battery_stamp: StampRecord = Field(default_factory=StampRecord)


_snapshots_adapter = TypeAdapter(list[BatterySnapshot])
_events_adapter = TypeAdapter(list[NotificationEvent])
_digests_adapter = TypeAdapter(list[Digest])


class StatePersistence:
    """Saves and restores device state through a BlobStore."""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    # ═══════════════════════════════════════════════════════════
    # RECORDS
    # ═══════════════════════════════════════════════════════════

    async def write_record(self, key: str, data: Any) -> bool:
        """
        Write one record.

        Returns:
            False if the backend failed (logged)
        """
        record = {"schema": key, "version": SCHEMA_VERSION, "data": data}
        try:
            await self.blob_store.set(key, json.dumps(record).encode("utf-8"))
        except StorageError as e:
            logger.bind(**{**e.context, "key": key}).error(
                f"Failed to persist {key}: {e.message}"
            )
            return False
        return True

    async def read_record(self, key: str) -> Any | None:
        """
        Read one record's data.

        Returns:
            The record data, or None when missing, unreadable or foreign
        """
        try:
            raw = await self.blob_store.get(key)
        except StorageError as e:
            logger.bind(**{**e.context, "key": key}).error(
                f"Failed to read {key}: {e.message}"
            )
            return None

        if raw is None:
            return None

        try:
            record = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            logger.bind(key=key).warning(f"Corrupt record for {key}, using defaults: {e}")
            return None

        if not isinstance(record, dict) or record.get("schema") != key:
            logger.bind(key=key).warning(
                f"Record for {key} has an unexpected schema, using defaults"
            )
            return None
        if record.get("version") != SCHEMA_VERSION:
            logger.bind(key=key).warning(
                f"Unsupported {key} record version {record.get('version')}, using defaults"
            )
            return None
        return record.get("data")

    async def _read_validated(self, key: str, validate) -> Any | None:
        data = await self.read_record(key)
        if data is None:
            return None
        try:
            return validate(data)
        except PydanticValidationError as e:
            logger.bind(key=key).warning(f"Invalid {key} record, using defaults: {e}")
            return None

    # ═══════════════════════════════════════════════════════════
    # TYPED ACCESS
    # ═══════════════════════════════════════════════════════════

    async def save_categories(self, rules: list[CategoryRule], stamp: LogicalStamp) -> bool:
        record = CategoryPreferencesRecord(rules=rules, stamp=StampRecord(**stamp.to_dict()))
        return await self.write_record(CATEGORY_PREFERENCES, record.model_dump(mode="json"))

    async def load_categories(self) -> CategoryPreferencesRecord | None:
        return await self._read_validated(CATEGORY_PREFERENCES, CategoryPreferencesRecord.model_validate)

    async def save_digest_window(self, end: time | None, stamp: LogicalStamp) -> bool:
        record = DigestWindowRecord(end=end, stamp=StampRecord(**stamp.to_dict()))
        return await self.write_record(DIGEST_WINDOW, record.model_dump(mode="json"))

    async def load_digest_window(self) -> DigestWindowRecord | None:
        return await self._read_validated(DIGEST_WINDOW, DigestWindowRecord.model_validate)

    async def save_sync_state(
        self, lamport: int, battery: BatteryState | None, battery_stamp: LogicalStamp
    ) -> bool:
        record = SyncStateRecord(
            lamport=lamport, battery=battery, battery_stamp=StampRecord(**battery_stamp.to_dict())
        )
        return await self.write_record(SYNC_STATE, record.model_dump(mode="json"))

    async def load_sync_state(self) -> SyncStateRecord | None:
        return await self._read_validated(SYNC_STATE, SyncStateRecord.model_validate)

    async def save_battery_history(self, snapshots: list[BatterySnapshot]) -> bool:
        return await self.write_record(BATTERY_HISTORY, _snapshots_adapter.dump_python(snapshots, mode="json"))

    async def load_battery_history(self) -> list[BatterySnapshot]:
        return await self._read_validated(BATTERY_HISTORY, _snapshots_adapter.validate_python) or []

    async def save_notification_history(self, events: list[NotificationEvent]) -> bool:
        return await self.write_record(NOTIFICATION_HISTORY, _events_adapter.dump_python(events, mode="json"))

    async def load_notification_history(self) -> list[NotificationEvent]:
        return await self._read_validated(NOTIFICATION_HISTORY, _events_adapter.validate_python) or []

    async def save_digest_history(self, digests: list[Digest]) -> bool:
        return await self.write_record(DIGEST_HISTORY, _digests_adapter.dump_python(digests, mode="json"))

    async def load_digest_history(self) -> list[Digest]:
        return await self._read_validated(DIGEST_HISTORY, _digests_adapter.validate_python) or []

    # ═══════════════════════════════════════════════════════════
    # WHOLE DEVICE
    # ═══════════════════════════════════════════════════════════

    async def save_all(self, store: LocalStore, estimator: DrainEstimator) -> dict[str, bool]:
        """Persist every key. Returns per-key success."""
        results = {
            CATEGORY_PREFERENCES: await self.save_categories(
                store.categories, store.stamp_for(CATEGORIES_FIELD)
            ),
            DIGEST_WINDOW: await self.save_digest_window(
                store.digest_window_end, store.stamp_for(DIGEST_WINDOW_FIELD)
            ),
            BATTERY_HISTORY: await self.save_battery_history(list(estimator.snapshots)),
            NOTIFICATION_HISTORY: await self.save_notification_history(store.notifications),
            DIGEST_HISTORY: await self.save_digest_history(store.digests),
            SYNC_STATE: await self.save_sync_state(
                store.lamport.counter, store.battery, store.stamp_for(BATTERY_FIELD)
            ),
        }
        failed = [k for k, ok in results.items() if not ok]
        if failed:
            logger.warning(f"Persisted state with failures: {', '.join(failed)}")
        return results

    async def restore_all(self, store: LocalStore, estimator: DrainEstimator) -> list[str]:
        """
        Restore every key that loads cleanly.

        Returns:
            Keys that were restored
        """
        restored = []

        categories = await self.load_categories()
        if categories is not None:
            store.load_categories(categories.rules, categories.stamp.to_stamp())
            restored.append(CATEGORY_PREFERENCES)

        sync_state = await self.load_sync_state()
        if sync_state is not None:
            store.load_sync_state(
                sync_state.lamport, sync_state.battery, sync_state.battery_stamp.to_stamp()
            )
            restored.append(SYNC_STATE)

        window = await self.load_digest_window()
        if window is not None:
            store.load_digest_window(window.end, window.stamp.to_stamp())
            restored.append(DIGEST_WINDOW)

        snapshots = await self.load_battery_history()
        if snapshots:
            estimator.load(snapshots)
            restored.append(BATTERY_HISTORY)

        events = await self.load_notification_history()
        digests = await self.load_digest_history()
        if events or digests:
            store.load_history(events, digests)
            if events:
                restored.append(NOTIFICATION_HISTORY)
            if digests:
                restored.append(DIGEST_HISTORY)

        store.recompute_views()
        logger.bind(keys=restored).info(f"Restored {len(restored)} persisted keys")
        return restored
