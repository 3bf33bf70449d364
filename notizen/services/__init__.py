"""
Services for NotiZen.

- LocalStore: Per-device replicated state and derived views
- SyncCoordinator: Envelope routing between a store and a transport
- DigestScheduler: Interval and window end digest timers
- StatePersistence: Self-describing records in a BlobStore
- DeviceContext: One device's composed pipeline
"""

from notizen.services.device_context import DeviceContext
from notizen.services.digest_scheduler import DigestScheduler
from notizen.services.local_store import LocalStore
from notizen.services.state_persistence import StatePersistence
from notizen.services.sync_coordinator import ConnectionState, SyncCoordinator

__all__ = [
    # Composition
    "DeviceContext",
    # State
    "LocalStore",
    "StatePersistence",
    # Sync
    "SyncCoordinator",
    "ConnectionState",
    # Timers
    "DigestScheduler",
]
