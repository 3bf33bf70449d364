"""
Data models for NotiZen.

Core models:
- NotificationEvent: Inbound notification with a classification variant
- CategoryRule: User category preference
- Digest, DigestBundle, BatchingRule: Digest batching
- BatterySnapshot, BatteryState, ChargingState: Battery telemetry
- SyncEnvelope, EnvelopeKind and payloads: Cross-device sync wire contract
- StoreProjection, DashboardItem: Read-only views
"""

from notizen.models.battery import BatterySnapshot, BatteryState, ChargingState
from notizen.models.digest import BatchingRule, Digest, DigestBundle
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
from notizen.models.notification import (
    CategoryRule,
    Classified,
    NotificationEvent,
    Priority,
    Unclassified,
)
from notizen.models.views import DashboardItem, DashboardItemType, StoreProjection

__all__ = [
    # Notification models
    "NotificationEvent",
    "Priority",
    "Classified",
    "Unclassified",
    "CategoryRule",
    # Digest models
    "Digest",
    "DigestBundle",
    "BatchingRule",
    # Battery models
    "BatterySnapshot",
    "BatteryState",
    "ChargingState",
    # Sync models
    "SyncEnvelope",
    "EnvelopeKind",
    "BatteryUpdatePayload",
    "CategorySetPayload",
    "NotificationBatchPayload",
    "DigestBatchPayload",
    "PingPayload",
    "encode_envelope",
    "decode_envelope",
    # Views
    "StoreProjection",
    "DashboardItem",
    "DashboardItemType",
]
