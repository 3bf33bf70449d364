"""Read-only projections handed to the rendering collaborator."""

from datetime import datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from notizen.models.battery import BatteryState
from notizen.models.digest import Digest


class DashboardItemType(str, Enum):
    HIGH_PRIORITY = "high_priority"
    DIGEST = "digest"


class DashboardItem(BaseModel):
    """One row of the dashboard feed."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    snippet: str
    timestamp: datetime
    type: DashboardItemType


class StoreProjection(BaseModel):
    """Snapshot of a LocalStore's derived views."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    unread_high_count: int = 0
    latest_high_message: str = "No critical alerts"
    estimated_hours_remaining: float | None = None
    battery: BatteryState | None = None
    dashboard_feed: list[DashboardItem] = Field(default_factory=list)
    digests: list[Digest] = Field(default_factory=list)
    notification_summary: str = "No new notification digests."
    digest_window_end: time | None = None
