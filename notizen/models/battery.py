"""Battery telemetry models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChargingState(str, Enum):
    """Platform charging state."""

    UNPLUGGED = "unplugged"
    CHARGING = "charging"
    FULL = "full"
    UNKNOWN = "unknown"

    @property
    def is_gaining_power(self) -> bool:
        return self in (ChargingState.CHARGING, ChargingState.FULL)


class BatterySnapshot(BaseModel):
    """One battery sample from the telemetry collaborator."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    level: float = Field(..., ge=0.0, le=1.0)
    charging_state: ChargingState = ChargingState.UNKNOWN


class BatteryState(BaseModel):
    """Synced battery scalar shown on both devices."""

    model_config = ConfigDict(frozen=True)

    level: float = Field(..., ge=0.0, le=1.0)
    charging_state: ChargingState = ChargingState.UNKNOWN
    seconds_remaining: float | None = Field(default=None, ge=0.0)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def hours_remaining(self) -> float | None:
        if self.seconds_remaining is None:
            return None
        return self.seconds_remaining / 3600
