"""
Battery drain estimation from recent snapshots.

Keeps a bounded ring of snapshots and derives a drain rate from consecutive
unplugged pairs in the most recent window. Falls back to the nominal
full-charge runtime while history is insufficient.
"""

from collections import deque

from notizen.config import BatteryConfig
from notizen.models.battery import BatterySnapshot, ChargingState
from notizen.utils.logger import get_logger

logger = get_logger(__name__)


class DrainEstimator:
    """Estimates seconds of battery remaining."""

    def __init__(self, config: BatteryConfig | None = None):
        """
        Initialize estimator.

        Args:
            config: Ring capacity, estimation window and default runtime
        """
        self.config = config or BatteryConfig()
        self._history: deque[BatterySnapshot] = deque(maxlen=self.config.history_capacity)

    @property
    def snapshots(self) -> tuple[BatterySnapshot, ...]:
        return tuple(self._history)

    @property
    def default_drain_per_second(self) -> float:
        return 1.0 / (self.config.default_full_charge_hours * 3600)

    def add_snapshot(self, snapshot: BatterySnapshot) -> bool:
        """
        Append a snapshot, evicting the oldest beyond capacity.

        Snapshots older than the newest recorded one are rejected.

        Returns:
            True if the snapshot was recorded
        """
        if self._history and snapshot.timestamp < self._history[-1].timestamp:
            logger.bind(
                snapshot_time=snapshot.timestamp.isoformat(),
                latest_time=self._history[-1].timestamp.isoformat(),
            ).warning("Rejected out-of-order battery snapshot")
            return False

        self._history.append(snapshot)
        return True

    def load(self, snapshots: list[BatterySnapshot]) -> None:
        """Replace history with persisted snapshots (sorted, capacity-trimmed)."""
        self._history.clear()
        for snapshot in sorted(snapshots, key=lambda s: s.timestamp):
            self._history.append(snapshot)

    def clear(self) -> None:
        self._history.clear()

    def drain_rate(self) -> float:
        """
        Drain per second over the most recent estimation window.

        Only pairs where both samples are unplugged, time advanced and the
        level did not rise contribute. Returns the default rate when the
        window yields no usable drain.
        """
        if len(self._history) < 2:
            return self.default_drain_per_second

        recent = list(self._history)[-self.config.estimation_window :]
        total_drain = 0.0
        total_seconds = 0.0

        for previous, current in zip(recent, recent[1:]):
            if previous.charging_state != ChargingState.UNPLUGGED:
                continue
            if current.charging_state != ChargingState.UNPLUGGED:
                continue
            elapsed = (current.timestamp - previous.timestamp).total_seconds()
            drop = previous.level - current.level
            if elapsed > 0 and drop >= 0:
                total_drain += drop
                total_seconds += elapsed

        if total_seconds <= 0 or total_drain <= 0:
            return self.default_drain_per_second

        return total_drain / total_seconds

    def estimate_seconds_remaining(
        self, current_level: float, charging_state: ChargingState
    ) -> float | None:
        """
        Estimate seconds until empty.

        Args:
            current_level: Battery level in [0, 1]
            charging_state: Current charging state

        Returns:
            0 when empty, None while charging or full, otherwise a non-negative estimate
        """
        if current_level <= 0:
            return 0.0
        if charging_state.is_gaining_power:
            return None
        return max(current_level / self.drain_rate(), 0.0)

    def estimate_hours_remaining(
        self, current_level: float, charging_state: ChargingState
    ) -> float | None:
        seconds = self.estimate_seconds_remaining(current_level, charging_state)
        return None if seconds is None else seconds / 3600
