"""
Tests for battery drain estimation.

Tests cover:
1. Estimates from recent unplugged history
2. Charging, empty and insufficient-history cases
3. Ring buffer bounds and ordering
"""

from datetime import datetime, timedelta

import pytest

from notizen.config import BatteryConfig
from notizen.core.battery import DrainEstimator
from notizen.models import BatterySnapshot, ChargingState

START = datetime(2026, 3, 10, 8, 0)
DEFAULT_SECONDS_PER_FULL_CHARGE = 18 * 3600


def snapshot(minutes: float, level: float, state: ChargingState = ChargingState.UNPLUGGED) -> BatterySnapshot:
    return BatterySnapshot(timestamp=START + timedelta(minutes=minutes), level=level, charging_state=state)


@pytest.fixture
def estimator() -> DrainEstimator:
    return DrainEstimator(BatteryConfig())


class TestEstimate:
    """Tests for remaining-time estimates."""

    def test_linear_drain(self, estimator):
        """Test a 10% drop over one hour leaves nine hours at 90%."""
        estimator.add_snapshot(snapshot(0, 1.00))
        estimator.add_snapshot(snapshot(60, 0.90))

        seconds = estimator.estimate_seconds_remaining(0.90, ChargingState.UNPLUGGED)

        assert seconds == pytest.approx(0.90 / 0.10 * 3600)
        assert estimator.estimate_hours_remaining(0.90, ChargingState.UNPLUGGED) == pytest.approx(9.0)

    def test_charging_has_no_estimate(self, estimator):
        estimator.add_snapshot(snapshot(0, 0.50))
        estimator.add_snapshot(snapshot(60, 0.40))

        assert estimator.estimate_seconds_remaining(0.40, ChargingState.CHARGING) is None
        assert estimator.estimate_seconds_remaining(1.00, ChargingState.FULL) is None
        assert estimator.estimate_hours_remaining(0.40, ChargingState.CHARGING) is None

    def test_empty_battery(self, estimator):
        assert estimator.estimate_seconds_remaining(0.0, ChargingState.UNPLUGGED) == 0.0
        assert estimator.estimate_seconds_remaining(0.0, ChargingState.CHARGING) == 0.0

    def test_default_rate_without_history(self, estimator):
        """Test fewer than two samples fall back to the nominal full-charge runtime."""
        assert estimator.estimate_seconds_remaining(0.5, ChargingState.UNPLUGGED) == pytest.approx(
            0.5 * DEFAULT_SECONDS_PER_FULL_CHARGE
        )

        estimator.add_snapshot(snapshot(0, 0.5))

        assert estimator.estimate_seconds_remaining(0.5, ChargingState.UNPLUGGED) == pytest.approx(
            0.5 * DEFAULT_SECONDS_PER_FULL_CHARGE
        )

    def test_unknown_state_still_estimates(self, estimator):
        assert estimator.estimate_seconds_remaining(0.5, ChargingState.UNKNOWN) is not None

    def test_custom_full_charge_hours(self):
        estimator = DrainEstimator(BatteryConfig(default_full_charge_hours=10))

        assert estimator.estimate_hours_remaining(1.0, ChargingState.UNPLUGGED) == pytest.approx(10.0)


class TestDrainRate:
    """Tests for which sample pairs contribute to the rate."""

    def test_charging_pairs_skipped(self, estimator):
        """Test only pairs with both samples unplugged count."""
        estimator.add_snapshot(snapshot(0, 1.00))
        estimator.add_snapshot(snapshot(60, 0.50, ChargingState.CHARGING))
        estimator.add_snapshot(snapshot(120, 0.60))
        estimator.add_snapshot(snapshot(180, 0.50))

        assert estimator.drain_rate() == pytest.approx(0.10 / 3600)
        assert estimator.estimate_seconds_remaining(0.5, ChargingState.UNPLUGGED) == pytest.approx(18000)

    def test_rising_level_falls_back(self, estimator):
        estimator.add_snapshot(snapshot(0, 0.50))
        estimator.add_snapshot(snapshot(60, 0.60))

        assert estimator.drain_rate() == pytest.approx(estimator.default_drain_per_second)

    def test_zero_elapsed_falls_back(self, estimator):
        estimator.add_snapshot(snapshot(0, 0.60))
        estimator.add_snapshot(snapshot(0, 0.55))

        assert estimator.drain_rate() == pytest.approx(estimator.default_drain_per_second)

    def test_only_recent_window_used(self, estimator):
        """Test heavy drain outside the last twelve samples is ignored."""
        level = 1.00
        for i in range(20):
            if i > 0:
                level -= 0.05 if i < 8 else 0.01
            estimator.add_snapshot(snapshot(i * 5, level))

        assert estimator.drain_rate() == pytest.approx(0.01 / 300, rel=1e-6)


class TestHistory:
    """Tests for the bounded snapshot ring."""

    def test_capacity_bound(self):
        estimator = DrainEstimator(BatteryConfig(history_capacity=5, estimation_window=3))
        for i in range(8):
            estimator.add_snapshot(snapshot(i * 5, 1.0 - i * 0.01))

        assert len(estimator.snapshots) == 5
        assert estimator.snapshots[0].timestamp == START + timedelta(minutes=15)

    def test_out_of_order_rejected(self, estimator):
        assert estimator.add_snapshot(snapshot(10, 0.9)) is True
        assert estimator.add_snapshot(snapshot(5, 0.95)) is False
        assert len(estimator.snapshots) == 1

    def test_snapshots_are_read_only(self, estimator):
        estimator.add_snapshot(snapshot(0, 0.9))

        assert isinstance(estimator.snapshots, tuple)

    def test_load_sorts_and_trims(self):
        estimator = DrainEstimator(BatteryConfig(history_capacity=3, estimation_window=3))
        estimator.load([snapshot(20, 0.8), snapshot(0, 1.0), snapshot(10, 0.9), snapshot(30, 0.7)])

        assert [s.level for s in estimator.snapshots] == [0.9, 0.8, 0.7]

    def test_clear(self, estimator):
        estimator.add_snapshot(snapshot(0, 0.9))
        estimator.clear()

        assert estimator.snapshots == ()
