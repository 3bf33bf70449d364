"""Battery drain estimation."""

from notizen.core.battery.drain_estimator import DrainEstimator

__all__ = ["DrainEstimator"]
