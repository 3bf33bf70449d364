"""
Clock utilities.

- Clock / SystemClock / FixedClock: injectable wall clock
- LamportClock / LogicalStamp: logical ordering for last-writer-wins merges
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta


class Clock(ABC):
    """Wall clock interface. Components never call datetime.now() directly."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Local wall clock."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """Manually driven clock for tests and replays."""

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, delta: timedelta | None = None, **kwargs) -> datetime:
        """Move the clock forward by a timedelta or timedelta kwargs."""
        self._now = self._now + (delta or timedelta(**kwargs))
        return self._now


@dataclass(frozen=True, order=True)
class LogicalStamp:
    """
    Ordering key for a synced field.

    Compared as (counter, origin): concurrent writes with the same counter
    resolve by device id, identically on both devices.
    """

    counter: int = 0
    origin: str = ""

    def to_dict(self) -> dict:
        return {"counter": self.counter, "origin": self.origin}

    @classmethod
    def from_dict(cls, data: dict) -> "LogicalStamp":
        return cls(counter=int(data.get("counter", 0)), origin=str(data.get("origin", "")))


class LamportClock:
    """
    Lamport logical clock for one device.

    tick() before every local write, observe() on every inbound stamp.
    """

    def __init__(self, device_id: str, counter: int = 0):
        self.device_id = device_id
        self.counter = counter

    def tick(self) -> LogicalStamp:
        self.counter += 1
        return LogicalStamp(self.counter, self.device_id)

    def observe(self, counter: int) -> None:
        if counter > self.counter:
            self.counter = counter
