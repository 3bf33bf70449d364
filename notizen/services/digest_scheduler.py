"""
Digest timers.

Two asyncio tasks drive digest finalization:
- A repeating interval timer
- A one-shot timer at the next wall-clock digest window end, re-armed for
  the following day after it fires

Timers never touch device state; they only call on_fire(reason).
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, time, timedelta

from notizen.utils.clock import Clock, SystemClock
from notizen.utils.logger import get_logger

logger = get_logger(__name__)

INTERVAL = "interval"
WINDOW_END = "window_end"


def next_occurrence(now: datetime, at: time) -> datetime:
    """Next datetime strictly after now whose wall-clock time is `at`."""
    target = datetime.combine(now.date(), at, tzinfo=now.tzinfo)
    if target <= now:
        target += timedelta(days=1)
    return target


class DigestScheduler:
    """Cancellable, re-schedulable digest timers."""

    def __init__(
        self,
        on_fire: Callable[[str], None],
        interval_seconds: float,
        clock: Clock | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            on_fire: Called with INTERVAL or WINDOW_END when a timer fires
            interval_seconds: Period of the repeating timer
            clock: Wall clock used to place the window end timer
        """
        self.on_fire = on_fire
        self.interval_seconds = interval_seconds
        self.clock = clock or SystemClock()
        self.window_end: time | None = None
        self.next_window_fire: datetime | None = None
        self._interval_task: asyncio.Task | None = None
        self._window_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._interval_task is not None and not self._interval_task.done()

    def start(self, window_end: time | None = None) -> None:
        """Start the interval timer and, if given, the window end timer."""
        if not self.running:
            self._interval_task = asyncio.create_task(self._interval_worker())
        if window_end is not None:
            self.schedule_window_end(window_end)

    def schedule_window_end(self, window_end: time) -> None:
        """Replace any pending window end timer."""
        self._cancel_window()
        self.window_end = window_end
        self._window_task = asyncio.create_task(self._window_worker(window_end))

    async def stop(self) -> None:
        """Cancel both timers and wait for them to finish."""
        tasks = [t for t in (self._interval_task, self._window_task) if t is not None]
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._interval_task = None
        self._window_task = None
        self.next_window_fire = None

    def _cancel_window(self) -> None:
        if self._window_task and not self._window_task.done():
            self._window_task.cancel()
        self._window_task = None

    def _fire(self, reason: str) -> None:
        logger.debug(f"Digest timer fired: {reason}")
        self.on_fire(reason)

    async def _interval_worker(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                self._fire(INTERVAL)
            except asyncio.CancelledError:
                logger.debug("Digest interval timer stopped")
                break
            except Exception as e:
                logger.error(f"Error in digest interval timer: {e}")

    async def _window_worker(self, window_end: time) -> None:
        target = next_occurrence(self.clock.now(), window_end)
        while True:
            self.next_window_fire = target
            try:
                delay = max((target - self.clock.now()).total_seconds(), 0.0)
                await asyncio.sleep(delay)
                self._fire(WINDOW_END)
            except asyncio.CancelledError:
                logger.debug(f"Digest window timer for {window_end.isoformat()} cancelled")
                break
            except Exception as e:
                logger.error(f"Error in digest window timer: {e}")
            target += timedelta(days=1)
