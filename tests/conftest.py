"""Shared fixtures: a fixed wall clock and notification builders."""

from datetime import datetime, timedelta

import pytest

from notizen.models import Classified, NotificationEvent, Priority
from notizen.utils import FixedClock

BASE_TIME = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to a weekday noon (active hours)."""
    return FixedClock(BASE_TIME)


@pytest.fixture
def make_event():
    """
    Build notification events.

    Passing a priority returns an already classified event; LOW events are
    marked for digest.
    """

    def _make(
        app_name: str = "Twitter",
        bundle_id: str = "com.twitter.ios",
        title: str | None = None,
        message: str = "",
        minutes: float = 0,
        priority: Priority | None = None,
        category: str | None = None,
        **kwargs,
    ) -> NotificationEvent:
        event = NotificationEvent(
            app_name=app_name,
            bundle_id=bundle_id,
            title=title,
            message=message,
            timestamp=BASE_TIME + timedelta(minutes=minutes),
            **kwargs,
        )
        if priority is not None:
            event = event.classified_as(
                Classified(
                    priority=priority,
                    category=category or "Other",
                    should_digest=priority == Priority.LOW,
                )
            )
        return event

    return _make
