"""
Tests for notification and digest summaries.
"""

import pytest

from notizen.core.summarizer import Summarizer
from notizen.models import Digest


@pytest.fixture
def summarizer() -> Summarizer:
    return Summarizer()


class TestNotificationSummary:
    """Tests for single-notification summaries."""

    def test_title_and_message(self, summarizer, make_event):
        event = make_event(title="Alice", message="Lunch?")

        assert summarizer.summarize_notification(event) == "Alice: Lunch?"

    def test_long_message_truncated(self, summarizer, make_event):
        event = make_event(title="Alice", message="x" * 80)

        assert summarizer.summarize_notification(event) == "Alice: " + "x" * 50 + "..."

    def test_app_name_without_title(self, summarizer, make_event):
        event = make_event(message="New follower")

        assert summarizer.summarize_notification(event) == "Twitter: New follower"

    def test_empty_notification(self, summarizer, make_event):
        assert summarizer.summarize_notification(make_event()) == "Notification from Twitter"


class TestDigestSummary:
    """Tests for digest summaries."""

    def test_empty(self, summarizer):
        assert summarizer.summarize_digest([]) == ("Empty Digest", "This digest contains no notifications.")

    def test_single(self, summarizer, make_event):
        headline, details = summarizer.summarize_digest([make_event(message="New follower")])

        assert headline == "1 notification from Twitter"
        assert details == "New follower"

    def test_same_app(self, summarizer, make_event):
        events = [make_event(title=f"Post {i}", message="liked") for i in range(3)]

        headline, details = summarizer.summarize_digest(events)

        assert headline == "3 notifications from Twitter"
        assert details.splitlines() == ["Includes:", "• Post 0: liked", "• Post 1: liked", "• Post 2: liked"]

    def test_mixed_apps(self, summarizer, make_event):
        events = [make_event(), make_event(app_name="Instagram", bundle_id="com.instagram")]

        headline, _ = summarizer.summarize_digest(events)

        assert headline == "2 notifications from multiple apps"

    def test_details_capped(self, summarizer, make_event):
        events = [make_event(title=f"Post {i}") for i in range(7)]

        _, details = summarizer.summarize_digest(events)
        lines = details.splitlines()

        assert len(lines) == 7
        assert lines[-1] == "...and 2 more."

    def test_group_similar(self, summarizer, make_event):
        events = [make_event(title="New like", message="liked") for _ in range(3)]
        events.append(make_event(title="New follower", message="followed"))

        _, details = summarizer.summarize_digest(events, group_similar=True)

        assert details.splitlines() == ["Includes:", "• New like: liked (x3)", "• New follower: followed"]

    def test_digest_summary_text(self, summarizer, make_event):
        text = summarizer.digest_summary([make_event(title="A"), make_event(title="B")])

        assert text.splitlines()[0] == "2 notifications from Twitter"


class TestOverallSummary:
    """Tests for summaries across digests."""

    def test_no_digests(self, summarizer):
        assert summarizer.overall_summary([]) == "No new notification digests."

    def test_empty_digests(self, summarizer):
        assert summarizer.overall_summary([Digest(title="Empty")]) == "No new notifications in digests."

    def test_single_app(self, summarizer):
        digests = [
            Digest(title="Twitter Updates", app_name="Twitter", notification_ids=["a", "b"]),
            Digest(title="Twitter Updates", app_name="Twitter", notification_ids=["c"]),
        ]

        assert summarizer.overall_summary(digests) == "3 new notifications from Twitter."

    def test_top_two_apps(self, summarizer):
        digests = [
            Digest(title="Twitter Updates", app_name="Twitter", notification_ids=["a", "b", "c"]),
            Digest(title="Reuters Updates", app_name="Reuters", notification_ids=["d", "e"]),
            Digest(title="Weather Updates", app_name="Weather", notification_ids=["f"]),
        ]

        assert (
            summarizer.overall_summary(digests)
            == "6 new notifications: 3 from Twitter, 2 from Reuters, and more."
        )

    def test_two_apps_no_more(self, summarizer):
        digests = [
            Digest(title="Twitter Updates", app_name="Twitter", notification_ids=["a"]),
            Digest(title="Reuters Updates", app_name="Reuters", notification_ids=["b"]),
        ]

        assert summarizer.overall_summary(digests) == "2 new notifications: 1 from Twitter, 1 from Reuters."
