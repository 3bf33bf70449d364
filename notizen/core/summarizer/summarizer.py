"""
Extractive summaries for notifications and digests.
"""

from collections import Counter

from notizen.models.digest import Digest
from notizen.models.notification import NotificationEvent

SNIPPET_LENGTH = 50
SINGLE_DETAIL_LENGTH = 100
MAX_DETAIL_LINES = 5


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _plural(count: int) -> str:
    return "s" if count > 1 else ""


class Summarizer:
    """Builds short display strings; holds no state."""

    def summarize_notification(self, event: NotificationEvent) -> str:
        """
        One-line summary: title and a message snippet.

        The app name is prefixed when the event has no title.
        """
        parts = []
        if event.title:
            parts.append(event.title)
        if event.message:
            parts.append(_truncate(event.message, SNIPPET_LENGTH))

        if not parts:
            return f"Notification from {event.app_name}"
        if not event.title:
            return f"{event.app_name}: {': '.join(parts)}"
        return ": ".join(parts)

    def summarize_digest(
        self, events: list[NotificationEvent], group_similar: bool = False
    ) -> tuple[str, str | None]:
        """
        Summarize the members of one digest.

        Args:
            events: Digest members in digest order
            group_similar: Collapse events with the same title into one line

        Returns:
            (headline, details) where details lists up to five members
        """
        if not events:
            return "Empty Digest", "This digest contains no notifications."

        count = len(events)
        first_app = events[0].app_name
        if all(e.app_name == first_app for e in events):
            headline = f"{count} notification{_plural(count)} from {first_app}"
        else:
            headline = f"{count} notification{_plural(count)} from multiple apps"

        if count == 1:
            return headline, _truncate(events[0].message, SINGLE_DETAIL_LENGTH) or None

        lines = self._detail_lines(events, group_similar)
        details = ["Includes:"]
        details.extend(f"• {line}" for line in lines[:MAX_DETAIL_LINES])
        if len(lines) > MAX_DETAIL_LINES:
            details.append(f"...and {len(lines) - MAX_DETAIL_LINES} more.")
        return headline, "\n".join(details)

    def digest_summary(self, events: list[NotificationEvent], group_similar: bool = False) -> str:
        """Headline and details joined into the text stored on a Digest."""
        headline, details = self.summarize_digest(events, group_similar)
        return f"{headline}\n{details}" if details else headline

    def overall_summary(self, digests: list[Digest]) -> str:
        """Summary across digests naming the two busiest apps."""
        if not digests:
            return "No new notification digests."

        total = sum(d.size for d in digests)
        if total == 0:
            return "No new notifications in digests."

        app_counts: Counter[str] = Counter()
        for digest in digests:
            app_counts[digest.app_name or "Unknown"] += digest.size

        if len(app_counts) == 1:
            app_name = next(iter(app_counts))
            return f"{total} new notification{_plural(total)} from {app_name}."

        top_apps = app_counts.most_common(2)
        app_summary = ", ".join(f"{n} from {app}" for app, n in top_apps)
        more = ", and more" if len(app_counts) > len(top_apps) else ""
        return f"{total} new notification{_plural(total)}: {app_summary}{more}."

    def _detail_lines(self, events: list[NotificationEvent], group_similar: bool) -> list[str]:
        if not group_similar:
            return [self.summarize_notification(e) for e in events]

        # Keep first-appearance order of each title
        groups: dict[str, list[NotificationEvent]] = {}
        for event in events:
            groups.setdefault(event.title or event.message, []).append(event)

        lines = []
        for members in groups.values():
            line = self.summarize_notification(members[0])
            if len(members) > 1:
                line += f" (x{len(members)})"
            lines.append(line)
        return lines
