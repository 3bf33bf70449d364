"""
Digest batching for low-priority notifications.

Pending events are packed into digests on finalize():
1. Drop events whose category the user disabled
2. Group by category, then by app (first-appearance order)
3. Pack each group into time-ordered runs bounded by the category rule
4. One digest per run; members are stamped with the digest id
"""

from notizen.config import BatchingConfig
from notizen.core.summarizer import Summarizer
from notizen.models.digest import BatchingRule, Digest, DigestBundle
from notizen.models.notification import CategoryRule, NotificationEvent
from notizen.utils.clock import Clock, SystemClock
from notizen.utils.exceptions import ValidationError
from notizen.utils.logger import get_logger

logger = get_logger(__name__)

UNCATEGORIZED = "Uncategorized"


class BatchingEngine:
    """Owns the pending buffer of digestible notifications."""

    def __init__(
        self,
        config: BatchingConfig | None = None,
        summarizer: Summarizer | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize batching engine.

        Args:
            config: Default and per-category batching rules
            summarizer: Builds digest summaries
            clock: Digest creation time source
        """
        self.config = config or BatchingConfig()
        self.summarizer = summarizer or Summarizer()
        self.clock = clock or SystemClock()
        self._pending: list[NotificationEvent] = []
        self._pending_ids: set[str] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> tuple[NotificationEvent, ...]:
        return tuple(self._pending)

    def rule_for(self, category: str | None) -> BatchingRule:
        if category is None:
            return self.config.default_rule
        return self.config.rules.get(category, self.config.default_rule)

    def add_to_batch(self, event: NotificationEvent) -> bool:
        """
        Queue a classified, digestible event.

        Returns:
            False if an event with the same id is already pending

        Raises:
            ValidationError: If the event is unclassified, not digestible or
                already belongs to a digest
        """
        if not event.is_classified or not event.should_digest:
            raise ValidationError(
                f"Notification {event.id} is not marked for digest",
                context={"notification_id": event.id, "priority": event.priority},
            )
        if event.digest_group_id is not None:
            raise ValidationError(
                f"Notification {event.id} already belongs to digest {event.digest_group_id}",
                context={"notification_id": event.id, "digest_id": event.digest_group_id},
            )
        if event.id in self._pending_ids:
            logger.debug(f"Ignoring duplicate pending notification {event.id}")
            return False

        self._pending.append(event)
        self._pending_ids.add(event.id)
        logger.bind(notification_id=event.id, pending=len(self._pending)).debug(
            f"Queued {event.id} for digest"
        )
        return True

    def should_include(self, event: NotificationEvent, rules: list[CategoryRule]) -> bool:
        """Events without a category or with an unlisted category are included."""
        if event.category is None:
            return True
        for rule in rules:
            if rule.name == event.category:
                return rule.enabled
        return True

    def finalize(self, rules: list[CategoryRule]) -> list[DigestBundle]:
        """
        Pack every pending event into digests and clear the buffer.

        The buffer is cleared only once every digest has been built.

        Args:
            rules: Current user category preferences

        Returns:
            Digest bundles in category, app, then time order
        """
        included = [e for e in self._pending if self.should_include(e, rules)]
        excluded = len(self._pending) - len(included)

        if excluded:
            logger.info(f"Excluded {excluded} notifications from disabled categories")
        if not included:
            self.clear_pending()
            return []

        by_category: dict[str, dict[str, list[NotificationEvent]]] = {}
        for event in included:
            apps = by_category.setdefault(event.category or UNCATEGORIZED, {})
            apps.setdefault(event.app_name, []).append(event)

        bundles: list[DigestBundle] = []
        for category, apps in by_category.items():
            rule = self.rule_for(category)
            for app_name, events in apps.items():
                for run in self._pack_runs(events, rule):
                    bundles.append(self._build_bundle(category, app_name, run, rule))

        self.clear_pending()
        logger.bind(digests=len(bundles), notifications=len(included)).info(
            f"Finalized {len(bundles)} digests from {len(included)} notifications"
        )
        return bundles

    def clear_pending(self) -> None:
        self._pending.clear()
        self._pending_ids.clear()

    @staticmethod
    def _pack_runs(events: list[NotificationEvent], rule: BatchingRule) -> list[list[NotificationEvent]]:
        """Greedy runs measured from each run's first event."""
        ordered = sorted(events, key=lambda e: e.timestamp)
        runs: list[list[NotificationEvent]] = []
        current: list[NotificationEvent] = []

        for event in ordered:
            if current:
                elapsed = (event.timestamp - current[0].timestamp).total_seconds()
                if len(current) >= rule.max_items_per_batch or elapsed > rule.max_time_window:
                    runs.append(current)
                    current = []
            current.append(event)

        if current:
            runs.append(current)
        return runs

    def _build_bundle(
        self,
        category: str,
        app_name: str,
        run: list[NotificationEvent],
        rule: BatchingRule,
    ) -> DigestBundle:
        digest = Digest(
            created_at=self.clock.now(),
            notification_ids=[e.id for e in run],
            title=f"{app_name} Updates",
            summary=self.summarizer.digest_summary(run, group_similar=rule.group_similar_titles),
            category=None if category == UNCATEGORIZED else category,
            app_name=app_name,
        )
        members = [e.with_digest_group(digest.id) for e in run]
        logger.bind(digest_id=digest.id, category=category, app_name=app_name).info(
            f"Created digest '{digest.title}' with {digest.size} items"
        )
        return DigestBundle(digest=digest, events=members)
