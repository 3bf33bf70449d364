"""
Rule-based notification classifier.

Scoring pipeline:
1. User category rules (first enabled match wins, always HIGH)
2. Independent high/medium heuristic scores from app identifiers and keywords
3. Time-of-day multiplier applied to both scores
4. Threshold decision with category derived from the signal that fired

Deterministic: the same event, rule set and wall-clock hour always yield the
same result.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from notizen.config import ClassifierConfig
from notizen.models.notification import CategoryRule, Classified, NotificationEvent, Priority
from notizen.utils.clock import Clock, SystemClock
from notizen.utils.logger import get_logger

logger = get_logger(__name__)

CRITICAL_APPS = ("bank", "finance", "payment", "paypal", "venmo", "cashapp", "chase", "wellsfargo", "bofa")
URGENT_KEYWORDS = (
    "urgent",
    "alert",
    "emergency",
    "fraud",
    "security",
    "breach",
    "suspicious",
    "unauthorized",
    "failed login",
    "verify",
)
FINANCIAL_KEYWORDS = ("payment", "transaction", "charge", "declined", "overdraft", "deposit", "transfer")

WORK_APPS = ("slack", "teams", "zoom", "calendar", "outlook", "gmail", "work", "enterprise")
SCHEDULING_KEYWORDS = ("meeting", "deadline", "reminder", "appointment", "schedule", "call", "conference")
COMMUNICATION_APPS = ("messages", "whatsapp", "telegram", "signal", "imessage", "mail")


class ClassificationResult(BaseModel):
    """Outcome of classify(); exactly one priority per event."""

    model_config = ConfigDict(frozen=True)

    priority: Priority
    category: str
    should_digest: bool
    score: float = Field(default=0.0, ge=0.0, le=1.0)

    def as_classification(self) -> Classified:
        return Classified(
            priority=self.priority,
            category=self.category,
            score=self.score,
            should_digest=self.should_digest,
        )


class _Signals:
    """Lower-cased text views of one event."""

    def __init__(self, event: NotificationEvent):
        self.bundle_id = event.bundle_id.lower()
        self.app_name = event.app_name.lower()
        self.text = f"{(event.title or '').lower()} {event.message.lower()}"

    def app_matches(self, patterns: tuple[str, ...]) -> bool:
        return any(p in self.bundle_id or p in self.app_name for p in patterns)

    def keyword_hits(self, keywords: tuple[str, ...]) -> int:
        return sum(1 for k in keywords if k in self.text)


class NotificationClassifier:
    """
    Classifies notifications into (priority, category, should_digest).

    The classifier holds no mutable state; user rules are passed per call.
    """

    def __init__(self, config: ClassifierConfig | None = None, clock: Clock | None = None):
        """
        Initialize classifier.

        Args:
            config: Thresholds, multipliers and time windows
            clock: Wall clock used when classify() gets no explicit time
        """
        self.config = config or ClassifierConfig()
        self.clock = clock or SystemClock()

    def classify(
        self,
        event: NotificationEvent,
        rules: list[CategoryRule],
        at: datetime | None = None,
    ) -> ClassificationResult:
        """
        Classify one event.

        Args:
            event: Notification to classify
            rules: User category rules in configuration order
            at: Wall-clock time to evaluate the time-of-day multiplier at

        Returns:
            ClassificationResult (total: every event gets a result)
        """
        for rule in rules:
            if rule.enabled and rule.matches(event.app_name, event.message):
                return ClassificationResult(
                    priority=Priority.HIGH, category=rule.name, should_digest=False, score=1.0
                )

        signals = _Signals(event)
        multiplier = self.time_multiplier((at or self.clock.now()).hour)
        high_score = self.high_priority_score(signals) * multiplier
        medium_score = self.medium_priority_score(signals) * multiplier

        if high_score >= self.config.high_threshold:
            return ClassificationResult(
                priority=Priority.HIGH,
                category=self._high_category(signals),
                should_digest=False,
                score=min(high_score, 1.0),
            )
        if medium_score >= self.config.medium_threshold:
            return ClassificationResult(
                priority=Priority.MEDIUM,
                category=self._medium_category(signals),
                should_digest=False,
                score=min(medium_score, 1.0),
            )
        return ClassificationResult(
            priority=Priority.LOW,
            category=self._low_category(signals),
            should_digest=True,
            score=min(max(high_score, medium_score), 1.0),
        )

    def classify_event(
        self, event: NotificationEvent, rules: list[CategoryRule], at: datetime | None = None
    ) -> NotificationEvent:
        """Classify and return the classified copy of the event."""
        result = self.classify(event, rules, at=at)
        logger.bind(
            notification_id=event.id, priority=result.priority.value, score=result.score
        ).debug(f"Classified {event.id} as {result.priority.value}/{result.category}")
        return event.classified_as(result.as_classification())

    def time_multiplier(self, hour: int) -> float:
        """Score multiplier for a local hour."""
        if self.config.active_window.contains(hour):
            return self.config.active_multiplier
        if self.config.quiet_window.contains(hour):
            return self.config.quiet_multiplier
        return 1.0

    # ═══════════════════════════════════════════════════════════
    # SCORES
    # ═══════════════════════════════════════════════════════════

    def high_priority_score(self, signals: _Signals) -> float:
        score = 0.0
        if signals.app_matches(CRITICAL_APPS):
            score += 0.6
        score += min(signals.keyword_hits(URGENT_KEYWORDS) * 0.3, 0.8)
        score += min(signals.keyword_hits(FINANCIAL_KEYWORDS) * 0.2, 0.4)
        return min(score, 1.0)

    def medium_priority_score(self, signals: _Signals) -> float:
        score = 0.0
        if signals.app_matches(WORK_APPS):
            score += 0.4
        score += min(signals.keyword_hits(SCHEDULING_KEYWORDS) * 0.2, 0.5)
        if signals.app_matches(COMMUNICATION_APPS):
            score += 0.3
        return min(score, 1.0)

    # ═══════════════════════════════════════════════════════════
    # CATEGORIES
    # ═══════════════════════════════════════════════════════════

    @staticmethod
    def _high_category(signals: _Signals) -> str:
        text = signals.text
        if signals.app_matches(("bank",)) or "payment" in text or "transaction" in text:
            return "Finance"
        if "security" in text or "fraud" in text or "unauthorized" in text:
            return "Security"
        if "emergency" in text or "urgent" in text:
            return "Emergency"
        return "Important"

    @staticmethod
    def _medium_category(signals: _Signals) -> str:
        if signals.app_matches(("calendar",)) or "meeting" in signals.text:
            return "Calendar"
        if signals.app_matches(("mail",)) or "message" in signals.bundle_id:
            return "Communication"
        if any(p in signals.bundle_id for p in ("work", "slack", "teams")):
            return "Work"
        return "General"

    @staticmethod
    def _low_category(signals: _Signals) -> str:
        bundle_id = signals.bundle_id
        if signals.app_matches(("social",)) or "twitter" in bundle_id or "facebook" in bundle_id:
            return "Social"
        if signals.app_matches(("news",)):
            return "News"
        if signals.app_matches(("game",)):
            return "Entertainment"
        return "Other"
