"""
Notification model with an explicit classification variant.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from notizen.utils.exceptions import ValidationError
from notizen.utils.id_generator import generate_notification_id


class Priority(str, Enum):
    """Notification priority. An "unknown" outcome is folded into LOW."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Unclassified(BaseModel):
    """Event as delivered by the capture collaborator."""

    model_config = ConfigDict(frozen=True)

    state: Literal["unclassified"] = "unclassified"


class Classified(BaseModel):
    """Event after the classifier has tagged it."""

    model_config = ConfigDict(frozen=True)

    state: Literal["classified"] = "classified"
    priority: Priority
    category: str
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    should_digest: bool = False


Classification = Annotated[Unclassified | Classified, Field(discriminator="state")]


class CategoryRule(BaseModel):
    """
    User-configured category.

    Matching notifications are always high priority and never digested.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique category name")
    enabled: bool = True
    keywords: list[str] = Field(default_factory=list)
    weight: float = Field(default=50.0, ge=0.0, le=100.0, description="User priority 0-100")

    def matches(self, *texts: str) -> bool:
        """Case-insensitive substring match of the name or any keyword."""
        needles = [self.name.lower()] + [k.lower() for k in self.keywords if k]
        haystacks = [t.lower() for t in texts if t]
        return any(needle in haystack for needle in needles for haystack in haystacks)


class NotificationEvent(BaseModel):
    """
    One inbound notification after redaction.

    Frozen: classification and digest membership produce new copies via
    classified_as() and with_digest_group().
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_notification_id)
    bundle_id: str = Field(..., min_length=1, description="Origin app identifier")
    app_name: str = Field(..., min_length=1, description="Origin app display name")
    title: str | None = None
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    classification: Classification = Field(default_factory=Unclassified)
    digest_group_id: str | None = None

    @property
    def is_classified(self) -> bool:
        return isinstance(self.classification, Classified)

    @property
    def priority(self) -> Priority | None:
        if isinstance(self.classification, Classified):
            return self.classification.priority
        return None

    @property
    def category(self) -> str | None:
        if isinstance(self.classification, Classified):
            return self.classification.category
        return None

    @property
    def score(self) -> float:
        if isinstance(self.classification, Classified):
            return self.classification.score
        return 0.0

    @property
    def should_digest(self) -> bool:
        if isinstance(self.classification, Classified):
            return self.classification.should_digest
        return False

    def classified_as(self, classification: Classified) -> "NotificationEvent":
        """
        Return a classified copy.

        Raises:
            ValidationError: If the event is already classified differently
        """
        if self.is_classified and self.classification != classification:
            raise ValidationError(
                f"Notification {self.id} is already classified",
                context={"notification_id": self.id},
            )
        return self.model_copy(update={"classification": classification})

    def with_digest_group(self, digest_id: str) -> "NotificationEvent":
        """
        Return a copy absorbed into a digest. The group id is set exactly once.

        Raises:
            ValidationError: If the event already belongs to another digest
        """
        if self.digest_group_id is not None and self.digest_group_id != digest_id:
            raise ValidationError(
                f"Notification {self.id} already belongs to digest {self.digest_group_id}",
                context={"notification_id": self.id, "digest_id": self.digest_group_id},
            )
        return self.model_copy(update={"digest_group_id": digest_id})
