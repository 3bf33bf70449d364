"""Digest models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from notizen.models.notification import NotificationEvent
from notizen.utils.id_generator import generate_digest_id


class BatchingRule(BaseModel):
    """Per-category packing limits for digest runs."""

    model_config = ConfigDict(frozen=True)

    max_time_window: float = Field(default=15 * 60, gt=0, description="Seconds from run start")
    max_items_per_batch: int = Field(default=5, ge=1)
    group_similar_titles: bool = False


class Digest(BaseModel):
    """A finalized, immutable group of low-priority notifications."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_digest_id)
    created_at: datetime = Field(default_factory=datetime.now)
    notification_ids: list[str] = Field(default_factory=list)
    title: str
    summary: str | None = None
    category: str | None = None
    app_name: str | None = None

    @property
    def size(self) -> int:
        return len(self.notification_ids)


class DigestBundle(BaseModel):
    """A digest together with its member events, in digest order."""

    digest: Digest
    events: list[NotificationEvent] = Field(default_factory=list)
