"""
Sync envelope: the unit exchanged between the two devices.

Decoding is two-step so envelopes stay forward compatible:
1. Header (id, kind, origin, logical timestamp) is always validated
2. Payload is validated only for kinds this build knows about
"""

import json
from datetime import datetime, time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

from notizen.models.battery import BatteryState
from notizen.models.digest import DigestBundle
from notizen.models.notification import CategoryRule, NotificationEvent
from notizen.utils.clock import LogicalStamp
from notizen.utils.exceptions import EnvelopeDecodeError
from notizen.utils.id_generator import generate_envelope_id


class EnvelopeKind(str, Enum):
    """Known envelope kinds."""

    BATTERY_UPDATE = "battery_update"
    CATEGORY_SET = "category_set"
    NOTIFICATION_BATCH = "notification_batch"
    DIGEST_BATCH = "digest_batch"
    PING = "ping"

    @property
    def is_collection(self) -> bool:
        return self in (EnvelopeKind.NOTIFICATION_BATCH, EnvelopeKind.DIGEST_BATCH)


class BatteryUpdatePayload(BaseModel):
    battery: BatteryState


class CategorySetPayload(BaseModel):
    """
    Preference fields written at the envelope's logical timestamp.

    Either field may be absent; only present fields are merged.
    """

    rules: list[CategoryRule] | None = None
    digest_window_end: time | None = None


class NotificationBatchPayload(BaseModel):
    events: list[NotificationEvent] = Field(default_factory=list)


class DigestBatchPayload(BaseModel):
    bundles: list[DigestBundle] = Field(default_factory=list)


class PingPayload(BaseModel):
    sent_at: datetime | None = None


PAYLOAD_MODELS: dict[EnvelopeKind, type[BaseModel]] = {
    EnvelopeKind.BATTERY_UPDATE: BatteryUpdatePayload,
    EnvelopeKind.CATEGORY_SET: CategorySetPayload,
    EnvelopeKind.NOTIFICATION_BATCH: NotificationBatchPayload,
    EnvelopeKind.DIGEST_BATCH: DigestBatchPayload,
    EnvelopeKind.PING: PingPayload,
}


class SyncEnvelope(BaseModel):
    """
    Tagged sync message.

    `kind` is kept as a plain string so envelopes from a newer peer still
    decode; their payload is simply never interpreted.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=generate_envelope_id)
    kind: str = Field(..., min_length=1)
    origin: str = Field(..., min_length=1, description="Sending device id")
    logical_timestamp: int = Field(default=0, ge=0)
    payload: dict[str, Any] = Field(default_factory=dict)

    _parsed: BaseModel | None = PrivateAttr(default=None)

    @classmethod
    def build(
        cls, kind: EnvelopeKind, stamp: LogicalStamp, payload: BaseModel
    ) -> "SyncEnvelope":
        """Create an envelope for a local write."""
        envelope = cls(
            kind=kind.value,
            origin=stamp.origin,
            logical_timestamp=stamp.counter,
            payload=payload.model_dump(mode="json"),
        )
        envelope._parsed = payload
        return envelope

    @property
    def stamp(self) -> LogicalStamp:
        return LogicalStamp(self.logical_timestamp, self.origin)

    @property
    def known_kind(self) -> EnvelopeKind | None:
        try:
            return EnvelopeKind(self.kind)
        except ValueError:
            return None

    def parsed_payload(self) -> BaseModel | None:
        """
        Typed payload for known kinds, None for unknown kinds.

        Raises:
            EnvelopeDecodeError: If the payload does not match its kind
        """
        kind = self.known_kind
        if kind is None:
            return None
        if self._parsed is None:
            try:
                self._parsed = PAYLOAD_MODELS[kind].model_validate(self.payload)
            except PydanticValidationError as e:
                raise EnvelopeDecodeError(
                    f"Invalid {kind.value} payload in envelope {self.id}: {e}",
                    context={"envelope_id": self.id, "kind": kind.value},
                ) from e
        return self._parsed


def encode_envelope(envelope: SyncEnvelope) -> dict[str, Any]:
    """Encode an envelope as a JSON-compatible dict."""
    return envelope.model_dump(mode="json")


def decode_envelope(raw: dict[str, Any] | str | bytes) -> SyncEnvelope:
    """
    Decode and validate one envelope.

    Args:
        raw: Dict message or JSON text

    Returns:
        SyncEnvelope with its payload validated (known kinds only)

    Raises:
        EnvelopeDecodeError: If the header or a known payload is invalid
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise EnvelopeDecodeError(f"Envelope is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise EnvelopeDecodeError(
            f"Envelope must be an object, got {type(raw).__name__}",
            context={"type": type(raw).__name__},
        )

    try:
        envelope = SyncEnvelope.model_validate(raw)
    except PydanticValidationError as e:
        raise EnvelopeDecodeError(f"Invalid envelope header: {e}") from e

    envelope.parsed_payload()
    return envelope
