"""Utility modules for NotiZen."""

from notizen.utils.clock import Clock, FixedClock, LamportClock, LogicalStamp, SystemClock
from notizen.utils.exceptions import (
    ConfigurationError,
    DeliveryError,
    EnvelopeDecodeError,
    HandshakeError,
    NotizenError,
    StorageError,
    SyncError,
    TransportError,
    ValidationError,
)
from notizen.utils.id_generator import (
    generate_digest_id,
    generate_envelope_id,
    generate_notification_id,
)
from notizen.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_notification_id",
    "generate_digest_id",
    "generate_envelope_id",
    # Clocks
    "Clock",
    "SystemClock",
    "FixedClock",
    "LamportClock",
    "LogicalStamp",
    # Exceptions
    "NotizenError",
    "ValidationError",
    "ConfigurationError",
    "StorageError",
    "TransportError",
    "HandshakeError",
    "DeliveryError",
    "SyncError",
    "EnvelopeDecodeError",
]
