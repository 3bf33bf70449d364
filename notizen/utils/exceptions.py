"""
Custom exception hierarchy for NotiZen.

Provides structured error types for the notification pipeline and the
cross-device sync protocol. All exceptions inherit from NotizenError.
"""


class NotizenError(Exception):
    """
    Base exception for all NotiZen errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize NotiZen error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(NotizenError):
    """
    Validation errors.
    Raised when input validation fails or a component pre-condition is violated.
    """

    pass


class ConfigurationError(NotizenError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class StorageError(NotizenError):
    """
    Blob storage errors.
    Raised when the persistent key-value backend fails.
    """

    pass


class TransportError(NotizenError):
    """
    Base exception for device-to-device transport failures.
    """

    pass


class HandshakeError(TransportError):
    """
    Session activation errors.
    Raised when the peer session cannot be activated (peer missing, not paired).
    """

    pass


class DeliveryError(TransportError):
    """
    Immediate delivery errors.
    Raised when a point-to-point send fails. Never retried.
    """

    pass


class SyncError(NotizenError):
    """
    Synchronization protocol errors.
    """

    pass


class EnvelopeDecodeError(SyncError):
    """
    Envelope decode errors.
    Raised when an inbound sync envelope cannot be decoded.
    """

    pass
