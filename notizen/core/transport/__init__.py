"""Device-to-device transports."""

from notizen.core.transport.base import Transport, TransportListener
from notizen.core.transport.loopback import LoopbackEndpoint, LoopbackLink

__all__ = [
    "Transport",
    "TransportListener",
    "LoopbackLink",
    "LoopbackEndpoint",
]
