"""
Base interface for the device-to-device transport.

Two channels are exposed:
- Immediate messages, delivered only while the peer is reachable
- Shared context, a last-value-per-key store the peer reads when it can
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class TransportListener:
    """Callbacks a transport invokes on platform signals."""

    on_reachability_changed: Callable[[bool], None] | None = None
    on_messages: Callable[[list[dict[str, Any]]], None] | None = None

    def reachability_changed(self, reachable: bool) -> None:
        if self.on_reachability_changed is not None:
            self.on_reachability_changed(reachable)

    def messages(self, messages: list[dict[str, Any]]) -> None:
        if self.on_messages is not None:
            self.on_messages(messages)


class Transport(ABC):
    """Abstract base class for transports."""

    @abstractmethod
    async def activate(self) -> bool:
        """
        Activate the peer session.

        Returns:
            True if the peer is reachable right after activation

        Raises:
            HandshakeError: If the session cannot be activated
        """
        pass

    @property
    @abstractmethod
    def is_reachable(self) -> bool:
        pass

    @abstractmethod
    async def send_message(self, message: dict[str, Any]) -> None:
        """
        Deliver one message immediately.

        Raises:
            DeliveryError: If delivery fails; callers do not retry
        """
        pass

    @abstractmethod
    async def update_shared_context(self, key: str, value: dict[str, Any]) -> None:
        """Replace the value stored under key in the outbound shared context."""
        pass

    @abstractmethod
    async def fetch_shared_context(self) -> dict[str, dict[str, Any]]:
        """Read the peer's latest shared context."""
        pass

    @abstractmethod
    def set_listener(self, listener: TransportListener | None) -> None:
        pass
