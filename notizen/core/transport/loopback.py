"""
In-process transport pair.

LoopbackLink joins two endpoints the way a paired phone and watch are joined:
reachability and pairing are link-wide, shared context is per endpoint and
read by the other side. Every payload crosses the link as a JSON copy.
"""

import json
from typing import Any

from notizen.core.transport.base import Transport, TransportListener
from notizen.utils.exceptions import DeliveryError, HandshakeError
from notizen.utils.logger import get_logger

logger = get_logger(__name__)


def _wire_copy(value: Any) -> Any:
    return json.loads(json.dumps(value))


class LoopbackEndpoint(Transport):
    """One side of a LoopbackLink."""

    def __init__(self, link: "LoopbackLink", name: str):
        self.link = link
        self.name = name
        self.peer: LoopbackEndpoint | None = None
        self.activated = False
        self.fail_sends = False
        self.sent_count = 0
        self._listener: TransportListener | None = None
        self._shared_context: dict[str, dict[str, Any]] = {}

    @property
    def is_reachable(self) -> bool:
        return self.activated and self.link.paired and self.link.reachable

    @property
    def shared_context(self) -> dict[str, dict[str, Any]]:
        return dict(self._shared_context)

    def set_listener(self, listener: TransportListener | None) -> None:
        self._listener = listener

    async def activate(self) -> bool:
        if not self.link.paired:
            raise HandshakeError(
                f"Endpoint {self.name} has no paired peer", context={"endpoint": self.name}
            )
        self.activated = True
        logger.debug(f"Endpoint {self.name} activated")
        return self.is_reachable

    async def send_message(self, message: dict[str, Any]) -> None:
        if not self.is_reachable or self.peer is None:
            raise DeliveryError(
                f"Peer of {self.name} is not reachable", context={"endpoint": self.name}
            )
        if self.fail_sends:
            raise DeliveryError(f"Delivery from {self.name} failed", context={"endpoint": self.name})

        self.sent_count += 1
        self.peer.deliver([_wire_copy(message)])

    async def update_shared_context(self, key: str, value: dict[str, Any]) -> None:
        self._shared_context[key] = _wire_copy(value)

    async def fetch_shared_context(self) -> dict[str, dict[str, Any]]:
        if self.peer is None or not self.link.paired:
            return {}
        return _wire_copy(self.peer._shared_context)

    def deliver(self, messages: list[dict[str, Any]]) -> None:
        if self._listener is not None:
            self._listener.messages(messages)

    def signal_reachability(self) -> None:
        if self._listener is not None:
            self._listener.reachability_changed(self.is_reachable)


class LoopbackLink:
    """A paired link between endpoints `a` and `b`."""

    def __init__(self, paired: bool = True, reachable: bool = False):
        self.paired = paired
        self.reachable = reachable
        self.a = LoopbackEndpoint(self, "a")
        self.b = LoopbackEndpoint(self, "b")
        self.a.peer = self.b
        self.b.peer = self.a

    def set_reachable(self, reachable: bool) -> None:
        """Change reachability and fire the platform signal on both sides."""
        self.reachable = reachable
        logger.debug(f"Loopback link reachable={reachable}")
        self.a.signal_reachability()
        self.b.signal_reachability()

    def set_paired(self, paired: bool) -> None:
        """Change pairing and fire the platform signal on both sides."""
        self.paired = paired
        self.a.signal_reachability()
        self.b.signal_reachability()
