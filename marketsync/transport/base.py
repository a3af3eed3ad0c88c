"""Base classes for the session transport."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..data.models import InboundEvent, TradeIntent
from ..state.models import DisconnectReason
from ..utils.subscriptions import SubscriberList, Subscription


class LifecycleKind(str, Enum):
    """Connection lifecycle signal kinds."""
    CONNECTED = "connected"
    ERROR = "error"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class LifecycleSignal:
    """Lifecycle notification emitted by a transport."""
    kind: LifecycleKind
    generation: int
    reason: Optional[DisconnectReason] = None
    error: Optional[Exception] = None


class SessionTransport(ABC):
    """
    One bidirectional event connection to a single server endpoint.

    Each successful connect starts a new generation; inbound events and
    lifecycle signals from one generation are always published before
    any from the next.
    """

    def __init__(self):
        self.generation = 0
        self._events: SubscriberList[InboundEvent] = SubscriberList("transport.events")
        self._lifecycle: SubscriberList[LifecycleSignal] = SubscriberList("transport.lifecycle")

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while a connection is open."""

    @abstractmethod
    async def connect(self, token: str) -> None:
        """
        Open the connection authenticated with a bearer token.

        Raises:
            AuthenticationError: token missing or rejected
            TransportError: endpoint unreachable or handshake failed
        """

    @abstractmethod
    async def disconnect(self, reason: DisconnectReason = DisconnectReason.LOGOUT) -> None:
        """Close the connection; a DISCONNECTED signal carries the reason."""

    @abstractmethod
    def send(self, intent: TradeIntent) -> None:
        """
        Queue a trade intent for delivery without blocking.

        Raises:
            TransportError: no open connection
        """

    def subscribe_events(self, handler: Callable[[InboundEvent], None]) -> Subscription:
        """Receive decoded inbound events in arrival order."""
        return self._events.subscribe(handler)

    def subscribe_lifecycle(self, handler: Callable[[LifecycleSignal], None]) -> Subscription:
        """Receive connected/error/disconnected signals."""
        return self._lifecycle.subscribe(handler)

    def close_subscriptions(self) -> None:
        """Release every subscriber; used on session teardown."""
        self._events.clear()
        self._lifecycle.clear()

    def _publish_event(self, event: InboundEvent) -> None:
        self._events.publish(event)

    def _publish_lifecycle(self, signal: LifecycleSignal) -> None:
        self._lifecycle.publish(signal)
