"""
Explicit subscribe/unsubscribe pairs for typed callbacks.

Every subscription returns a handle; owners keep their handles and
release them on teardown so no handler outlives the component that
registered it.
"""

from typing import Callable, Generic, TypeVar

import structlog

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class Subscription:
    """Handle for one registered callback."""

    def __init__(self, release: Callable[["Subscription"], None]):
        self._release = release
        self.active = True

    def unsubscribe(self) -> None:
        """Remove the callback. Safe to call more than once."""
        if self.active:
            self.active = False
            self._release(self)


class SubscriberList(Generic[T]):
    """Ordered set of callbacks receiving values of one type."""

    def __init__(self, name: str):
        self.name = name
        self._handlers: dict[Subscription, Callable[[T], None]] = {}

    def subscribe(self, handler: Callable[[T], None]) -> Subscription:
        subscription = Subscription(self._remove)
        self._handlers[subscription] = handler
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        self._handlers.pop(subscription, None)

    def publish(self, value: T) -> None:
        """Call every active handler in subscription order."""
        for subscription, handler in list(self._handlers.items()):
            if not subscription.active:
                continue
            try:
                handler(value)
            except Exception as e:
                # A faulty listener must not stop delivery to the others
                logger.error(
                    "Subscriber raised",
                    channel=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True
                )

    def clear(self) -> None:
        """Release every subscription."""
        for subscription in list(self._handlers):
            subscription.unsubscribe()

    def __len__(self) -> int:
        return len(self._handlers)
