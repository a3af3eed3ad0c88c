"""
Cancellable timers owned by the component that schedules them.

Any delayed state transition (trade timeouts, reconnect backoff) goes
through a ScheduledTimer so the owner can cancel it on teardown.
"""

import asyncio
from typing import Any, Callable, Optional


class ScheduledTimer:
    """One-shot timer on the running event loop."""

    def __init__(self, name: str, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.name = name
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def start(self, delay_seconds: float, callback: Callable[..., Any], *args: Any) -> None:
        """Arm the timer, replacing any previously armed callback."""
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(delay_seconds, self._fire, callback, args)

    def _fire(self, callback: Callable[..., Any], args: tuple) -> None:
        self._handle = None
        callback(*args)

    def cancel(self) -> bool:
        """Disarm the timer. Returns True if a callback was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True


def backoff_delays(initial: float, multiplier: float, maximum: float):
    """Yield exponentially growing delays capped at maximum."""
    delay = initial
    while True:
        yield min(delay, maximum)
        delay = min(delay * multiplier, maximum)
