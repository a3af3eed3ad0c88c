"""
Local trade request rejections.

These are raised synchronously by the trade coordinator when an intent
cannot be sent at all. Server-side rejections are never raised; they are
resolved as TradeFailure outcomes.
"""

from typing import Any, Dict, Optional


class TradeRequestError(Exception):
    """Base class for trade intents rejected before reaching the server."""

    user_message = "trade rejected: not submitted"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class AlreadyPendingError(TradeRequestError):
    """A trade request is already in flight for this participant."""

    user_message = "trade rejected: a trade is already in progress"

    def __init__(self, message: str, pending_action: Optional[str] = None,
                 pending_quantity: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.pending_action = pending_action
        self.pending_quantity = pending_quantity


class SessionUnavailableError(TradeRequestError):
    """Session is not connected, or not yet synchronized."""

    user_message = "not connected"

    def __init__(self, message: str, connection_state: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.connection_state = connection_state


class MarketClosedError(TradeRequestError):
    """The market clock reports that the game is not running."""

    user_message = "trade rejected: market is not open"

    def __init__(self, message: str, current_day: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_day = current_day


class InvalidTradeIntentError(TradeRequestError):
    """Trade intent is malformed (unknown action or non-positive quantity)."""

    user_message = "trade rejected: invalid trade"

    def __init__(self, message: str, quantity: Optional[Any] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.quantity = quantity
