"""
Error classification system for the market synchronization client.

Protocol errors are absorbed inside the synchronization engine, session
errors drive reconnection or re-authentication, and trade request errors
are raised to the caller of the trade coordinator.
"""

from .protocol import (
    ProtocolError,
    MalformedEventError,
    UnknownEventError,
    StaleEventError,
)
from .session import (
    SessionError,
    AuthenticationError,
    TransportError,
)
from .trading import (
    TradeRequestError,
    AlreadyPendingError,
    SessionUnavailableError,
    MarketClosedError,
    InvalidTradeIntentError,
)
from .system_failures import (
    SystemFailureError,
    StateInvariantError,
    ConfigurationError,
)

__all__ = [
    # Protocol Errors
    "ProtocolError",
    "MalformedEventError",
    "UnknownEventError",
    "StaleEventError",
    # Session Errors
    "SessionError",
    "AuthenticationError",
    "TransportError",
    # Trade Request Errors
    "TradeRequestError",
    "AlreadyPendingError",
    "SessionUnavailableError",
    "MarketClosedError",
    "InvalidTradeIntentError",
    # System Failures
    "SystemFailureError",
    "StateInvariantError",
    "ConfigurationError",
]
