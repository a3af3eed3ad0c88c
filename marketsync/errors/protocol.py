"""
Protocol error classifications for inbound event decoding.

These exceptions describe events that arrive over the session transport
but cannot be applied: malformed payloads, unknown event kinds, and
incremental updates that are older than the current market state.
"""

from typing import Any, Dict, Optional


class ProtocolError(Exception):
    """Base class for inbound protocol anomalies that are handled locally."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class MalformedEventError(ProtocolError):
    """Event payload exists but does not match the expected shape."""

    def __init__(self, message: str, event_name: Optional[str] = None,
                 field: Optional[str] = None, raw_data: Optional[Any] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.event_name = event_name
        self.field = field
        self.raw_data = raw_data


class UnknownEventError(ProtocolError):
    """Event name is not part of the inbound protocol."""

    def __init__(self, message: str, event_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.event_name = event_name


class StaleEventError(ProtocolError):
    """Incremental event predates the state already held by the store."""

    def __init__(self, message: str, event_day: Optional[int] = None,
                 current_day: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.event_day = event_day
        self.current_day = current_day
