"""
System failure error classifications for unrecoverable errors.

These exceptions represent programming or deployment mistakes that
should surface immediately instead of being absorbed by the engine.
"""

from typing import Any, Dict, Optional


class SystemFailureError(Exception):
    """Base class for unrecoverable system failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class StateInvariantError(SystemFailureError):
    """A store mutation would break a market state invariant."""

    def __init__(self, message: str, invariant: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.invariant = invariant


class ConfigurationError(SystemFailureError):
    """Client configuration failed validation."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
