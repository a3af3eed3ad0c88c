"""
Session error classifications for the transport connection.

Authentication failures end the session and require the user to log in
again. Transport failures are transient and drive reconnection.
"""

from typing import Any, Dict, Optional


class SessionError(Exception):
    """Base class for session establishment and transport failures."""

    user_message = "not connected"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class AuthenticationError(SessionError):
    """Credential missing or rejected by the server during the handshake."""

    user_message = "session expired, please re-authenticate"

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.recoverable = False


class TransportError(SessionError):
    """Connection could not be opened or was lost."""

    def __init__(self, message: str, url: Optional[str] = None,
                 close_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.url = url
        self.close_code = close_code
