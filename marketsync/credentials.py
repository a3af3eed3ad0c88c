"""Credential store contract consumed by the session."""

from typing import Optional, Protocol


class CredentialStore(Protocol):
    """Key-value holder for the bearer credential."""

    def get(self) -> Optional[str]:
        ...

    def set(self, token: str) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryCredentialStore:
    """Credential store that lives for the duration of the process."""

    def __init__(self, token: Optional[str] = None):
        self._token = token or None

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        self._token = token

    def clear(self) -> None:
        self._token = None
