"""
State enums and the read-only market view.

The presentation layer never touches the store directly: it reads
MarketView snapshots, which are immutable and safe to hold on to.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..data.models import GameClock, PersonalAssets, PricePoint, TradeIntent, TradeOutcome


class ConnectionState(str, Enum):
    """Session connection lifecycle, as seen by the synchronization engine."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class CoordinatorState(str, Enum):
    """Trade request coordinator states."""
    IDLE = "idle"
    PENDING = "pending"


class DisconnectReason(str, Enum):
    """Why a session connection ended."""
    LOGOUT = "logout"                    # Explicit teardown by the user
    AUTH_FAILED = "auth_failed"          # Credential rejected
    TRANSPORT_CLOSED = "transport_closed"
    TRANSPORT_ERROR = "transport_error"
    RESYNC = "resync"                    # Dropped on purpose to obtain a fresh snapshot


@dataclass(frozen=True)
class MarketView:
    """Immutable snapshot of everything the presentation layer renders."""

    clock: GameClock
    current_price: float
    history: tuple[PricePoint, ...]
    assets: PersonalAssets
    epoch: int
    unsynced: bool

    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    auth_required: bool = False
    pending_trade: Optional[TradeIntent] = None
    last_trade_outcome: Optional[TradeOutcome] = None

    @property
    def loading(self) -> bool:
        """True while the data must not be shown as current."""
        return self.unsynced or self.connection_state != ConnectionState.CONNECTED

    @property
    def current_day(self) -> int:
        return self.clock.current_day

    def estimate_cost(self, quantity: int) -> float:
        """Estimated trade value at the current price."""
        return self.current_price * quantity
