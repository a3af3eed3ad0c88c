"""
Canonical data models for decoded market events.

This module defines immutable data structures for the synchronized market
state (clock, price history, personal assets), the decoded inbound events
and the trade request/outcome types exchanged with the coordinator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True)
class GameClock:
    """Shared trading-day clock."""
    current_day: int          # 0 = not started
    is_running: bool
    countdown_seconds: int    # Seconds until the next day
    total_days: int


EMPTY_CLOCK = GameClock(current_day=0, is_running=False, countdown_seconds=0, total_days=1)


@dataclass(frozen=True)
class PricePoint:
    """One day of the shared price series."""
    day: int
    price: float
    title: Optional[str] = None    # News headline, if any
    body: Optional[str] = None     # News body, if any
    trend: str = ""                # Trend in effect for the day


@dataclass(frozen=True)
class PersonalAssets:
    """Participant's private balances, as confirmed by the server."""
    cash: float
    stocks: int
    debt: float


EMPTY_ASSETS = PersonalAssets(cash=0.0, stocks=0, debt=0.0)


class TradeAction(str, Enum):
    """Trade direction."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class TradeIntent:
    """A user's request to trade, owned by the coordinator until resolved."""
    action: TradeAction
    quantity: int

    @classmethod
    def buy(cls, quantity: int) -> "TradeIntent":
        return cls(action=TradeAction.BUY, quantity=quantity)

    @classmethod
    def sell(cls, quantity: int) -> "TradeIntent":
        return cls(action=TradeAction.SELL, quantity=quantity)


class FailureKind(str, Enum):
    """Why a trade request ended without a confirmed execution."""
    REJECTED = "rejected"                # Server refused the trade
    TIMEOUT = "timeout"                  # No reply within the deadline
    CONNECTION_LOST = "connection_lost"  # Session dropped while pending


@dataclass(frozen=True)
class TradeSuccess:
    """Server-confirmed trade execution."""
    action: TradeAction
    quantity: int
    execution_price: float
    new_cash: float
    new_stocks: int

    succeeded = True

    @property
    def user_message(self) -> str:
        return f"{self.action.value.lower()} {self.quantity} @ {self.execution_price:.2f}"


@dataclass(frozen=True)
class TradeFailure:
    """Trade request that did not execute."""
    reason: str
    kind: FailureKind = FailureKind.REJECTED

    succeeded = False

    @property
    def user_message(self) -> str:
        if self.kind == FailureKind.CONNECTION_LOST:
            return "not connected"
        return f"trade rejected: {self.reason}"


TradeOutcome = Union[TradeSuccess, TradeFailure]


@dataclass(frozen=True)
class FullSnapshot:
    """Authoritative restatement of all synchronized state."""
    clock: GameClock
    current_price: float
    history: tuple[PricePoint, ...]
    assets: PersonalAssets


@dataclass(frozen=True)
class ClockTick:
    """Incremental clock update."""
    clock: GameClock


@dataclass(frozen=True)
class PriceAdvance:
    """Incremental price update carrying the full server history."""
    day: int
    price: float
    history: tuple[PricePoint, ...]


@dataclass(frozen=True)
class TradeResult:
    """Inbound trade outcome event."""
    outcome: TradeOutcome


InboundEvent = Union[FullSnapshot, ClockTick, PriceAdvance, TradeResult]
