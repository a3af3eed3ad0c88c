"""
Market state store.

Pure data holder for the synchronized market state. Every mutation is a
whole-field replacement; the store only guards the data invariants and
leaves all merge decisions to the synchronization engine.
"""

from dataclasses import replace
from typing import Any

from ..data.models import (
    EMPTY_ASSETS,
    EMPTY_CLOCK,
    FullSnapshot,
    GameClock,
    PersonalAssets,
    PricePoint,
)
from ..errors import StateInvariantError
from .models import MarketView

def _check_clock(clock: GameClock) -> None:
    if clock.current_day < 0 or clock.countdown_seconds < 0:
        raise StateInvariantError("Clock values must be non-negative", invariant="clock_non_negative")
    if clock.total_days <= 0:
        raise StateInvariantError("total_days must be positive", invariant="clock_total_days")
    if clock.current_day > clock.total_days:
        raise StateInvariantError(
            "current_day exceeds total_days",
            invariant="clock_day_bound",
            context={"current_day": clock.current_day, "total_days": clock.total_days}
        )


def _check_history(history: tuple[PricePoint, ...]) -> None:
    for index, point in enumerate(history):
        if point.day != index + 1:
            raise StateInvariantError(
                "Price history must be dense and start at day 1",
                invariant="history_dense",
                context={"position": index, "day": point.day}
            )
        if point.price < 0:
            raise StateInvariantError(
                "Prices must be non-negative",
                invariant="price_non_negative",
                context={"day": point.day, "price": point.price}
            )


def _check_assets(assets: PersonalAssets) -> None:
    if assets.stocks < 0 or assets.debt < 0:
        raise StateInvariantError(
            "Stocks and debt must be non-negative",
            invariant="assets_non_negative",
            context={"stocks": assets.stocks, "debt": assets.debt}
        )


class MarketStateStore:
    """Single client-side copy of the synchronized market state."""

    def __init__(self):
        self.clock: GameClock = EMPTY_CLOCK
        self.current_price: float = 0.0
        self.history: tuple[PricePoint, ...] = ()
        self.assets: PersonalAssets = EMPTY_ASSETS
        self.epoch: int = 0
        self.unsynced: bool = True

    @property
    def current_day(self) -> int:
        return self.clock.current_day

    def replace_snapshot(self, snapshot: FullSnapshot) -> int:
        """Replace all synchronized state and start a new epoch."""
        _check_clock(snapshot.clock)
        _check_history(snapshot.history)
        _check_assets(snapshot.assets)

        self.clock = snapshot.clock
        self.current_price = snapshot.current_price
        self.history = tuple(snapshot.history)
        self.assets = snapshot.assets
        self.epoch += 1
        self.unsynced = False
        return self.epoch

    def replace_clock(self, clock: GameClock) -> None:
        """Replace the clock. The day may only move forward."""
        _check_clock(clock)
        if clock.current_day < self.clock.current_day:
            raise StateInvariantError(
                "current_day may only decrease through a full snapshot",
                invariant="day_monotonic",
                context={"current_day": self.clock.current_day, "new_day": clock.current_day}
            )
        self.clock = clock

    def replace_history(self, history: tuple[PricePoint, ...], current_price: float) -> None:
        """Replace the price history with one that keeps or extends the tail."""
        _check_history(history)
        if len(history) < len(self.history):
            raise StateInvariantError(
                "Price history may only shrink through a full snapshot",
                invariant="history_append_only",
                context={"length": len(self.history), "new_length": len(history)}
            )
        self.history = tuple(history)
        self.current_price = current_price

    def advance_day(self, day: int) -> None:
        """Move current_day forward to day, keeping the rest of the clock."""
        if day > self.clock.current_day:
            self.replace_clock(replace(self.clock, current_day=day))

    def replace_assets(self, assets: PersonalAssets) -> None:
        """Replace personal assets with server-confirmed values."""
        _check_assets(assets)
        self.assets = assets

    def mark_unsynced(self) -> None:
        """Flag the current data as possibly stale until the next snapshot."""
        self.unsynced = True

    def reset(self) -> None:
        """Discard all synchronized state. The epoch counter keeps counting."""
        self.clock = EMPTY_CLOCK
        self.current_price = 0.0
        self.history = ()
        self.assets = EMPTY_ASSETS
        self.unsynced = True

    def view(self, **session_fields: Any) -> MarketView:
        """Build an immutable view, adding session-level fields."""
        return MarketView(
            clock=self.clock,
            current_price=self.current_price,
            history=self.history,
            assets=self.assets,
            epoch=self.epoch,
            unsynced=self.unsynced,
            **session_fields
        )

    def as_dict(self) -> dict[str, Any]:
        """Compact summary used in log context."""
        return {
            "epoch": self.epoch,
            "unsynced": self.unsynced,
            "current_day": self.clock.current_day,
            "is_running": self.clock.is_running,
            "history_len": len(self.history),
            "cash": self.assets.cash,
            "stocks": self.assets.stocks,
        }
