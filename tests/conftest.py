"""Pytest configuration and shared fixtures."""

from typing import Any, Dict, Optional

import pytest

from marketsync.config.defaults import ReconnectParams, SyncParams, TradingParams
from marketsync.credentials import InMemoryCredentialStore
from marketsync.data.models import InboundEvent, TradeIntent
from marketsync.data.parsers import EventCodec
from marketsync.engine import SynchronizationEngine
from marketsync.errors import TransportError
from marketsync.state.models import DisconnectReason
from marketsync.state.store import MarketStateStore
from marketsync.trading.coordinator import TradeRequestCoordinator
from marketsync.transport.base import LifecycleKind, LifecycleSignal, SessionTransport

TOKEN = "test-token-123"


class FakeTransport(SessionTransport):
    """In-process transport driven directly by the test."""

    def __init__(self) -> None:
        super().__init__()
        self.codec = EventCodec()
        self.sent: list[TradeIntent] = []
        self.tokens: list[str] = []
        self.connect_failures: list[Exception] = []
        self.disconnect_reasons: list[DisconnectReason] = []
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self, token: str) -> None:
        self.tokens.append(token)
        if self.connect_failures:
            raise self.connect_failures.pop(0)
        self._connected = True
        self.generation += 1
        self._publish_lifecycle(LifecycleSignal(LifecycleKind.CONNECTED, self.generation))

    async def disconnect(self, reason: DisconnectReason = DisconnectReason.LOGOUT) -> None:
        if not self._connected:
            return
        self.disconnect_reasons.append(reason)
        self.drop(reason)

    def send(self, intent: TradeIntent) -> None:
        if not self._connected:
            raise TransportError("not connected")
        self.sent.append(intent)

    def deliver(self, event: InboundEvent) -> None:
        self._publish_event(event)

    def deliver_wire(self, name: str, payload: Any) -> None:
        self._publish_event(self.codec.decode(name, payload))

    def drop(
        self,
        reason: DisconnectReason = DisconnectReason.TRANSPORT_ERROR,
        error: Optional[Exception] = None
    ) -> None:
        self._connected = False
        self._publish_lifecycle(LifecycleSignal(
            LifecycleKind.DISCONNECTED, self.generation, reason=reason, error=error
        ))


def history_payload(day: int, base_price: float = 50.0) -> list[Dict[str, Any]]:
    """Dense price history for days 1..day in wire format."""
    return [
        {
            "day": d,
            "price": round(base_price + d * 0.5, 2),
            "title": None,
            "news": None,
            "effectiveTrend": "sideways",
        }
        for d in range(1, day + 1)
    ]


def clock_payload(day: int, is_running: bool = True, countdown: int = 30,
                  total_days: int = 120) -> Dict[str, Any]:
    return {
        "currentDay": day,
        "isRunning": is_running,
        "countdownSeconds": countdown,
        "totalDays": total_days,
    }


def snapshot_payload(day: int = 5, cash: float = 1000.0, stocks: int = 10,
                     debt: float = 0.0, is_running: bool = True,
                     total_days: int = 120) -> Dict[str, Any]:
    """full-sync payload in wire format."""
    history = history_payload(day)
    return {
        "clock": clock_payload(day, is_running=is_running, total_days=total_days),
        "price": {
            "current": history[-1]["price"] if history else 0.0,
            "history": history,
        },
        "personal": {"cash": cash, "stocks": stocks, "debt": debt},
    }


def advance_payload(day: int, base_price: float = 50.0) -> Dict[str, Any]:
    history = history_payload(day, base_price)
    return {"day": day, "price": history[-1]["price"], "history": history}


def make_snapshot(**kwargs: Any):
    return EventCodec().decode("full-sync", snapshot_payload(**kwargs))


def make_advance(day: int, base_price: float = 50.0):
    return EventCodec().decode("price-advance", advance_payload(day, base_price))


@pytest.fixture
def credentials() -> InMemoryCredentialStore:
    return InMemoryCredentialStore(TOKEN)


@pytest.fixture
def store() -> MarketStateStore:
    return MarketStateStore()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fast_reconnect() -> ReconnectParams:
    return ReconnectParams(initial_delay_seconds=0.0, multiplier=2.0,
                           max_delay_seconds=0.01, max_attempts=3)


@pytest.fixture
def engine(store, transport, credentials, fast_reconnect) -> SynchronizationEngine:
    return SynchronizationEngine(
        store=store,
        transport=transport,
        credentials=credentials,
        reconnect_params=fast_reconnect,
        sync_params=SyncParams(resync_on_gap=True),
    )


@pytest.fixture
def coordinator(store, transport, engine) -> TradeRequestCoordinator:
    coordinator = TradeRequestCoordinator(
        store=store,
        transport=transport,
        connection_state=lambda: engine.connection_state,
        params=TradingParams(timeout_seconds=0.05, require_running_market=True),
    )
    engine.attach_coordinator(coordinator)
    return coordinator


@pytest.fixture
def sample_snapshot_payload() -> Dict[str, Any]:
    """full-sync payload as the original server sends it."""
    return {
        "gameStatus": {
            "currentDay": 3,
            "isGameStarted": True,
            "countdown": 12,
            "totalDays": 120,
        },
        "price": {
            "current": 52.1,
            "history": [
                {"day": 1, "price": 50.0, "title": None, "news": None, "effectiveTrend": "sideways"},
                {"day": 2, "price": 51.3, "title": "Earnings beat", "news": "Profits up 12%",
                 "effectiveTrend": "bullish"},
                {"day": 3, "price": 52.1, "title": None, "news": None, "effectiveTrend": "bullish"},
            ],
        },
        "personal": {"cash": 1000.0, "stocks": 10, "debt": 0.0},
        "news": [],
        "leaderboard": [],
    }
