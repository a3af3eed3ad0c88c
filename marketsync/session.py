"""
Market session.

Explicitly owned composition root for one login session: builds the
transport, store, synchronization engine and trade coordinator, and tears
all of them down together.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from .config.defaults import ClientConfig, get_default_config
from .config.loader import load_config
from .credentials import CredentialStore
from .data.models import TradeIntent, TradeOutcome
from .data.parsers import EventCodec
from .engine import SynchronizationEngine
from .logging.config import configure_from_params
from .state.models import ConnectionState, DisconnectReason, MarketView
from .state.store import MarketStateStore
from .trading.coordinator import TradeRequestCoordinator
from .transport.base import SessionTransport
from .transport.websocket import WebSocketTransport
from .utils.subscriptions import Subscription

logger = structlog.get_logger(__name__)


class MarketSession:
    """One participant's live view of the market plus their trade channel."""

    def __init__(
        self,
        credentials: CredentialStore,
        config: Optional[ClientConfig] = None,
        transport: Optional[SessionTransport] = None
    ) -> None:
        self.logger = logger
        self.config = config or get_default_config()
        self.credentials = credentials

        self.codec = EventCodec(self.config.events)
        self.transport = transport or WebSocketTransport(self.config.transport, self.codec)
        self.store = MarketStateStore()
        self.engine = SynchronizationEngine(
            store=self.store,
            transport=self.transport,
            credentials=credentials,
            reconnect_params=self.config.reconnect,
            sync_params=self.config.sync,
        )
        self.coordinator = TradeRequestCoordinator(
            store=self.store,
            transport=self.transport,
            connection_state=lambda: self.engine.connection_state,
            params=self.config.trading,
        )
        self.engine.attach_coordinator(self.coordinator)

        self._subscriptions: list[Subscription] = []
        self.closed = False

    @classmethod
    def from_config(
        cls,
        credentials: CredentialStore,
        config_dir: Optional[Path] = None,
        overrides: Optional[dict[str, Any]] = None,
        transport: Optional[SessionTransport] = None,
        setup_logging: bool = True
    ) -> "MarketSession":
        """Build a session from client.yaml plus explicit overrides."""
        config = load_config(config_dir, overrides)
        if setup_logging:
            configure_from_params(config.logging)
        return cls(credentials, config=config, transport=transport)

    @property
    def connection_state(self) -> ConnectionState:
        return self.engine.connection_state

    async def start(self) -> ConnectionState:
        """Connect and begin synchronizing."""
        if self.closed:
            raise RuntimeError("Session has been closed")
        state = await self.engine.start()
        self.logger.info("Session started", connection_state=state.value)
        return state

    def view(self) -> MarketView:
        """Current immutable view for rendering."""
        return self.engine.view()

    def subscribe(self, listener: Callable[[MarketView], None]) -> Subscription:
        """Receive a MarketView after every change; released on close."""
        subscription = self.engine.subscribe(listener)
        self._subscriptions.append(subscription)
        return subscription

    def subscribe_outcomes(self, handler: Callable[[TradeOutcome], None]) -> Subscription:
        """Receive each resolved trade outcome; released on close."""
        subscription = self.coordinator.subscribe_outcomes(handler)
        self._subscriptions.append(subscription)
        return subscription

    def submit(self, intent: TradeIntent) -> "asyncio.Future[TradeOutcome]":
        """Submit a trade intent; see TradeRequestCoordinator.submit."""
        return self.coordinator.submit(intent)

    def buy(self, quantity: int) -> "asyncio.Future[TradeOutcome]":
        return self.submit(TradeIntent.buy(quantity))

    def sell(self, quantity: int) -> "asyncio.Future[TradeOutcome]":
        return self.submit(TradeIntent.sell(quantity))

    async def trade(self, intent: TradeIntent) -> TradeOutcome:
        """Submit a trade intent and wait for its outcome."""
        return await self.submit(intent)

    async def logout(self) -> None:
        """End the session, clear state and forget the credential."""
        await self.engine.logout()
        self.credentials.clear()
        self.logger.info("Logged out")

    async def close(self) -> None:
        """Tear down every component and release all subscriptions."""
        if self.closed:
            return
        self.closed = True

        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

        await self.engine.close()
        self.coordinator.close()
        if self.transport.connected:
            await self.transport.disconnect(DisconnectReason.LOGOUT)
        self.transport.close_subscriptions()
        self.logger.info("Session closed")

    async def __aenter__(self) -> "MarketSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
