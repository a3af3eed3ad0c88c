"""
Synchronization engine.

Consumes transport lifecycle signals and decoded inbound events, decides
how each event merges into the market state store, and drives
reconnection and reconciliation:

Transport → Generation check → Staleness guards → Store → Change listeners
"""

import asyncio
from typing import Callable, Optional

import structlog

from .config.defaults import ReconnectParams, SyncParams
from .credentials import CredentialStore
from .data.models import (
    ClockTick,
    FullSnapshot,
    GameClock,
    InboundEvent,
    PriceAdvance,
    TradeOutcome,
    TradeResult,
)
from .errors import (
    AuthenticationError,
    MalformedEventError,
    ProtocolError,
    StaleEventError,
    TransportError,
)
from .logging.config import get_sync_logger, log_connection_transition
from .state.models import ConnectionState, DisconnectReason, MarketView
from .state.store import MarketStateStore
from .trading.coordinator import TradeRequestCoordinator
from .transport.base import LifecycleKind, LifecycleSignal, SessionTransport
from .utils.subscriptions import SubscriberList, Subscription
from .utils.timers import backoff_delays

logger = structlog.get_logger(__name__)
sync_logger = get_sync_logger(__name__)


class SynchronizationEngine:
    """
    Keeps the market state store coherent with the server.

    All handlers run on one event loop and never await, so events are
    applied strictly in the order the transport delivers them.
    """

    def __init__(
        self,
        store: MarketStateStore,
        transport: SessionTransport,
        credentials: CredentialStore,
        reconnect_params: Optional[ReconnectParams] = None,
        sync_params: Optional[SyncParams] = None
    ) -> None:
        self.logger = logger
        self.sync_logger = sync_logger

        self.store = store
        self.transport = transport
        self.credentials = credentials
        self.reconnect_params = reconnect_params or ReconnectParams()
        self.sync_params = sync_params or SyncParams()
        self.coordinator: Optional[TradeRequestCoordinator] = None

        self.connection_state = ConnectionState.DISCONNECTED
        self.auth_required = False
        self.stats = {
            "applied": 0,
            "discarded_stale": 0,
            "discarded_unsynced": 0,
            "discarded_superseded": 0,
            "protocol_errors": 0,
            "resyncs": 0,
        }

        # Generation of the connection whose events are currently trusted
        self._generation = 0
        self._event_subscription: Optional[Subscription] = None
        self._outcome_subscription: Optional[Subscription] = None
        self._lifecycle_subscription = transport.subscribe_lifecycle(self._on_lifecycle)
        self._changes: SubscriberList[MarketView] = SubscriberList("sync.changes")
        self._reconnect_task: Optional[asyncio.Task] = None
        self._resync_task: Optional[asyncio.Task] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Wiring and reads
    # ------------------------------------------------------------------

    def attach_coordinator(self, coordinator: TradeRequestCoordinator) -> None:
        """Route trade replies to the coordinator and cancel it on disconnect."""
        if self._outcome_subscription is not None:
            self._outcome_subscription.unsubscribe()
        self.coordinator = coordinator
        self._outcome_subscription = coordinator.subscribe_outcomes(self._on_trade_outcome)

    def subscribe(self, listener: Callable[[MarketView], None]) -> Subscription:
        """Receive a fresh MarketView after every change."""
        return self._changes.subscribe(listener)

    def view(self) -> MarketView:
        """Current immutable view of the market and session."""
        coordinator = self.coordinator
        return self.store.view(
            connection_state=self.connection_state,
            auth_required=self.auth_required,
            pending_trade=coordinator.pending_intent if coordinator else None,
            last_trade_outcome=coordinator.last_outcome if coordinator else None,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> ConnectionState:
        """
        Open the first connection with the stored credential.

        Authentication failures end in DISCONNECTED with auth_required set;
        transport failures fall through to the reconnect loop.
        """
        if self._closed:
            raise RuntimeError("Engine has been closed")

        self._transition(ConnectionState.CONNECTING, trigger="start")
        try:
            await self._open()
        except AuthenticationError as e:
            self._on_auth_failure(e)
        except TransportError as e:
            self.logger.warning(
                "Initial connection failed",
                error=str(e),
                error_type=type(e).__name__
            )
            self.store.mark_unsynced()
            self._transition(ConnectionState.RECONNECTING, trigger="connect_failed")
            self._schedule_reconnect()
        return self.connection_state

    def on_connected(self, generation: Optional[int] = None) -> None:
        """Trust events from the new connection only; wait for a full snapshot."""
        if generation is None:
            generation = self.transport.generation

        if self._event_subscription is not None:
            self._event_subscription.unsubscribe()

        self._generation = generation
        self._event_subscription = self.transport.subscribe_events(
            lambda event, bound=generation: self._on_event(bound, event)
        )

        self.auth_required = False
        self.store.mark_unsynced()
        self._transition(
            ConnectionState.CONNECTED,
            trigger="transport_connected",
            context={"generation": generation}
        )

    def on_disconnect(
        self,
        reason: DisconnectReason,
        error: Optional[Exception] = None
    ) -> None:
        """
        Handle the end of a connection.

        Logout clears all state. Any other reason keeps the last-known
        state visible, marks it unsynced and starts reconnecting.
        """
        if self._event_subscription is not None:
            self._event_subscription.unsubscribe()
            self._event_subscription = None

        if self.coordinator is not None:
            self.coordinator.cancel_pending()

        if reason == DisconnectReason.LOGOUT:
            self._cancel_reconnect()
            self.store.reset()
            self._transition(ConnectionState.DISCONNECTED, trigger=reason.value)
            return

        if reason == DisconnectReason.AUTH_FAILED:
            self._on_auth_failure(error or AuthenticationError("Credential rejected"))
            return

        self.store.mark_unsynced()
        self._transition(
            ConnectionState.RECONNECTING,
            trigger=reason.value,
            context={"error": str(error)} if error else None
        )
        if not self._closed:
            self._schedule_reconnect(immediate=reason == DisconnectReason.RESYNC)

    async def on_reconnect(self) -> bool:
        """
        Make one reconnection attempt with the same credential.

        Returns True once the transport is connected. The store stays
        unsynced until the server's full snapshot arrives.
        """
        try:
            await self._open()
        except AuthenticationError as e:
            self._on_auth_failure(e)
            return False
        except TransportError as e:
            self.logger.warning(
                "Reconnect attempt failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return False
        return True

    def request_resync(self) -> bool:
        """Drop the connection on purpose so the server sends a fresh snapshot."""
        if self.connection_state != ConnectionState.CONNECTED or not self.transport.connected:
            return False
        if self._resync_task is not None and not self._resync_task.done():
            return False

        self.stats["resyncs"] += 1
        self.sync_logger.warning(
            "Requesting full resync",
            current_day=self.store.current_day,
            epoch=self.store.epoch
        )
        self._resync_task = asyncio.get_running_loop().create_task(
            self.transport.disconnect(DisconnectReason.RESYNC)
        )
        return True

    async def logout(self) -> None:
        """Tear down the connection and clear all synchronized state."""
        self._cancel_reconnect()
        if self.transport.connected:
            await self.transport.disconnect(DisconnectReason.LOGOUT)
        # No-op if the transport already reported the logout
        self.on_disconnect(DisconnectReason.LOGOUT)

    async def close(self) -> None:
        """Cancel background work and release every subscription."""
        self._closed = True
        reconnect_task = self._cancel_reconnect()
        if reconnect_task is not None:
            await asyncio.gather(reconnect_task, return_exceptions=True)
        if self._resync_task is not None:
            self._resync_task.cancel()
            await asyncio.gather(self._resync_task, return_exceptions=True)
            self._resync_task = None
        self._transition(ConnectionState.DISCONNECTED, trigger="close")
        for subscription in (self._event_subscription, self._outcome_subscription,
                             self._lifecycle_subscription):
            if subscription is not None:
                subscription.unsubscribe()
        self._event_subscription = None
        self._outcome_subscription = None
        self._changes.clear()

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def on_full_snapshot(self, snapshot: FullSnapshot) -> bool:
        """Replace all state unconditionally and start a new epoch."""
        previous_day = self.store.current_day
        epoch = self.store.replace_snapshot(snapshot)
        self.stats["applied"] += 1

        self.sync_logger.info(
            "Applied full snapshot",
            epoch=epoch,
            previous_day=previous_day,
            current_day=snapshot.clock.current_day,
            history_len=len(snapshot.history),
            cash=snapshot.assets.cash,
            stocks=snapshot.assets.stocks
        )
        self._notify()
        return True

    def on_clock_tick(self, clock: GameClock) -> bool:
        """Replace the clock unless it would move the day backwards."""
        if self._discard_if_unsynced("clock-tick"):
            return False

        if clock.current_day < self.store.current_day:
            # Only a full snapshot may rewind the day
            self._discard(StaleEventError(
                "Clock tick would decrease current_day",
                event_day=clock.current_day,
                current_day=self.store.current_day
            ), level="warning")
            return False

        self.store.replace_clock(clock)
        self.stats["applied"] += 1
        self._notify()
        return True

    def on_price_advance(self, advance: PriceAdvance) -> bool:
        """Apply a new or re-delivered trading day."""
        if self._discard_if_unsynced("price-advance"):
            return False

        current_day = self.store.current_day

        if advance.day < current_day:
            self._discard(StaleEventError(
                "Price advance is older than the current day",
                event_day=advance.day,
                current_day=current_day
            ))
            return False

        if advance.day > current_day + 1:
            self._discard(StaleEventError(
                "Price advance skips days",
                event_day=advance.day,
                current_day=current_day,
                context={"gap": advance.day - current_day - 1}
            ), level="warning")
            if self.sync_params.resync_on_gap:
                self.request_resync()
            return False

        if advance.day > self.store.clock.total_days:
            self._discard(MalformedEventError(
                "Price advance beyond total_days",
                event_name="price-advance",
                field="day",
                raw_data=advance.day
            ), level="warning")
            return False

        if len(advance.history) < len(self.store.history):
            self._discard(StaleEventError(
                "Price advance carries a shorter history than already held",
                event_day=advance.day,
                current_day=current_day,
                context={"history_len": len(advance.history),
                         "held_len": len(self.store.history)}
            ))
            return False

        self.store.replace_history(advance.history, advance.price)
        self.store.advance_day(advance.day)
        self.stats["applied"] += 1
        self._notify()
        return True

    def on_trade_result(self, outcome: TradeOutcome) -> bool:
        """Hand a trade reply to the coordinator for correlation."""
        if self.coordinator is None:
            self.logger.warning("Trade reply with no coordinator attached", outcome=type(outcome).__name__)
            return False
        return self.coordinator.handle_trade_result(outcome)

    def dispatch(self, event: InboundEvent) -> bool:
        """Apply one decoded event. Protocol anomalies are logged, never raised."""
        try:
            if isinstance(event, FullSnapshot):
                return self.on_full_snapshot(event)
            if isinstance(event, ClockTick):
                return self.on_clock_tick(event.clock)
            if isinstance(event, PriceAdvance):
                return self.on_price_advance(event)
            if isinstance(event, TradeResult):
                return self.on_trade_result(event.outcome)
            raise MalformedEventError(f"Unsupported event type {type(event).__name__}")
        except ProtocolError as e:
            self._discard(e, level="warning")
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _open(self) -> None:
        token = self.credentials.get()
        if not token:
            raise AuthenticationError("No credential stored")
        await self.transport.connect(token)

    def _on_event(self, generation: int, event: InboundEvent) -> None:
        if self._closed or generation != self._generation:
            self.stats["discarded_superseded"] += 1
            self.logger.debug(
                "Dropped event from superseded connection",
                event_type=type(event).__name__,
                generation=generation,
                current_generation=self._generation
            )
            return
        self.dispatch(event)

    def _on_lifecycle(self, signal: LifecycleSignal) -> None:
        if signal.kind == LifecycleKind.CONNECTED:
            self.on_connected(signal.generation)
        elif signal.kind == LifecycleKind.ERROR:
            self.stats["protocol_errors"] += 1
            self.logger.warning(
                "Transport reported an error",
                error=str(signal.error),
                error_type=type(signal.error).__name__,
                generation=signal.generation,
                context=getattr(signal.error, "context", {})
            )
        elif signal.kind == LifecycleKind.DISCONNECTED:
            if signal.generation != self._generation:
                self.stats["discarded_superseded"] += 1
                return
            self.on_disconnect(signal.reason or DisconnectReason.TRANSPORT_CLOSED, signal.error)

    def _on_trade_outcome(self, outcome: TradeOutcome) -> None:
        self._notify()

    def _on_auth_failure(self, error: AuthenticationError) -> None:
        self._cancel_reconnect()
        if self._event_subscription is not None:
            self._event_subscription.unsubscribe()
            self._event_subscription = None
        if self.coordinator is not None:
            self.coordinator.cancel_pending("session expired")

        self.credentials.clear()
        self.store.reset()
        self.auth_required = True
        self.logger.error(
            "Authentication failed, re-authentication required",
            error=str(error),
            status_code=getattr(error, "status_code", None)
        )
        self._transition(ConnectionState.DISCONNECTED, trigger=DisconnectReason.AUTH_FAILED.value)

    def _discard_if_unsynced(self, event_name: str) -> bool:
        if not self.store.unsynced:
            return False
        # The pending full snapshot supersedes incremental updates
        self.stats["discarded_unsynced"] += 1
        self.sync_logger.debug("Discarded incremental event while unsynced", event_name=event_name)
        return True

    def _discard(self, error: ProtocolError, level: str = "debug") -> None:
        key = "discarded_stale" if isinstance(error, StaleEventError) else "protocol_errors"
        self.stats[key] += 1
        getattr(self.sync_logger, level)(
            "Discarded inbound event",
            error=str(error),
            error_type=type(error).__name__,
            context=error.context,
            epoch=self.store.epoch
        )

    def _transition(
        self,
        new_state: ConnectionState,
        trigger: str,
        context: Optional[dict] = None
    ) -> None:
        old_state = self.connection_state
        self.connection_state = new_state
        if old_state != new_state:
            log_connection_transition(
                self.sync_logger,
                from_state=old_state.value,
                to_state=new_state.value,
                trigger=trigger,
                context=context
            )
        self._notify()

    def _notify(self) -> None:
        if len(self._changes):
            self._changes.publish(self.view())

    def _schedule_reconnect(self, immediate: bool = False) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect_loop(immediate)
        )

    def _cancel_reconnect(self) -> Optional[asyncio.Task]:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    async def _reconnect_loop(self, immediate: bool) -> None:
        params = self.reconnect_params
        delays = backoff_delays(
            params.initial_delay_seconds,
            params.multiplier,
            params.max_delay_seconds
        )
        attempt = 0
        while not self._closed and self.connection_state == ConnectionState.RECONNECTING:
            delay = 0.0 if immediate and attempt == 0 else next(delays)
            attempt += 1
            await asyncio.sleep(delay)

            if self._closed or self.connection_state != ConnectionState.RECONNECTING:
                return

            self.logger.info("Reconnecting", attempt=attempt, delay_seconds=delay)
            if await self.on_reconnect():
                return

            if params.max_attempts and attempt >= params.max_attempts:
                self.logger.error("Giving up reconnecting", attempts=attempt)
                self._transition(ConnectionState.DISCONNECTED, trigger="reconnect_exhausted")
                return
