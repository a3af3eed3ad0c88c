"""
Trade request coordinator.

Turns a TradeIntent into exactly one outbound request and resolves it to
exactly one TradeOutcome, with at most one request in flight. The protocol
carries no request identifier, so replies are correlated by order: the
server handles trades for one connection one at a time, which means the
next trade reply belongs to the oldest request still waiting for one.
"""

import asyncio
from collections import deque
from typing import Callable, Optional

from ..config.defaults import TradingParams
from ..data.models import (
    FailureKind,
    PersonalAssets,
    TradeAction,
    TradeFailure,
    TradeIntent,
    TradeOutcome,
    TradeSuccess,
)
from ..errors import (
    AlreadyPendingError,
    InvalidTradeIntentError,
    MarketClosedError,
    SessionUnavailableError,
    TransportError,
)
from ..logging.config import get_trade_logger, log_trade_resolution
from ..state.models import ConnectionState, CoordinatorState
from ..state.store import MarketStateStore
from ..transport.base import SessionTransport
from ..utils.subscriptions import SubscriberList, Subscription
from ..utils.timers import ScheduledTimer

trade_logger = get_trade_logger(__name__)


def _matches(intent: TradeIntent, outcome: TradeSuccess) -> bool:
    return intent.action == outcome.action and intent.quantity == outcome.quantity


class TradeRequestCoordinator:
    """Single-flight trade request state machine: IDLE -> PENDING -> IDLE."""

    def __init__(
        self,
        store: MarketStateStore,
        transport: SessionTransport,
        connection_state: Callable[[], ConnectionState],
        params: Optional[TradingParams] = None
    ):
        self.logger = trade_logger
        self.store = store
        self.transport = transport
        self.params = params or TradingParams()
        self._connection_state = connection_state

        self.state = CoordinatorState.IDLE
        self.pending_intent: Optional[TradeIntent] = None
        self.last_outcome: Optional[TradeOutcome] = None

        self._future: Optional[asyncio.Future] = None
        self._timer = ScheduledTimer("trade-timeout")
        # Timed-out requests whose late reply has not arrived yet
        self._orphans: deque[TradeIntent] = deque()
        self._outcomes: SubscriberList[TradeOutcome] = SubscriberList("trading.outcomes")

    @property
    def orphan_count(self) -> int:
        return len(self._orphans)

    def subscribe_outcomes(self, handler: Callable[[TradeOutcome], None]) -> Subscription:
        """Receive every resolved outcome, including timeouts and cancellations."""
        return self._outcomes.subscribe(handler)

    def submit(self, intent: TradeIntent) -> "asyncio.Future[TradeOutcome]":
        """
        Send a trade intent and return a future for its outcome.

        Runs synchronously: when it returns, the request is either queued
        on the transport and the coordinator is PENDING, or it raised.

        Raises:
            InvalidTradeIntentError: unknown action or non-positive quantity
            AlreadyPendingError: another request is in flight
            SessionUnavailableError: not connected, or not yet synchronized
            MarketClosedError: the game clock is stopped
        """
        self._validate_intent(intent)

        if self.state != CoordinatorState.IDLE:
            raise AlreadyPendingError(
                "A trade request is already pending",
                pending_action=self.pending_intent.action.value if self.pending_intent else None,
                pending_quantity=self.pending_intent.quantity if self.pending_intent else None
            )

        connection_state = self._connection_state()
        if connection_state != ConnectionState.CONNECTED:
            raise SessionUnavailableError(
                "Session is not connected",
                connection_state=connection_state.value
            )

        if self.store.unsynced:
            raise SessionUnavailableError(
                "Session is not synchronized yet",
                connection_state=connection_state.value
            )

        if self.params.require_running_market and not self.store.clock.is_running:
            raise MarketClosedError(
                "Market is not running",
                current_day=self.store.clock.current_day
            )

        try:
            self.transport.send(intent)
        except TransportError as e:
            raise SessionUnavailableError(
                "Session transport refused the request",
                connection_state=connection_state.value
            ) from e

        future = asyncio.get_running_loop().create_future()
        self.state = CoordinatorState.PENDING
        self.pending_intent = intent
        self._future = future
        self._timer.start(self.params.timeout_seconds, self._on_timeout, intent)

        self.logger.info(
            "Trade request sent",
            action=intent.action.value,
            quantity=intent.quantity,
            timeout_seconds=self.params.timeout_seconds
        )
        return future

    def handle_trade_result(self, outcome: TradeOutcome) -> bool:
        """
        Correlate an inbound trade reply with the request it answers.

        Returns True if the reply resolved the pending request.
        """
        if self._orphans:
            orphan = self._orphans[0]
            lost_reply = (
                isinstance(outcome, TradeSuccess)
                and not _matches(orphan, outcome)
                and self.pending_intent is not None
                and _matches(self.pending_intent, outcome)
            )
            if lost_reply:
                # Server never answered the orphans; this reply is for the pending request
                self.logger.warning("Dropping unanswered timed-out requests", orphans=len(self._orphans))
                self._orphans.clear()
            else:
                self._orphans.popleft()
                self.logger.warning(
                    "Ignoring late reply for timed-out request",
                    action=orphan.action.value,
                    quantity=orphan.quantity,
                    outcome=type(outcome).__name__
                )
                return False

        if self.state != CoordinatorState.PENDING or self.pending_intent is None:
            self.logger.warning("Ignoring uncorrelated trade reply", outcome=type(outcome).__name__)
            return False

        if isinstance(outcome, TradeSuccess) and not _matches(self.pending_intent, outcome):
            self.logger.warning(
                "Ignoring trade reply that does not match the pending request",
                pending_action=self.pending_intent.action.value,
                pending_quantity=self.pending_intent.quantity,
                reply_action=outcome.action.value,
                reply_quantity=outcome.quantity
            )
            return False

        self.resolve(outcome)
        return True

    def resolve(self, outcome: TradeOutcome) -> None:
        """
        Resolve the pending request and return to IDLE.

        Success replaces cash and stocks with the server's values; debt is
        not part of the reply and is kept. Failure leaves assets untouched.
        """
        if self.state != CoordinatorState.PENDING or self.pending_intent is None:
            self.logger.debug("No pending request to resolve", outcome=type(outcome).__name__)
            return

        if isinstance(outcome, TradeSuccess):
            self.store.replace_assets(PersonalAssets(
                cash=outcome.new_cash,
                stocks=outcome.new_stocks,
                debt=self.store.assets.debt,
            ))

        self._finish(outcome)

    def cancel_pending(self, reason: str = "connection lost") -> bool:
        """Fail the pending request because the session dropped."""
        self._orphans.clear()
        if self.state != CoordinatorState.PENDING:
            return False
        self._finish(TradeFailure(reason=reason, kind=FailureKind.CONNECTION_LOST))
        return True

    def close(self) -> None:
        """Cancel timers and pending work, release outcome subscribers."""
        self.cancel_pending("session closed")
        self._timer.cancel()
        self._outcomes.clear()

    def _on_timeout(self, intent: TradeIntent) -> None:
        if self.state != CoordinatorState.PENDING or self.pending_intent is not intent:
            return
        self._orphans.append(intent)
        self._finish(TradeFailure(reason="no response from server", kind=FailureKind.TIMEOUT))

    def _finish(self, outcome: TradeOutcome) -> None:
        intent = self.pending_intent
        future = self._future

        self._timer.cancel()
        self.state = CoordinatorState.IDLE
        self.pending_intent = None
        self._future = None
        self.last_outcome = outcome

        log_trade_resolution(
            self.logger,
            intent,
            outcome,
            context={"epoch": self.store.epoch, "orphans": len(self._orphans)}
        )

        if future is not None and not future.done():
            future.set_result(outcome)
        self._outcomes.publish(outcome)

    @staticmethod
    def _validate_intent(intent: TradeIntent) -> None:
        if not isinstance(intent, TradeIntent) or not isinstance(intent.action, TradeAction):
            raise InvalidTradeIntentError("Trade intent must carry a BUY or SELL action")
        quantity = intent.quantity
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise InvalidTradeIntentError("Quantity must be a positive integer", quantity=quantity)
