"""
Error handling tests for the market synchronization client.

Tests cover the error classification hierarchy, user-facing messages, and
how protocol anomalies are absorbed instead of corrupting the store.
"""

import pytest

from marketsync.data.models import FailureKind, GameClock, PricePoint, PriceAdvance, TradeFailure
from marketsync.errors import (
    AlreadyPendingError,
    AuthenticationError,
    ConfigurationError,
    InvalidTradeIntentError,
    MalformedEventError,
    MarketClosedError,
    ProtocolError,
    SessionError,
    SessionUnavailableError,
    StaleEventError,
    StateInvariantError,
    SystemFailureError,
    TradeRequestError,
    TransportError,
    UnknownEventError,
)

from conftest import make_snapshot


def connect(engine, transport):
    transport.generation += 1
    transport._connected = True
    engine.on_connected(transport.generation)


class TestErrorClassification:
    """Test error classification system."""

    def test_protocol_error_hierarchy(self):
        """Test that protocol errors are recoverable and carry details."""
        base_error = ProtocolError("base error")
        assert base_error.recoverable is True
        assert base_error.context == {}

        malformed = MalformedEventError("bad field", event_name="full-sync",
                                        field="clock.currentDay", raw_data="x")
        assert isinstance(malformed, ProtocolError)
        assert malformed.field == "clock.currentDay"
        assert malformed.raw_data == "x"

        unknown = UnknownEventError("unknown", event_name="leaderboard")
        assert isinstance(unknown, ProtocolError)
        assert unknown.event_name == "leaderboard"

        stale = StaleEventError("old", event_day=3, current_day=5, context={"gap": 0})
        assert stale.event_day == 3
        assert stale.current_day == 5
        assert stale.context == {"gap": 0}

    def test_session_error_hierarchy(self):
        """Test that authentication failures are not recoverable."""
        auth = AuthenticationError("rejected", status_code=401)
        assert isinstance(auth, SessionError)
        assert auth.recoverable is False
        assert auth.status_code == 401
        assert auth.user_message == "session expired, please re-authenticate"

        transport = TransportError("lost", url="ws://host/ws", close_code=1006)
        assert transport.recoverable is True
        assert transport.close_code == 1006
        assert transport.user_message == "not connected"

    def test_trade_request_error_hierarchy(self):
        """Test that local trade rejections share one base class."""
        errors = [
            AlreadyPendingError("pending", pending_action="BUY", pending_quantity=3),
            SessionUnavailableError("offline", connection_state="reconnecting"),
            MarketClosedError("closed", current_day=0),
            InvalidTradeIntentError("bad", quantity=0),
        ]
        for error in errors:
            assert isinstance(error, TradeRequestError)
            assert error.recoverable is False
            assert error.user_message

        assert errors[1].user_message == "not connected"
        assert errors[0].user_message != errors[1].user_message

    def test_system_failure_hierarchy(self):
        """Test that system failures are not recoverable."""
        invariant = StateInvariantError("broken", invariant="history_dense")
        assert isinstance(invariant, SystemFailureError)
        assert invariant.recoverable is False
        assert invariant.invariant == "history_dense"

        config = ConfigurationError("invalid", errors=["a"])
        assert config.errors == ["a"]
        assert ConfigurationError("invalid").errors == []


class TestProtocolErrorRecovery:
    """Protocol anomalies are logged and counted, never raised."""

    def test_dispatch_absorbs_protocol_errors(self, engine, transport):
        """Test that an invalid event leaves the store untouched."""
        connect(engine, transport)
        transport.deliver(make_snapshot(day=5, total_days=5))
        before = engine.view()

        advance = PriceAdvance(day=6, price=1.0, history=tuple(
            PricePoint(day=d, price=1.0) for d in range(1, 7)
        ))
        assert engine.dispatch(advance) is False

        after = engine.view()
        assert after.history == before.history
        assert engine.stats["protocol_errors"] == 1

    def test_decode_errors_surface_as_protocol_errors(self, transport):
        """Test that the codec raises ProtocolError subclasses only."""
        with pytest.raises(ProtocolError):
            transport.codec.decode("full-sync", {"clock": {}})
        with pytest.raises(ProtocolError):
            transport.codec.decode("leaderboard", {})

    def test_unsupported_event_object(self, engine, transport):
        """Test that a non-event object is rejected without raising."""
        connect(engine, transport)
        assert engine.dispatch(object()) is False
        assert engine.stats["protocol_errors"] == 1

    def test_store_invariant_errors_propagate(self, store):
        """Test that invariant breaks are raised, not absorbed."""
        with pytest.raises(StateInvariantError):
            store.replace_clock(GameClock(current_day=3, is_running=True,
                                          countdown_seconds=-1, total_days=10))


class TestUserMessages:
    """Every user-facing message uses one of the three shown phrasings."""

    SHOWN = ("not connected", "session expired, please re-authenticate")

    def assert_shown_form(self, message):
        assert message in self.SHOWN or message.startswith("trade rejected: ")

    def test_error_messages(self):
        """Test the user_message of every raisable error class."""
        errors = [
            SessionError("x"),
            AuthenticationError("x"),
            TransportError("x"),
            TradeRequestError("x"),
            AlreadyPendingError("x"),
            SessionUnavailableError("x"),
            MarketClosedError("x"),
            InvalidTradeIntentError("x"),
        ]
        for error in errors:
            self.assert_shown_form(error.user_message)

        assert AlreadyPendingError("x").user_message == "trade rejected: a trade is already in progress"
        assert MarketClosedError("x").user_message == "trade rejected: market is not open"

    def test_failure_outcome_messages(self):
        """Test the user_message of each failure kind."""
        for kind in FailureKind:
            self.assert_shown_form(TradeFailure(reason="no response from server", kind=kind).user_message)
        assert TradeFailure("x", FailureKind.CONNECTION_LOST).user_message == "not connected"
