"""Tests for the structured logging helpers."""

import logging
from unittest.mock import Mock, patch

import structlog

from marketsync.data.models import FailureKind, TradeAction, TradeFailure, TradeIntent, TradeSuccess
from marketsync.logging.config import (
    _build_processors,
    configure_logging,
    log_connection_transition,
    log_trade_resolution,
)


class TestConnectionTransitionLogging:
    """Connection transitions are logged with a fixed set of keys."""

    def test_transition_binds_states(self):
        logger = Mock()
        bound = logger.bind.return_value

        log_connection_transition(logger, "connected", "reconnecting", trigger="transport_error")

        logger.bind.assert_called_once_with(
            from_state="connected", to_state="reconnecting", trigger="transport_error"
        )
        bound.info.assert_called_once_with("Connection state transition")

    def test_transition_with_context(self):
        logger = Mock()
        bound = logger.bind.return_value

        log_connection_transition(logger, "connecting", "connected", trigger="transport_connected",
                                  context={"generation": 2})

        bound.bind.assert_called_once_with(context={"generation": 2})
        bound.bind.return_value.info.assert_called_once()


class TestTradeResolutionLogging:
    """Trade resolutions log at info on success and warning on failure."""

    def test_success_logged_at_info(self):
        logger = Mock()
        bound = logger.bind.return_value
        outcome = TradeSuccess(TradeAction.BUY, 3, 52.10, 847.70, 13)

        log_trade_resolution(logger, TradeIntent.buy(3), outcome)

        logger.bind.assert_called_once_with(action="BUY", quantity=3, outcome="TradeSuccess")
        bound.info.assert_called_once_with(
            "Trade confirmed", execution_price=52.10, new_cash=847.70, new_stocks=13
        )
        bound.warning.assert_not_called()

    def test_failure_logged_at_warning(self):
        logger = Mock()
        bound = logger.bind.return_value.bind.return_value
        outcome = TradeFailure(reason="no response from server", kind=FailureKind.TIMEOUT)

        log_trade_resolution(logger, TradeIntent.sell(1), outcome, context={"epoch": 4})

        bound.warning.assert_called_once_with(
            "Trade failed", failure_kind="timeout", reason="no response from server"
        )
        bound.info.assert_not_called()


class TestConfigureLogging:
    """Processor chain and library logger levels."""

    def test_json_renderer_is_last(self):
        processors = _build_processors(include_timestamp=True, include_caller=False,
                                       extra_processors=None, format_json=True)

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert any(isinstance(p, structlog.processors.TimeStamper) for p in processors)

    def test_extra_processors_before_renderer(self):
        extra = Mock()

        processors = _build_processors(include_timestamp=False, include_caller=True,
                                       extra_processors=[extra], format_json=False)

        assert processors[-2] is extra
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert any(isinstance(p, structlog.processors.CallsiteParameterAdder) for p in processors)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)

    def test_configure_quiets_websockets_frames(self):
        websockets_logger = logging.getLogger("websockets")
        previous = websockets_logger.level
        try:
            with patch("marketsync.logging.config.structlog.configure") as configure, \
                 patch("marketsync.logging.config.logging.basicConfig"):
                configure_logging(level="debug", format_json=True)

            assert websockets_logger.level == logging.INFO
            kwargs = configure.call_args.kwargs
            assert isinstance(kwargs["processors"][-1], structlog.processors.JSONRenderer)
            assert kwargs["wrapper_class"] is structlog.stdlib.BoundLogger
        finally:
            websockets_logger.setLevel(previous)
