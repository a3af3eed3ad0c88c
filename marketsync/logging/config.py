"""
Centralized logging configuration for the market synchronization client.

This module provides standardized logging configuration using structlog
for all components. The synchronization engine and the trade coordinator
use dedicated subsystem loggers so connection transitions and trade
resolutions can be filtered out of the stream.
"""
import logging
import sys
from typing import TYPE_CHECKING, Any, Optional

import structlog
from structlog.types import FilteringBoundLogger

if TYPE_CHECKING:
    from ..config.defaults import LoggingParams
    from ..data.models import TradeIntent, TradeOutcome


def _build_processors(
    include_timestamp: bool,
    include_caller: bool,
    extra_processors: Optional[list],
    format_json: bool
) -> list:
    """Assemble the structlog processor chain, renderer last."""
    # Level filter and logger name come from the stdlib logger
    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    # Caller location, mostly useful when tracing reconnect loops
    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    # Colors only when a terminal is attached
    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    return processors


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the client and its session components.

    Call once at startup; MarketSession.from_config does this from the
    logging section of client.yaml.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: Emit one JSON object per line instead of console output
        include_timestamp: Add an ISO timestamp to each entry
        include_caller: Add filename and line number to each entry
        extra_processors: Processors inserted just before the renderer
    """
    log_level = getattr(logging, level.upper())

    # structlog renders; stdlib only routes to stdout
    logging.basicConfig(level=log_level, stream=sys.stdout, format="%(message)s")

    # websockets logs every frame at DEBUG
    logging.getLogger("websockets").setLevel(max(log_level, logging.INFO))

    structlog.configure(
        processors=_build_processors(include_timestamp, include_caller,
                                     extra_processors, format_json),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_params(params: "LoggingParams") -> None:
    """Configure logging from the logging section of a ClientConfig."""
    configure_logging(
        level=params.level,
        format_json=params.format_json,
        include_timestamp=params.include_timestamp,
        include_caller=params.include_caller,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a structlog logger for a module (pass __name__)."""
    return structlog.get_logger(name)


def get_sync_logger(name: str) -> FilteringBoundLogger:
    """Get a logger bound to the synchronization subsystem."""
    return get_logger(name).bind(subsystem="sync")


def get_trade_logger(name: str) -> FilteringBoundLogger:
    """Get a logger bound to the trading subsystem."""
    return get_logger(name).bind(subsystem="trading")


def log_connection_transition(
    logger: FilteringBoundLogger,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a connection state transition with standardized format.

    Args:
        logger: Structlog logger instance
        from_state: Previous connection state
        to_state: New connection state
        trigger: What caused the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("Connection state transition")


def log_trade_resolution(
    logger: FilteringBoundLogger,
    intent: "TradeIntent",
    outcome: "TradeOutcome",
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log how a pending trade request was resolved.

    Successful trades log at info level, failures at warning level.
    """
    bound_logger = logger.bind(
        action=intent.action.value,
        quantity=intent.quantity,
        outcome=type(outcome).__name__,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if outcome.succeeded:
        bound_logger.info(
            "Trade confirmed",
            execution_price=outcome.execution_price,
            new_cash=outcome.new_cash,
            new_stocks=outcome.new_stocks
        )
    else:
        bound_logger.warning(
            "Trade failed",
            failure_kind=outcome.kind.value,
            reason=outcome.reason
        )
