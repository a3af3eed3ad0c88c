"""Default configuration parameters for the market synchronization client."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TransportParams:
    """WebSocket session transport parameters."""
    url: str = "ws://127.0.0.1:8000/ws"
    open_timeout_seconds: float = 10.0               # Handshake deadline
    ping_interval_seconds: float = 20.0              # Keepalive ping period
    close_timeout_seconds: float = 5.0               # Closing handshake deadline


@dataclass(frozen=True)
class ReconnectParams:
    """Backoff policy used after transient connection loss."""
    initial_delay_seconds: float = 0.5
    multiplier: float = 2.0
    max_delay_seconds: float = 30.0
    max_attempts: int = 0                            # 0 = retry forever


@dataclass(frozen=True)
class TradingParams:
    """Trade request coordinator parameters."""
    timeout_seconds: float = 10.0                    # Pending request deadline
    require_running_market: bool = False             # Also refuse intents locally while the game is stopped


@dataclass(frozen=True)
class SyncParams:
    """Synchronization engine parameters."""
    resync_on_gap: bool = True                       # Reconnect for a fresh snapshot on day gaps


@dataclass(frozen=True)
class EventNames:
    """Wire names for inbound and outbound events."""
    full_sync: str = "full-sync"
    clock_tick: str = "clock-tick"
    price_advance: str = "price-advance"
    trade_success: str = "trade-success"
    trade_failure: str = "trade-failure"
    submit_buy: str = "submit-buy"
    submit_sell: str = "submit-sell"


@dataclass(frozen=True)
class LoggingParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False
    include_timestamp: bool = True
    include_caller: bool = False


@dataclass(frozen=True)
class ClientConfig:
    """Complete client configuration."""
    transport: TransportParams
    reconnect: ReconnectParams
    trading: TradingParams
    sync: SyncParams
    events: EventNames
    logging: LoggingParams


def get_default_config() -> ClientConfig:
    """Get the default configuration instance."""
    return ClientConfig(
        transport=TransportParams(),
        reconnect=ReconnectParams(),
        trading=TradingParams(),
        sync=SyncParams(),
        events=EventNames(),
        logging=LoggingParams(),
    )
