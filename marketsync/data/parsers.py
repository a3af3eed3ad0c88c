"""
Wire codec for the session event stream.

Every frame is a JSON text message of the form {"event": name, "data": payload}.
Inbound payloads are decoded into the closed set of InboundEvent variants;
anything that does not match is rejected here, at the transport boundary,
instead of being passed on as a loose dictionary.
"""

import json
import math
from typing import Any, Optional

from ..config.defaults import EventNames
from ..errors import MalformedEventError, UnknownEventError
from .models import (
    ClockTick,
    FailureKind,
    FullSnapshot,
    GameClock,
    InboundEvent,
    PersonalAssets,
    PriceAdvance,
    PricePoint,
    TradeAction,
    TradeFailure,
    TradeIntent,
    TradeResult,
    TradeSuccess,
)

# Inbound names still emitted by older game servers
LEGACY_EVENT_ALIASES = {
    "FULL_SYNC_STATE": "full_sync",
    "GAME_STATE_UPDATE": "clock_tick",
}

_MISSING = object()


def decode_frame(raw: Any) -> tuple[str, Any]:
    """Split a raw text frame into (event name, payload)."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEventError("Frame is not valid UTF-8") from e

    try:
        frame = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise MalformedEventError("Frame is not valid JSON", raw_data=raw) from e

    if not isinstance(frame, dict):
        raise MalformedEventError("Frame must be a JSON object", raw_data=raw)

    name = frame.get("event")
    if not isinstance(name, str) or not name:
        raise MalformedEventError("Frame has no event name", raw_data=raw)

    return name, frame.get("data")


def encode_frame(name: str, data: Any) -> str:
    """Serialize an outbound event into a text frame."""
    return json.dumps({"event": name, "data": data}, separators=(",", ":"))


class _PayloadReader:
    """Typed field access over one event payload."""

    def __init__(self, event_name: str, payload: Any, path: str = ""):
        if not isinstance(payload, dict):
            raise MalformedEventError(
                f"{path or 'payload'} must be an object",
                event_name=event_name,
                field=path or None,
                raw_data=payload
            )
        self.event_name = event_name
        self.payload = payload
        self.path = path

    def _field_path(self, key: str) -> str:
        return f"{self.path}.{key}" if self.path else key

    def _raw(self, *keys: str, default: Any = _MISSING) -> tuple[str, Any]:
        for key in keys:
            if key in self.payload:
                return key, self.payload[key]
        if default is not _MISSING:
            return keys[0], default
        raise MalformedEventError(
            f"Missing field {self._field_path(keys[0])}",
            event_name=self.event_name,
            field=self._field_path(keys[0]),
            raw_data=self.payload
        )

    def _fail(self, key: str, message: str, value: Any) -> MalformedEventError:
        return MalformedEventError(
            f"{self._field_path(key)} {message}",
            event_name=self.event_name,
            field=self._field_path(key),
            raw_data=value
        )

    def integer(self, *keys: str, minimum: Optional[int] = None) -> int:
        key, value = self._raw(*keys)
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not isinstance(value, int) or isinstance(value, bool):
            raise self._fail(key, "must be an integer", value)
        if minimum is not None and value < minimum:
            raise self._fail(key, f"must be >= {minimum}", value)
        return value

    def number(self, *keys: str, minimum: Optional[float] = None) -> float:
        key, value = self._raw(*keys)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
            raise self._fail(key, "must be a finite number", value)
        if minimum is not None and value < minimum:
            raise self._fail(key, f"must be >= {minimum}", value)
        return float(value)

    def boolean(self, *keys: str) -> bool:
        key, value = self._raw(*keys)
        if not isinstance(value, bool):
            raise self._fail(key, "must be a boolean", value)
        return value

    def text(self, *keys: str, optional: bool = False) -> Optional[str]:
        key, value = self._raw(*keys, default=None) if optional else self._raw(*keys)
        if value is None and optional:
            return None
        if not isinstance(value, str):
            raise self._fail(key, "must be a string", value)
        return value

    def child(self, *keys: str) -> "_PayloadReader":
        key, value = self._raw(*keys)
        return _PayloadReader(self.event_name, value, self._field_path(key))

    def items(self, *keys: str) -> list["_PayloadReader"]:
        key, value = self._raw(*keys)
        if not isinstance(value, list):
            raise self._fail(key, "must be an array", value)
        field_path = self._field_path(key)
        return [
            _PayloadReader(self.event_name, item, f"{field_path}[{i}]")
            for i, item in enumerate(value)
        ]


def _parse_clock(reader: _PayloadReader) -> GameClock:
    clock = GameClock(
        current_day=reader.integer("currentDay", minimum=0),
        is_running=reader.boolean("isRunning", "isGameStarted"),
        countdown_seconds=reader.integer("countdownSeconds", "countdown", minimum=0),
        total_days=reader.integer("totalDays", minimum=1),
    )
    if clock.current_day > clock.total_days:
        raise MalformedEventError(
            "currentDay exceeds totalDays",
            event_name=reader.event_name,
            field=reader._field_path("currentDay"),
            raw_data=reader.payload
        )
    return clock


def _parse_history(readers: list[_PayloadReader], event_name: str) -> tuple[PricePoint, ...]:
    history = tuple(
        PricePoint(
            day=item.integer("day", minimum=1),
            price=item.number("price", minimum=0.0),
            title=item.text("title", optional=True),
            body=item.text("body", "news", optional=True),
            trend=item.text("trend", "effectiveTrend", optional=True) or "",
        )
        for item in readers
    )
    for index, point in enumerate(history):
        if point.day != index + 1:
            raise MalformedEventError(
                f"history is not dense: position {index} holds day {point.day}",
                event_name=event_name,
                field=f"history[{index}].day",
                raw_data=point.day
            )
    return history


def _parse_assets(reader: _PayloadReader) -> PersonalAssets:
    return PersonalAssets(
        cash=reader.number("cash"),
        stocks=reader.integer("stocks", minimum=0),
        debt=reader.number("debt", minimum=0.0),
    )


def _parse_action(reader: _PayloadReader) -> TradeAction:
    raw = reader.text("action")
    try:
        return TradeAction(raw.upper())
    except ValueError as e:
        raise MalformedEventError(
            f"Unknown trade action {raw!r}",
            event_name=reader.event_name,
            field="action",
            raw_data=raw
        ) from e


class EventCodec:
    """Maps wire event names to typed events and back."""

    def __init__(self, names: Optional[EventNames] = None, accept_legacy_names: bool = True):
        self.names = names or EventNames()
        self._inbound = {
            self.names.full_sync: self._decode_full_sync,
            self.names.clock_tick: self._decode_clock_tick,
            self.names.price_advance: self._decode_price_advance,
            self.names.trade_success: self._decode_trade_success,
            self.names.trade_failure: self._decode_trade_failure,
        }
        if accept_legacy_names:
            for legacy, attr in LEGACY_EVENT_ALIASES.items():
                self._inbound.setdefault(legacy, self._inbound[getattr(self.names, attr)])

    def decode(self, name: str, payload: Any) -> InboundEvent:
        """Decode one inbound event into its typed variant."""
        decoder = self._inbound.get(name)
        if decoder is None:
            raise UnknownEventError(f"Unknown inbound event {name!r}", event_name=name)
        return decoder(name, payload)

    def decode_raw(self, raw: Any) -> InboundEvent:
        """Decode a raw text frame."""
        name, payload = decode_frame(raw)
        return self.decode(name, payload)

    def encode_intent(self, intent: TradeIntent) -> str:
        """Encode a trade intent as an outbound frame."""
        name = self.names.submit_buy if intent.action == TradeAction.BUY else self.names.submit_sell
        return encode_frame(name, {"quantity": intent.quantity})

    def _decode_full_sync(self, name: str, payload: Any) -> FullSnapshot:
        reader = _PayloadReader(name, payload)
        price = reader.child("price")
        return FullSnapshot(
            clock=_parse_clock(reader.child("clock", "gameStatus")),
            current_price=price.number("current", minimum=0.0),
            history=_parse_history(price.items("history"), name),
            assets=_parse_assets(reader.child("personal")),
        )

    def _decode_clock_tick(self, name: str, payload: Any) -> ClockTick:
        return ClockTick(clock=_parse_clock(_PayloadReader(name, payload)))

    def _decode_price_advance(self, name: str, payload: Any) -> PriceAdvance:
        reader = _PayloadReader(name, payload)
        advance = PriceAdvance(
            day=reader.integer("day", minimum=1),
            price=reader.number("price", minimum=0.0),
            history=_parse_history(reader.items("history"), name),
        )
        if advance.history and advance.history[-1].day != advance.day:
            raise MalformedEventError(
                f"history ends at day {advance.history[-1].day}, expected {advance.day}",
                event_name=name,
                field="history",
                raw_data=advance.day
            )
        return advance

    def _decode_trade_success(self, name: str, payload: Any) -> TradeResult:
        reader = _PayloadReader(name, payload)
        return TradeResult(outcome=TradeSuccess(
            action=_parse_action(reader),
            quantity=reader.integer("amount", "quantity", minimum=1),
            execution_price=reader.number("price", minimum=0.0),
            new_cash=reader.number("newCash"),
            new_stocks=reader.integer("newStocks", minimum=0),
        ))

    def _decode_trade_failure(self, name: str, payload: Any) -> TradeResult:
        reader = _PayloadReader(name, payload)
        return TradeResult(outcome=TradeFailure(
            reason=reader.text("message"),
            kind=FailureKind.REJECTED,
        ))
