"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from .defaults import (
    EventNames,
    LoggingParams,
    ReconnectParams,
    SyncParams,
    TradingParams,
    TransportParams,
)

_KNOWN_SECTIONS = {
    "transport": TransportParams,
    "reconnect": ReconnectParams,
    "trading": TradingParams,
    "sync": SyncParams,
    "events": EventNames,
    "logging": LoggingParams,
}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate(config: dict[str, Any]) -> list[ValidationError]:
        """Validate a fully merged configuration dictionary."""
        errors = ConfigValidator.validate_structure(config)
        if errors:
            return errors

        errors.extend(ConfigValidator.validate_transport(config["transport"]))
        errors.extend(ConfigValidator.validate_reconnect(config["reconnect"]))
        errors.extend(ConfigValidator.validate_trading(config["trading"]))
        errors.extend(ConfigValidator.validate_sync(config["sync"]))
        errors.extend(ConfigValidator.validate_events(config["events"]))
        errors.extend(ConfigValidator.validate_logging(config["logging"]))
        return errors

    @staticmethod
    def validate_structure(config: dict[str, Any]) -> list[ValidationError]:
        """Reject unknown sections and keys so typos do not pass silently."""
        errors = []

        for section, value in config.items():
            section_cls = _KNOWN_SECTIONS.get(section)
            if section_cls is None:
                errors.append(ValidationError(
                    field=section,
                    message="Unknown configuration section",
                    value=value
                ))
                continue
            if not isinstance(value, dict):
                errors.append(ValidationError(
                    field=section,
                    message="Section must be a mapping",
                    value=value
                ))
                continue
            known_keys = set(section_cls.__dataclass_fields__)
            for key in value:
                if key not in known_keys:
                    errors.append(ValidationError(
                        field=f"{section}.{key}",
                        message="Unknown configuration key",
                        value=value[key]
                    ))

        return errors

    @staticmethod
    def validate_transport(params: dict[str, Any]) -> list[ValidationError]:
        """Validate transport parameters."""
        errors = []

        url = params.get("url")
        parsed = urlparse(url) if isinstance(url, str) else None
        if parsed is None or parsed.scheme not in ("ws", "wss") or not parsed.netloc:
            errors.append(ValidationError(
                field="transport.url",
                message="Must be a ws:// or wss:// URL",
                value=url
            ))

        for key in ("open_timeout_seconds", "ping_interval_seconds", "close_timeout_seconds"):
            value = params.get(key)
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field=f"transport.{key}",
                    message="Must be a positive number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_reconnect(params: dict[str, Any]) -> list[ValidationError]:
        """Validate reconnect backoff parameters."""
        errors = []

        initial = params.get("initial_delay_seconds")
        if not _is_number(initial) or initial < 0:
            errors.append(ValidationError(
                field="reconnect.initial_delay_seconds",
                message="Must be a non-negative number",
                value=initial
            ))

        multiplier = params.get("multiplier")
        if not _is_number(multiplier) or multiplier < 1:
            errors.append(ValidationError(
                field="reconnect.multiplier",
                message="Must be a number >= 1",
                value=multiplier
            ))

        max_delay = params.get("max_delay_seconds")
        if not _is_number(max_delay) or max_delay <= 0:
            errors.append(ValidationError(
                field="reconnect.max_delay_seconds",
                message="Must be a positive number",
                value=max_delay
            ))
        elif _is_number(initial) and max_delay < initial:
            errors.append(ValidationError(
                field="reconnect.max_delay_seconds",
                message="Must not be smaller than initial_delay_seconds",
                value=max_delay
            ))

        attempts = params.get("max_attempts")
        if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 0:
            errors.append(ValidationError(
                field="reconnect.max_attempts",
                message="Must be a non-negative integer (0 = unlimited)",
                value=attempts
            ))

        return errors

    @staticmethod
    def validate_trading(params: dict[str, Any]) -> list[ValidationError]:
        """Validate trade coordinator parameters."""
        errors = []

        timeout = params.get("timeout_seconds")
        if not _is_number(timeout) or timeout <= 0:
            errors.append(ValidationError(
                field="trading.timeout_seconds",
                message="Must be a positive number",
                value=timeout
            ))

        require_running = params.get("require_running_market")
        if not isinstance(require_running, bool):
            errors.append(ValidationError(
                field="trading.require_running_market",
                message="Must be a boolean",
                value=require_running
            ))

        return errors

    @staticmethod
    def validate_sync(params: dict[str, Any]) -> list[ValidationError]:
        """Validate synchronization engine parameters."""
        errors = []

        resync = params.get("resync_on_gap")
        if not isinstance(resync, bool):
            errors.append(ValidationError(
                field="sync.resync_on_gap",
                message="Must be a boolean",
                value=resync
            ))

        return errors

    @staticmethod
    def validate_events(params: dict[str, Any]) -> list[ValidationError]:
        """Validate wire event names."""
        errors = []
        seen: dict[str, str] = {}

        for key, value in params.items():
            if not isinstance(value, str) or not value.strip():
                errors.append(ValidationError(
                    field=f"events.{key}",
                    message="Must be a non-empty string",
                    value=value
                ))
                continue
            if value in seen:
                errors.append(ValidationError(
                    field=f"events.{key}",
                    message=f"Duplicates the name of events.{seen[value]}",
                    value=value
                ))
            seen[value] = key

        return errors

    @staticmethod
    def validate_logging(params: dict[str, Any]) -> list[ValidationError]:
        """Validate logging parameters."""
        errors = []

        level = params.get("level")
        if not isinstance(level, str) or level.upper() not in _LOG_LEVELS:
            errors.append(ValidationError(
                field="logging.level",
                message=f"Must be one of {sorted(_LOG_LEVELS)}",
                value=level
            ))

        for key in ("format_json", "include_timestamp", "include_caller"):
            value = params.get(key)
            if not isinstance(value, bool):
                errors.append(ValidationError(
                    field=f"logging.{key}",
                    message="Must be a boolean",
                    value=value
                ))

        return errors
