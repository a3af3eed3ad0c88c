"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from marketsync.config.defaults import EventNames, get_default_config
from marketsync.config.loader import ConfigLoader, load_config
from marketsync.config.validation import ConfigValidator
from marketsync.errors import ConfigurationError


def write_config(config_dir: Path, text: str) -> None:
    (config_dir / "client.yaml").write_text(text)


class TestDefaultConfig:
    """Test suite for default configuration."""

    def test_default_config_creation(self) -> None:
        """Test that default configuration can be created."""
        config = get_default_config()
        assert config.transport.url == "ws://127.0.0.1:8000/ws"
        assert config.trading.timeout_seconds == 10.0
        assert config.trading.require_running_market is False
        assert config.reconnect.max_attempts == 0
        assert config.events == EventNames()

    def test_defaults_pass_validation(self) -> None:
        """Test that the shipped defaults are valid."""
        loader = ConfigLoader.create()
        assert ConfigValidator.validate(loader._dataclass_to_dict(loader.defaults)) == []


class TestConfigLoader:
    """Test suite for configuration loader."""

    def test_config_loader_creation(self) -> None:
        """Test that ConfigLoader defaults to the repository config directory."""
        loader = ConfigLoader.create()
        assert isinstance(loader.config_dir, Path)
        assert loader.config_dir.name == "config"

    def test_repository_config_loads(self) -> None:
        """Test that the shipped client.yaml is valid."""
        config = load_config()
        assert config.sync.resync_on_gap is True

    def test_missing_file_uses_defaults(self, tmp_path) -> None:
        """Test loading from a directory without client.yaml."""
        config = load_config(tmp_path)
        assert config == get_default_config()

    def test_file_overrides_defaults(self, tmp_path) -> None:
        """Test that client.yaml values override defaults."""
        write_config(tmp_path, "trading:\n  timeout_seconds: 3\nevents:\n  submit_buy: BUY_STOCK\n")

        config = load_config(tmp_path)

        assert config.trading.timeout_seconds == 3
        assert config.trading.require_running_market is False
        assert config.events.submit_buy == "BUY_STOCK"
        assert config.events.submit_sell == "submit-sell"

    def test_explicit_overrides_win(self, tmp_path) -> None:
        """Test 3-tier precedence: overrides > file > defaults."""
        write_config(tmp_path, "reconnect:\n  max_attempts: 5\n  multiplier: 3.0\n")

        config = load_config(tmp_path, {"reconnect": {"max_attempts": 1}})

        assert config.reconnect.max_attempts == 1
        assert config.reconnect.multiplier == 3.0
        assert config.reconnect.initial_delay_seconds == 0.5

    def test_empty_file(self, tmp_path) -> None:
        """Test that an empty client.yaml is treated as no overrides."""
        write_config(tmp_path, "")
        assert load_config(tmp_path) == get_default_config()

    def test_non_mapping_file_rejected(self, tmp_path) -> None:
        """Test that a YAML list at the top level is rejected."""
        write_config(tmp_path, "- transport\n- reconnect\n")

        with pytest.raises(ConfigurationError):
            load_config(tmp_path)

    def test_invalid_values_rejected(self, tmp_path) -> None:
        """Test that validation errors surface as ConfigurationError."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path, {"trading": {"timeout_seconds": 0}})

        fields = [err.field for err in exc_info.value.errors]
        assert fields == ["trading.timeout_seconds"]
        assert "trading.timeout_seconds" in str(exc_info.value)


class TestConfigValidator:
    """Test suite for configuration validation."""

    def defaults(self):
        loader = ConfigLoader.create()
        return loader._dataclass_to_dict(loader.defaults)

    def test_unknown_section(self) -> None:
        """Test that unknown sections are reported."""
        config = self.defaults()
        config["metrics"] = {}

        errors = ConfigValidator.validate(config)

        assert [e.field for e in errors] == ["metrics"]

    def test_unknown_key(self) -> None:
        """Test that misspelled keys are reported."""
        config = self.defaults()
        config["trading"]["timeout"] = 5

        errors = ConfigValidator.validate(config)

        assert [e.field for e in errors] == ["trading.timeout"]

    def test_section_must_be_mapping(self) -> None:
        """Test that a scalar section is reported."""
        config = self.defaults()
        config["sync"] = True

        errors = ConfigValidator.validate(config)

        assert errors[0].field == "sync"

    @pytest.mark.parametrize("url", ["http://host/ws", "ws://", 42, None])
    def test_invalid_url(self, url) -> None:
        """Test that only ws:// and wss:// URLs are accepted."""
        params = self.defaults()["transport"]
        params["url"] = url

        errors = ConfigValidator.validate_transport(params)

        assert [e.field for e in errors] == ["transport.url"]

    def test_secure_url_accepted(self) -> None:
        """Test that wss:// URLs are accepted."""
        params = self.defaults()["transport"]
        params["url"] = "wss://market.example.com/ws"
        assert ConfigValidator.validate_transport(params) == []

    def test_invalid_backoff(self) -> None:
        """Test reconnect backoff validation."""
        params = {
            "initial_delay_seconds": 5.0,
            "multiplier": 0.5,
            "max_delay_seconds": 1.0,
            "max_attempts": -1,
        }

        errors = ConfigValidator.validate_reconnect(params)

        assert [e.field for e in errors] == [
            "reconnect.multiplier",
            "reconnect.max_delay_seconds",
            "reconnect.max_attempts",
        ]

    def test_max_attempts_rejects_bool(self) -> None:
        """Test that a boolean is not accepted as an attempt count."""
        params = self.defaults()["reconnect"]
        params["max_attempts"] = True

        errors = ConfigValidator.validate_reconnect(params)

        assert [e.field for e in errors] == ["reconnect.max_attempts"]

    def test_trading_flags(self) -> None:
        """Test trading parameter validation."""
        errors = ConfigValidator.validate_trading(
            {"timeout_seconds": -1, "require_running_market": "yes"}
        )
        assert len(errors) == 2

    def test_duplicate_event_names(self) -> None:
        """Test that two events may not share a wire name."""
        params = self.defaults()["events"]
        params["submit_sell"] = params["submit_buy"]

        errors = ConfigValidator.validate_events(params)

        assert len(errors) == 1
        assert errors[0].field == "events.submit_sell"

    def test_empty_event_name(self) -> None:
        """Test that blank event names are rejected."""
        params = self.defaults()["events"]
        params["clock_tick"] = "  "

        errors = ConfigValidator.validate_events(params)

        assert [e.field for e in errors] == ["events.clock_tick"]

    def test_logging_level(self) -> None:
        """Test logging level validation."""
        params = self.defaults()["logging"]
        params["level"] = "verbose"

        errors = ConfigValidator.validate_logging(params)

        assert [e.field for e in errors] == ["logging.level"]
