"""Unit tests for ExpansionConfig and the logging configuration helpers."""

import logging
from types import SimpleNamespace
from typing import Any

import pytest

from caser_recurrence.config import ExpansionConfig
from caser_recurrence.logging_config import configure_logging, get_logging_status

pytestmark = pytest.mark.unit


class TestExpansionConfig:
    def test_defaults(self) -> None:
        config = ExpansionConfig()
        assert config.max_occurrences_per_query == 1000
        assert config.fast_forward is True
        assert config.fast_forward_margin_hours == 3
        assert config.yield_frequency == 50
        assert config.max_empty_periods == 50_000

    def test_from_settings_reads_known_attributes(self, simple_settings: SimpleNamespace) -> None:
        config = ExpansionConfig.from_settings(simple_settings)
        assert config.max_occurrences_per_query == 25
        assert config.yield_frequency == 2
        assert config.fast_forward_margin_hours == 3

    def test_from_settings_reads_search_limit(self) -> None:
        assert ExpansionConfig.from_settings(SimpleNamespace(max_empty_periods=10)).max_empty_periods == 10

    def test_from_settings_with_empty_object_uses_defaults(self) -> None:
        assert ExpansionConfig.from_settings(SimpleNamespace()) == ExpansionConfig()

    def test_from_env(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("CASER_MAX_OCCURRENCES", "40")
        monkeypatch.setenv("CASER_FAST_FORWARD", "false")
        monkeypatch.setenv("CASER_YIELD_FREQUENCY", "5")
        monkeypatch.setenv("CASER_MAX_EMPTY_PERIODS", "700")
        config = ExpansionConfig.from_env()
        assert config.max_occurrences_per_query == 40
        assert config.fast_forward is False
        assert config.yield_frequency == 5
        assert config.max_empty_periods == 700

    @pytest.mark.parametrize("raw", ["abc", "0", "-3"])
    def test_from_env_invalid_integer_falls_back(self, raw: str, monkeypatch: Any, caplog: Any) -> None:
        monkeypatch.setenv("CASER_MAX_OCCURRENCES", raw)
        with caplog.at_level(logging.WARNING, logger="caser_recurrence.config"):
            config = ExpansionConfig.from_env()
        assert config.max_occurrences_per_query == 1000
        assert "CASER_MAX_OCCURRENCES" in caplog.text

    def test_config_is_immutable(self) -> None:
        config = ExpansionConfig()
        with pytest.raises(AttributeError):
            config.fast_forward = False  # type: ignore[misc]


@pytest.mark.usefixtures("restore_root_logger")
class TestConfigureLogging:
    def test_production_levels(self) -> None:
        configure_logging(debug_mode=False)
        status = get_logging_status()
        assert status["root"] == "INFO"
        assert status["caser_recurrence"] == "INFO"
        assert status["asyncio"] == "WARNING"

    def test_debug_mode(self) -> None:
        configure_logging(debug_mode=True)
        assert logging.getLogger("caser_recurrence.sequencer").level == logging.DEBUG
        assert logging.getLogger().level == logging.DEBUG

    def test_env_debug_override(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("CASER_DEBUG", "yes")
        configure_logging(debug_mode=False)
        assert get_logging_status()["caser_recurrence"] == "DEBUG"

    def test_force_debug_beats_env(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("CASER_DEBUG", "1")
        configure_logging(force_debug=False)
        assert get_logging_status()["caser_recurrence"] == "INFO"

    def test_env_log_level_sets_root(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("CASER_LOG_LEVEL", "error")
        configure_logging()
        assert get_logging_status()["root"] == "ERROR"

    def test_handler_added_only_when_missing(self) -> None:
        root = logging.getLogger()
        root.handlers.clear()
        configure_logging()
        configure_logging()
        assert len(root.handlers) == 1
