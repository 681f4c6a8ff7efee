"""Shared fixtures for caser_recurrence tests."""

import logging
from collections.abc import Generator
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from caser_recurrence.config import ExpansionConfig


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object with expansion attributes.

    Fields:
      - max_occurrences_per_query: cap for next-N queries
      - fast_forward: window seeking enabled
      - yield_frequency: async cooperative yield interval
    """
    return SimpleNamespace(
        max_occurrences_per_query=25,
        fast_forward=True,
        yield_frequency=2,
    )


@pytest.fixture
def test_timezone() -> ZoneInfo:
    """Deterministic zone with DST transitions, independent of the host."""
    return ZoneInfo("America/New_York")


@pytest.fixture
def utc_start() -> datetime:
    """DTSTART used by the basic daily scenarios: 2024-01-01 09:00 UTC."""
    return datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def no_fast_forward() -> ExpansionConfig:
    """Configuration that expands every period from DTSTART."""
    return ExpansionConfig(fast_forward=False)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear engine environment variables so tests never see host settings."""
    for name in (
        "CASER_DEBUG",
        "CASER_LOG_LEVEL",
        "CASER_MAX_OCCURRENCES",
        "CASER_FAST_FORWARD",
        "CASER_YIELD_FREQUENCY",
        "CASER_MAX_EMPTY_PERIODS",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def restore_root_logger() -> Generator[None, Any, None]:
    """Restore root logger handlers and level after a logging test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
