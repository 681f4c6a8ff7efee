"""Configuration for recurrence expansion queries."""

import logging
import os
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ExpansionConfig:
    """Settings that tune expansion queries without changing their results.

    Consolidates expansion settings with explicit defaults.
    """

    # Upper bound on ``n`` for next-N queries
    max_occurrences_per_query: int = 1000
    # Jump the generator over periods that end before the query window
    fast_forward: bool = True
    # Slack kept before the window start when fast-forwarding
    fast_forward_margin_hours: int = 3
    # Async streams hand control back to the event loop this often
    yield_frequency: int = 50
    # Consecutive periods without a candidate before a query gives up
    max_empty_periods: int = 50_000

    @classmethod
    def from_settings(cls, settings: Any) -> "ExpansionConfig":
        """Extract expansion configuration from a settings object.

        Args:
            settings: Object with optional expansion attributes

        Returns:
            ExpansionConfig with values from settings or defaults
        """
        defaults = cls()
        return cls(
            max_occurrences_per_query=getattr(
                settings, "max_occurrences_per_query", defaults.max_occurrences_per_query
            ),
            fast_forward=getattr(settings, "fast_forward", defaults.fast_forward),
            fast_forward_margin_hours=getattr(
                settings, "fast_forward_margin_hours", defaults.fast_forward_margin_hours
            ),
            yield_frequency=getattr(settings, "yield_frequency", defaults.yield_frequency),
            max_empty_periods=getattr(settings, "max_empty_periods", defaults.max_empty_periods),
        )

    @classmethod
    def from_env(cls) -> "ExpansionConfig":
        """Build configuration from environment variables.

        Environment Variables:
            CASER_MAX_OCCURRENCES: Upper bound for next-N queries
            CASER_FAST_FORWARD: '0'/'false' disables window fast-forwarding
            CASER_YIELD_FREQUENCY: Items between async cooperative yields
            CASER_MAX_EMPTY_PERIODS: Empty periods searched before giving up
        """
        defaults = cls()
        return cls(
            max_occurrences_per_query=_env_int("CASER_MAX_OCCURRENCES", defaults.max_occurrences_per_query),
            fast_forward=_env_bool("CASER_FAST_FORWARD", defaults.fast_forward),
            fast_forward_margin_hours=defaults.fast_forward_margin_hours,
            yield_frequency=_env_int("CASER_YIELD_FREQUENCY", defaults.yield_frequency),
            max_empty_periods=_env_int("CASER_MAX_EMPTY_PERIODS", defaults.max_empty_periods),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Invalid integer for %s: %r, using default %d", name, raw, default)
        return default
    if value < 1:
        logger.warning("%s must be positive, got %d; using default %d", name, value, default)
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY
