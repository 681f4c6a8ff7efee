"""
Central logging configuration for caser_recurrence.

Library modules only create module loggers (``logging.getLogger(__name__)``);
handlers and levels are applied here, by the CLI or by an embedding service.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

_LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"

_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

ENGINE_MODULES = (
    "caser_recurrence",
    "caser_recurrence.rule_parser",
    "caser_recurrence.candidates",
    "caser_recurrence.sequencer",
    "caser_recurrence.window",
    "caser_recurrence.event_recurrence",
    "caser_recurrence.ical_adapter",
)


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging for the recurrence engine.

    Installs a colorized console handler on the root logger when none exists,
    sets engine module levels and keeps noisy third-party loggers quiet.

    Args:
        debug_mode: Whether to enable debug logging for engine modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CASER_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CASER_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CASER_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CASER_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist so embedding services keep their setup
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(ColoredFormatter(_LOG_FORMAT, datefmt="%H:%M:%S", log_colors=_LOG_COLORS))
        root_logger.addHandler(handler)

    logger_config: dict[str, int] = {
        "asyncio": logging.WARNING,
        "icalendar": logging.INFO,
    }
    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.debug("Debug logging enabled for caser_recurrence modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("caser_recurrence", "caser_recurrence.sequencer", "icalendar", "asyncio"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
