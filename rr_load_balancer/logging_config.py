"""Logging helpers for rr_load_balancer.

The library is silent by default (the package logger carries a NullHandler).
Call one of these to see what the engine is doing:

    import rr_load_balancer
    rr_load_balancer.enable_console_logging(level="DEBUG")

Environment variables read by ``configure_from_env``:
    RRLB_LOGGING: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
"""

import logging
import os
from typing import Literal, Optional

__all__ = [
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "set_level",
]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOGGER_NAME = "rr_load_balancer"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _get_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def enable_console_logging(
    level: LogLevel | int = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Attach a stderr handler to the package logger and return it."""
    logger = _get_logger()
    logger.setLevel(_get_level(level))

    handler = logging.StreamHandler()
    handler.setLevel(_get_level(level))
    handler.setFormatter(logging.Formatter(format, date_format))

    logger.addHandler(handler)
    return handler


def configure_from_env() -> Optional[logging.StreamHandler]:
    """Enable console logging when RRLB_LOGGING is set; otherwise do nothing."""
    level = os.environ.get("RRLB_LOGGING", "").upper()
    if not level:
        return None
    return enable_console_logging(level=level)


def set_level(level: LogLevel | int) -> None:
    _get_logger().setLevel(_get_level(level))


def disable_logging() -> None:
    """Remove all handlers and silence the package logger."""
    logger = _get_logger()
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.CRITICAL + 1)
