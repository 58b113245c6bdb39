"""Severity threshold for the library's own log output."""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Union

from ddlambda.errors import ConfigError

LOGGER_NAME = "ddlambda"


class LogLevel(Enum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    NONE = logging.CRITICAL + 10


def set_log_level(level: Union[LogLevel, str]) -> None:
    """
    Set the threshold for every ``ddlambda`` logger.

    Accepts a LogLevel or its name (case-insensitive). ``NONE`` silences the library.
    Handlers and formatting are left to the host.

    Raises:
        ConfigError: unknown level name
    """
    if isinstance(level, str):
        try:
            level = LogLevel[level.strip().upper()]
        except KeyError:
            raise ConfigError(f"unknown log level {level!r}", {"choices": ", ".join(choice.name for choice in LogLevel)}) from None
    logging.getLogger(LOGGER_NAME).setLevel(level.value)


def get_log_level() -> LogLevel:
    effective = logging.getLogger(LOGGER_NAME).getEffectiveLevel()
    for level in LogLevel:
        if level.value == effective:
            return level
    return LogLevel.WARNING


def configure_from_env() -> None:
    """Apply DD_LOG_LEVEL, falling back to WARNING for unknown values."""
    raw = os.getenv("DD_LOG_LEVEL", "WARNING")
    try:
        set_log_level(raw)
    except ConfigError:
        set_log_level(LogLevel.WARNING)
        logging.getLogger(LOGGER_NAME).warning("Ignoring unknown DD_LOG_LEVEL %r", raw)
