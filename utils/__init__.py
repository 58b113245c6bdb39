"""Utility functions for ddlambda."""

from ddlambda.utils.helpers import (
    format_id,
    parse_id,
    parse_sampling_priority,
)
from ddlambda.utils.log import LogLevel, get_log_level, set_log_level

__all__ = [
    "format_id",
    "parse_id",
    "parse_sampling_priority",
    "LogLevel",
    "get_log_level",
    "set_log_level",
]
