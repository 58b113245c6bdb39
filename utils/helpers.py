"""Helper functions for Datadog identifier handling."""

from __future__ import annotations

from typing import Optional

_MAX_UINT64 = (1 << 64) - 1


def format_id(value: int) -> str:
    """
    Format a 64-bit identifier the way Datadog headers carry it.

    Args:
        value: Unsigned 64-bit integer

    Returns:
        Base-10 string
    """
    return str(value & _MAX_UINT64)


def parse_id(raw: Optional[str]) -> Optional[int]:
    """
    Parse a trace or parent id header value.

    Args:
        raw: Header value, possibly padded with whitespace

    Returns:
        The id as an int, or None if it is not a valid unsigned 64-bit integer
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    if value > _MAX_UINT64:
        return None
    return value


def parse_sampling_priority(raw: Optional[str]) -> Optional[int]:
    """
    Parse a sampling priority header value.

    Negative priorities (user reject) are valid.
    """
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None
