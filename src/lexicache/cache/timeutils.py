"""
Time and size helpers for the cache layer.

All timestamps are epoch milliseconds. Components take an injectable
`Clock` so tests can drive expiry deterministically.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any, Callable

Clock = Callable[[], int]

_TIME_RE = re.compile(r"^(\d+)(ms|s|m|h|d)$")
_TIME_UNITS_MS = {
    "ms": 1,
    "s": 1_000,
    "m": 60 * 1_000,
    "h": 60 * 60 * 1_000,
    "d": 24 * 60 * 60 * 1_000,
}
_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1_000)


def is_expired(timestamp: int, ttl: int, now: int) -> bool:
    """Strictly greater: an item is still fresh at exactly `ttl` elapsed."""
    return now - timestamp > ttl


def remaining_ttl(timestamp: int, ttl: int, now: int) -> int:
    return max(0, ttl - (now - timestamp))


def format_duration(milliseconds: float) -> str:
    """
    >>> format_duration(90_000)
    '1m 30s'
    >>> format_duration(26 * 3_600_000)
    '1d 2h'
    """
    seconds = int(milliseconds // 1_000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def parse_time_string(value: str) -> int:
    """
    Parse `"<int><unit>"` with unit in ms/s/m/h/d into milliseconds.

    Raises
    ------
    ValueError
        On any other format.
    """
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time format: {value}")
    amount, unit = match.groups()
    return int(amount) * _TIME_UNITS_MS[unit]


def estimate_size(obj: Any) -> int:
    """UTF-8 byte length of the JSON encoding; 0 when not serializable."""
    try:
        return len(json.dumps(obj, ensure_ascii=False).encode("utf-8"))
    except (TypeError, ValueError):
        return 0


def format_bytes(num_bytes: float) -> str:
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.2f} {_SIZE_UNITS[unit_index]}"
