"""
Core event types for the cache event bus.

Purpose
-------
Define the closed set of cache event types, the immutable `CacheEvent`
record, and the `EventListener` registration record used by the bus.

Design Decisions
----------------
- **CacheEventType is a str Enum**: members compare equal to their wire
  names, so `event.type == "hit"` works for callers that use plain strings
- **CacheEvent is frozen**: events are append-only facts; listeners can never
  mutate what other listeners see
- **Listeners take exactly one argument**: the event
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from lexicache.core.exceptions import CacheValidationError

WILDCARD = "*"


class CacheEventType(str, Enum):
    HIT = "hit"
    MISS = "miss"
    SET = "set"
    DELETE = "delete"
    CLEAR = "clear"
    EXPIRE = "expire"
    PRELOAD_START = "preload_start"
    PRELOAD_COMPLETE = "preload_complete"
    PRELOAD_ERROR = "preload_error"

    @classmethod
    def parse(cls, value: Union[str, "CacheEventType"]) -> "CacheEventType":
        """
        Raises
        ------
        CacheValidationError
            For names outside the closed set.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as e:
            raise CacheValidationError(
                "Unknown cache event type",
                details={"event_type": value, "known": [t.value for t in cls]},
            ) from e


@dataclass(frozen=True, slots=True)
class CacheEvent:
    """
    One observable cache occurrence.

    Attributes
    ----------
    type:
        What happened.
    timestamp:
        Epoch milliseconds, taken from the emitter's clock.
    key:
        Cache key, when the event concerns a single entry.
    data:
        Optional payload (the stored value for `set`, error text for errors).
    metadata:
        Free-form structured context, e.g. `source`, `load_time_ms`,
        `attempted`, `failed`.
    """

    type: CacheEventType
    timestamp: int
    key: Optional[str] = None
    data: Any = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type.value, "timestamp": self.timestamp}
        if self.key is not None:
            payload["key"] = self.key
        if self.data is not None:
            payload["data"] = self.data
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload


ListenerCallback = Union[
    Callable[[CacheEvent], Any],
    Callable[[CacheEvent], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    """A registered callback and the event type (or `*`) it listens to."""

    callback: ListenerCallback
    event_type: str
    identifier: str

    @classmethod
    def from_callback(
        cls,
        event_type: str,
        callback: ListenerCallback,
        identifier: Optional[str] = None,
    ) -> "EventListener":
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", getattr(callback, "__name__", "callback"))
            identifier = f"{module}.{qualname}@{event_type}"
        return cls(callback=callback, event_type=event_type, identifier=identifier)

    def matches(self, event_type: CacheEventType) -> bool:
        return self.event_type == WILDCARD or self.event_type == event_type.value


# ============================================================================
# Event collection helpers
# ============================================================================


def aggregate_events(events: Sequence[CacheEvent]) -> Dict[str, int]:
    """
    Count events per type, omitting types that never occurred.

    >>> aggregate_events([CacheEvent(CacheEventType.HIT, 0)] * 2)
    {'hit': 2}
    """
    counts: Dict[str, int] = {}
    for event in events:
        counts[event.type.value] = counts.get(event.type.value, 0) + 1
    return counts


def filter_events(
    events: Sequence[CacheEvent],
    event_type: Optional[Union[str, CacheEventType]] = None,
    start: Optional[int] = None,
    end: Optional[int] = None,
) -> List[CacheEvent]:
    """Events matching `event_type` with `start <= timestamp <= end` (bounds optional)."""
    wanted = CacheEventType.parse(event_type) if event_type is not None else None
    return [
        event
        for event in events
        if (wanted is None or event.type is wanted)
        and (start is None or event.timestamp >= start)
        and (end is None or event.timestamp <= end)
    ]


__all__ = [
    "WILDCARD",
    "CacheEventType",
    "CacheEvent",
    "EventListener",
    "ListenerCallback",
    "aggregate_events",
    "filter_events",
]
