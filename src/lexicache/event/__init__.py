"""
lexicache event system.

- types: CacheEventType, CacheEvent, EventListener, event collection helpers
- bus: CacheEventBus (synchronous dispatch, wildcard, error isolation)
- metrics: bus counters and sliding-window CacheMetrics
"""

from lexicache.event.bus import CacheEventBus
from lexicache.event.metrics import BusMetrics, CacheMetrics, MetricsSnapshot
from lexicache.event.types import (
    WILDCARD,
    CacheEvent,
    CacheEventType,
    EventListener,
    aggregate_events,
    filter_events,
)

__all__ = [
    "CacheEventBus",
    "CacheEvent",
    "CacheEventType",
    "EventListener",
    "WILDCARD",
    "CacheMetrics",
    "MetricsSnapshot",
    "BusMetrics",
    "aggregate_events",
    "filter_events",
]
