"""
Metrics for the cache event system.

Purpose
-------
Two recorders live here:

- `BusMetricsRecorder`: counters about the bus itself (events emitted per
  type, listener errors per type, registered listeners). Owned by the bus.
- `CacheMetrics`: cache-level aggregation (hits, misses, loads, load
  failures, load times) computed over a sliding time window from the events
  it observes. Attached to a bus as a wildcard listener.

Design Decisions
----------------
- **Immutable snapshots**: both recorders hand out frozen dataclasses built
  from fresh containers, so callers can never mutate live state
- **Bounded memory**: `CacheMetrics` keeps samples in a retention-capped
  deque; windows older than the retained history are silently truncated
- **Single event loop**: not thread-safe; all mutation happens on the loop

Load Accounting
---------------
- `set` with `metadata["source"] == "loader"` counts one successful on-demand load
- `preload_error` with `metadata["source"] == "loader"` counts one failed
  on-demand load
- `preload_complete` / `preload_error` from a preload run count
  `attempted - failed - cached` successes and `failed` failures
- `load_time_ms` metadata on `set` events feeds the average load time
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Deque, Dict, Optional

from lexicache.cache.stats import calculate_hit_rate
from lexicache.cache.timeutils import Clock, system_clock
from lexicache.core.constants import METRICS_RETENTION
from lexicache.core.logging.logger import get_logger
from lexicache.event.types import WILDCARD, CacheEvent, CacheEventType

if TYPE_CHECKING:
    from lexicache.event.bus import CacheEventBus

logger = get_logger(__name__)

LOADER_SOURCE = "loader"


# ============================================================================
# Bus-level metrics
# ============================================================================


@dataclass(frozen=True, slots=True)
class BusMetrics:
    """
    Immutable snapshot of bus counters.

    Examples
    --------
    >>> metrics = BusMetrics(events_emitted={"hit": 100}, listener_errors={"hit": 5})
    >>> metrics.get_summary()["error_rate"]
    5.0
    """

    events_emitted: dict[str, int] = field(default_factory=dict)
    listener_errors: dict[str, int] = field(default_factory=dict)
    total_listeners: int = 0

    def get_summary(self) -> dict[str, Any]:
        total_events = sum(self.events_emitted.values())
        total_errors = sum(self.listener_errors.values())
        error_rate = (total_errors / max(1, total_events)) * 100.0

        return {
            "total_events_emitted": total_events,
            "events_by_type": dict(self.events_emitted),
            "total_errors": total_errors,
            "errors_by_type": dict(self.listener_errors),
            "total_listeners": self.total_listeners,
            "error_rate": round(error_rate, 2),
        }


class BusMetricsRecorder:
    """Mutable counters behind `BusMetrics`."""

    def __init__(self) -> None:
        self._events_emitted: defaultdict[str, int] = defaultdict(int)
        self._listener_errors: defaultdict[str, int] = defaultdict(int)
        self._total_listeners: int = 0

    def record_emit(self, event_type: str) -> None:
        self._events_emitted[event_type] += 1

    def record_error(self, event_type: str) -> None:
        self._listener_errors[event_type] += 1

    @property
    def total_listeners(self) -> int:
        return self._total_listeners

    def increment_listener_count(self) -> None:
        self._total_listeners += 1

    def decrement_listener_count(self) -> None:
        self._total_listeners = max(0, self._total_listeners - 1)

    def reset_listener_count(self) -> None:
        self._total_listeners = 0

    def snapshot(self) -> BusMetrics:
        return BusMetrics(
            events_emitted=dict(self._events_emitted),
            listener_errors=dict(self._listener_errors),
            total_listeners=self._total_listeners,
        )


# ============================================================================
# Cache-level sliding window metrics
# ============================================================================


@dataclass(frozen=True, slots=True)
class _Sample:
    timestamp: int
    event_type: CacheEventType
    loads_ok: int = 0
    loads_failed: int = 0
    load_time_ms: Optional[float] = None


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """
    Aggregates over one window.

    `hit_rate` and `error_rate` are always within [0, 1].
    """

    window_ms: Optional[int]
    hits: int
    misses: int
    hit_rate: float
    loads: int
    load_failures: int
    error_rate: float
    average_load_time: float
    event_counts: Dict[str, int]
    total_events: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_ms": self.window_ms,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "loads": self.loads,
            "load_failures": self.load_failures,
            "error_rate": self.error_rate,
            "average_load_time": self.average_load_time,
            "event_counts": dict(self.event_counts),
            "total_events": self.total_events,
        }


def _sample_from_event(event: CacheEvent) -> _Sample:
    metadata = event.metadata or {}
    source = metadata.get("source")
    loads_ok = 0
    loads_failed = 0
    load_time: Optional[float] = None

    if event.type is CacheEventType.SET:
        if source == LOADER_SOURCE:
            loads_ok = 1
        raw_time = metadata.get("load_time_ms")
        if isinstance(raw_time, (int, float)) and not isinstance(raw_time, bool):
            load_time = float(raw_time)

    elif event.type is CacheEventType.PRELOAD_ERROR and source == LOADER_SOURCE:
        loads_failed = 1

    elif event.type in (CacheEventType.PRELOAD_COMPLETE, CacheEventType.PRELOAD_ERROR):
        attempted = int(metadata.get("attempted", 0) or 0)
        failed = int(metadata.get("failed", 0) or 0)
        cached = int(metadata.get("cached", 0) or 0)
        loads_ok = max(0, attempted - failed - cached)
        loads_failed = max(0, failed)

    return _Sample(
        timestamp=event.timestamp,
        event_type=event.type,
        loads_ok=loads_ok,
        loads_failed=loads_failed,
        load_time_ms=load_time,
    )


class CacheMetrics:
    """
    Sliding-window cache metrics fed by bus events.

    Examples
    --------
    >>> metrics = CacheMetrics()
    >>> metrics.attach(bus)
    >>> store.get("en:common")          # emits miss
    >>> metrics.snapshot().hit_rate
    0.0
    """

    def __init__(self, clock: Clock = system_clock, retention: int = METRICS_RETENTION) -> None:
        self._clock = clock
        self._samples: Deque[_Sample] = deque(maxlen=retention)
        self._bus: Optional["CacheEventBus"] = None
        self._listener_id: Optional[str] = None

    @property
    def retention(self) -> int:
        return self._samples.maxlen or 0

    def attach(self, bus: "CacheEventBus") -> None:
        if self._bus is bus:
            return
        if self._bus is not None:
            self.detach()
        self._listener_id = bus.on(WILDCARD, self.record, identifier=f"cache_metrics@{id(self)}")
        self._bus = bus

    def detach(self) -> None:
        if self._bus is not None and self._listener_id is not None:
            self._bus.off(WILDCARD, self._listener_id)
        self._bus = None
        self._listener_id = None

    def record(self, event: CacheEvent) -> None:
        self._samples.append(_sample_from_event(event))

    def reset(self) -> None:
        dropped = len(self._samples)
        self._samples.clear()
        logger.debug("Cache metrics reset", extra={"dropped_samples": dropped})

    def snapshot(self, window_ms: Optional[int] = None) -> MetricsSnapshot:
        """
        Aggregate samples within `window_ms` ending now (all retained samples when None).
        """
        if window_ms is None:
            samples = list(self._samples)
        else:
            cutoff = self._clock() - window_ms
            samples = [s for s in self._samples if s.timestamp >= cutoff]

        counts: Dict[str, int] = {}
        loads_ok = 0
        loads_failed = 0
        load_times = []

        for sample in samples:
            key = sample.event_type.value
            counts[key] = counts.get(key, 0) + 1
            loads_ok += sample.loads_ok
            loads_failed += sample.loads_failed
            if sample.load_time_ms is not None:
                load_times.append(sample.load_time_ms)

        hits = counts.get(CacheEventType.HIT.value, 0)
        misses = counts.get(CacheEventType.MISS.value, 0)
        loads = loads_ok + loads_failed

        return MetricsSnapshot(
            window_ms=window_ms,
            hits=hits,
            misses=misses,
            hit_rate=calculate_hit_rate(hits, misses),
            loads=loads,
            load_failures=loads_failed,
            error_rate=(loads_failed / loads) if loads > 0 else 0.0,
            average_load_time=(sum(load_times) / len(load_times)) if load_times else 0.0,
            event_counts=counts,
            total_events=len(samples),
        )


__all__ = [
    "BusMetrics",
    "BusMetricsRecorder",
    "CacheMetrics",
    "MetricsSnapshot",
    "LOADER_SOURCE",
]
