"""
Listener error isolation for the cache event bus.

A raising listener must never break the emitter (usually a store `get` or
`set`) or starve the listeners registered after it. The bus funnels every
listener failure through `handle_listener_error`, which counts and logs it.
"""

from __future__ import annotations

from logging import Logger
from typing import Optional

from lexicache.event.metrics import BusMetricsRecorder
from lexicache.event.types import CacheEvent, EventListener


def handle_listener_error(
    *,
    logger: Logger,
    event: CacheEvent,
    listener: EventListener,
    exc: BaseException,
    metrics: Optional[BusMetricsRecorder],
) -> None:
    """
    Log a listener failure with its stack trace and update metrics.

    Never raises.

    Parameters
    ----------
    logger:
        Logger to report through.
    event:
        The event being dispatched when the listener failed.
    listener:
        The failing listener.
    exc:
        What it raised.
    metrics:
        Bus counters to update; skipped when None.
    """
    if metrics is not None:
        metrics.record_error(event.type.value)

    logger.error(
        "Cache event listener error",
        extra={
            "event_type": event.type.value,
            "cache_key": event.key,
            "listener_id": listener.identifier,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=exc,
    )
