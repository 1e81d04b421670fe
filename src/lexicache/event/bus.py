"""
CacheEventBus: synchronous, in-process pub/sub for cache events.

Purpose
-------
Decouple the store and preloader from everything that observes them
(metrics, health, user callbacks, debug tooling).

Responsibilities
----------------
- Register/unregister listeners per event type, or for all types via `*`
- Dispatch each event synchronously to matching listeners in registration order
- Isolate listener failures (logged, counted, never propagated)
- Keep a bounded history of recent events for debugging

Design Decisions
----------------
- **Synchronous dispatch**: store operations are atomic from the loop's
  point of view, so listeners run inline and observe the post-mutation state
- **Instance-based**: every manager (and every test) owns its own bus
- **Coroutine listeners**: allowed; the returned coroutine is scheduled as a
  background task on the running loop and its failures are isolated the
  same way
- **Identifiers**: `on` returns an identifier; `off` accepts either the
  identifier or the original callback
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from typing import Any, Deque, List, Optional, Set, Union

from lexicache.core.constants import EVENT_RETENTION
from lexicache.core.logging.logger import get_logger
from lexicache.event.errors import handle_listener_error
from lexicache.event.metrics import BusMetrics, BusMetricsRecorder
from lexicache.event.types import (
    WILDCARD,
    CacheEvent,
    CacheEventType,
    EventListener,
    ListenerCallback,
)

logger = get_logger(__name__)


class CacheEventBus:
    """
    In-process cache event bus.

    Examples
    --------
    >>> bus = CacheEventBus()
    >>> listener_id = bus.on("hit", lambda event: print(event.key))
    >>> bus.emit(CacheEvent(CacheEventType.HIT, timestamp=0, key="en:common"))
    en:common
    """

    def __init__(
        self,
        retention: int = EVENT_RETENTION,
        metrics: Optional[BusMetricsRecorder] = None,
        *,
        enable_metrics: bool = True,
    ) -> None:
        self._listeners: List[EventListener] = []
        self._history: Deque[CacheEvent] = deque(maxlen=retention)
        self._metrics = metrics or BusMetricsRecorder()
        self._metrics_enabled = enable_metrics
        self._background: Set["asyncio.Task[Any]"] = set()

        logger.debug(
            "CacheEventBus initialized",
            extra={"retention": retention, "metrics_enabled": enable_metrics},
        )

    # ------------------------------------------------------------------ #
    # Listener Validation
    # ------------------------------------------------------------------ #

    @staticmethod
    def _normalize_event_type(event_type: Union[str, CacheEventType]) -> str:
        if event_type == WILDCARD:
            return WILDCARD
        return CacheEventType.parse(event_type).value

    @staticmethod
    def _validate_callback_signature(callback: ListenerCallback) -> None:
        if not callable(callback):
            raise TypeError(f"Event listener must be callable, got {type(callback).__name__}")

        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # Built-ins may not expose a signature.
            return

        required = [
            p
            for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        has_varargs = any(p.kind is p.VAR_POSITIONAL for p in sig.parameters.values())
        if len(required) != 1 and not (has_varargs and len(required) == 0):
            callback_name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (CacheEvent), "
                f"got {len(required)} parameters for '{callback_name}'"
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def on(
        self,
        event_type: Union[str, CacheEventType],
        listener: ListenerCallback,
        *,
        identifier: Optional[str] = None,
    ) -> str:
        """
        Subscribe `listener` to `event_type` (or `*` for every type).

        Returns
        -------
        str
            The listener identifier, usable with `off`.

        Raises
        ------
        CacheValidationError
            For an unknown event type.
        ValueError
            If the callback does not take exactly one argument.
        """
        normalized = self._normalize_event_type(event_type)
        self._validate_callback_signature(listener)

        registration = EventListener.from_callback(normalized, listener, identifier)
        self._listeners.append(registration)

        if self._metrics_enabled:
            self._metrics.increment_listener_count()

        logger.debug(
            "CacheEventBus: subscribed listener",
            extra={"event_type": normalized, "listener_id": registration.identifier},
        )
        return registration.identifier

    def off(
        self,
        event_type: Union[str, CacheEventType],
        listener: Union[ListenerCallback, str],
    ) -> bool:
        """
        Remove the first registration matching `listener` for `event_type`.

        `listener` may be the callback or the identifier returned by `on`.
        Returns True when something was removed.
        """
        normalized = self._normalize_event_type(event_type)

        for index, registration in enumerate(self._listeners):
            if registration.event_type != normalized:
                continue
            if isinstance(listener, str):
                matched = registration.identifier == listener
            else:
                matched = registration.callback == listener
            if matched:
                del self._listeners[index]
                if self._metrics_enabled:
                    self._metrics.decrement_listener_count()
                logger.debug(
                    "CacheEventBus: unsubscribed listener",
                    extra={"event_type": normalized, "listener_id": registration.identifier},
                )
                return True

        return False

    def clear_listeners(self) -> None:
        total = len(self._listeners)
        self._listeners.clear()
        if self._metrics_enabled:
            self._metrics.reset_listener_count()
        logger.debug("CacheEventBus: cleared all listeners", extra={"previous_listener_count": total})

    def listener_count(self, event_type: Optional[Union[str, CacheEventType]] = None) -> int:
        if event_type is None:
            return len(self._listeners)
        normalized = self._normalize_event_type(event_type)
        return sum(1 for registration in self._listeners if registration.event_type == normalized)

    # ------------------------------------------------------------------ #
    # Emit API
    # ------------------------------------------------------------------ #

    def emit(self, event: CacheEvent) -> None:
        """
        Deliver `event` to every matching listener, in registration order.

        Never raises because of a listener.
        """
        self._history.append(event)
        if self._metrics_enabled:
            self._metrics.record_emit(event.type.value)

        # Snapshot so listeners may subscribe/unsubscribe while dispatching.
        for registration in [r for r in self._listeners if r.matches(event.type)]:
            try:
                result = registration.callback(event)
            except Exception as exc:
                handle_listener_error(
                    logger=logger,
                    event=event,
                    listener=registration,
                    exc=exc,
                    metrics=self._metrics if self._metrics_enabled else None,
                )
                continue

            if inspect.isawaitable(result):
                self._schedule(event, registration, result)

    def _schedule(self, event: CacheEvent, registration: EventListener, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning(
                "CacheEventBus: async listener skipped, no running event loop",
                extra={"event_type": event.type.value, "listener_id": registration.identifier},
            )
            return

        task = loop.create_task(self._run_async_listener(event, registration, awaitable))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_async_listener(
        self, event: CacheEvent, registration: EventListener, awaitable: Any
    ) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            handle_listener_error(
                logger=logger,
                event=event,
                listener=registration,
                exc=exc,
                metrics=self._metrics if self._metrics_enabled else None,
            )

    async def drain(self) -> None:
        """Wait for background async listeners scheduled so far."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def recent_events(
        self,
        limit: Optional[int] = None,
        event_type: Optional[Union[str, CacheEventType]] = None,
    ) -> List[CacheEvent]:
        """Most recent retained events, oldest first."""
        events = list(self._history)
        if event_type is not None:
            wanted = CacheEventType.parse(event_type)
            events = [e for e in events if e.type is wanted]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def clear_history(self) -> None:
        self._history.clear()

    def get_metrics(self) -> BusMetrics:
        return self._metrics.snapshot()


__all__ = ["CacheEventBus"]
