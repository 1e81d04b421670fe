"""
TranslationPreloader: batched, throttled cache warming.

Purpose
-------
Fill the store with message bundles for many (locale, namespace) targets
without saturating the network or the event loop, and serve de-duplicated
on-demand loads for cache misses.

Responsibilities
----------------
- Partition targets into consecutive batches and run each batch concurrently
- Bound overlapping loader calls with one semaphore per preloader instance
- Time out each load individually; a timed-out result is never written
- Sleep between batches, never after the last one
- Honour cooperative cancellation between batches
- Emit `preload_start` per target and one run-level summary event

Non-Responsibilities
--------------------
- Fetching translations (the injected loader does that)
- Cache policy (the store owns eviction and expiry)

Design Notes
------------
- Per-target failures are collected, never raised; the only error `run`
  raises is `CacheValidationError` for bad parameters
- `sleep` is injectable so tests can observe inter-batch delays
- Load durations use `time.monotonic`; event timestamps use the store clock
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from lexicache.cache.keys import create
from lexicache.cache.store import TranslationStore
from lexicache.core import constants
from lexicache.core.config.models import PreloadConfig
from lexicache.core.exceptions import CacheError, CacheValidationError
from lexicache.core.logging.logger import LogContext, get_logger
from lexicache.event.metrics import LOADER_SOURCE
from lexicache.event.types import CacheEvent, CacheEventType
from lexicache.preload.results import (
    PreloadResult,
    PreloadState,
    PreloadTarget,
    TargetLike,
    TargetOutcome,
    build_targets,
    coerce_target,
)

logger = get_logger(__name__)

Loader = Callable[[str, Optional[str]], Awaitable[Mapping[str, Any]]]
SleepFn = Callable[[float], Awaitable[Any]]

PRELOAD_SOURCE = "preload"


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


def _describe_failure(exc: BaseException, timeout_ms: float) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"timed out after {timeout_ms:g}ms"
    return f"{type(exc).__name__}: {exc}"


class TranslationPreloader:
    """
    Batched preloader bound to one store and one loader.

    Examples
    --------
    >>> preloader = TranslationPreloader(store, loader)
    >>> result = await preloader.run(["en", "zh", ("fr", "common")], batch_size=2)
    >>> result.state
    <PreloadState.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        store: TranslationStore,
        loader: Loader,
        *,
        max_concurrent_loads: int = constants.MAX_CONCURRENT_LOADS,
        default_timeout: int = constants.DEFAULT_LOAD_TIMEOUT_MS,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_concurrent_loads < 1:
            raise CacheValidationError(
                "max_concurrent_loads must be at least 1",
                details={"max_concurrent_loads": max_concurrent_loads},
            )

        self._store = store
        self._loader = loader
        self._max_concurrent_loads = max_concurrent_loads
        self._semaphore = asyncio.Semaphore(max_concurrent_loads)
        self._default_timeout = default_timeout
        self._sleep = sleep

        self._state = PreloadState.IDLE
        self._last_result: Optional[PreloadResult] = None
        self._inflight: Dict[str, "asyncio.Future[Mapping[str, Any]]"] = {}

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> PreloadState:
        return self._state

    @property
    def last_result(self) -> Optional[PreloadResult]:
        return self._last_result

    @property
    def max_concurrent_loads(self) -> int:
        return self._max_concurrent_loads

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def configure(
        self,
        *,
        max_concurrent_loads: Optional[int] = None,
        default_timeout: Optional[int] = None,
    ) -> None:
        """
        Change the concurrency limit and the on-demand load timeout.

        A new limit applies to loads that start afterwards; loads already
        holding a slot finish under the previous one.
        """
        if max_concurrent_loads is not None and max_concurrent_loads != self._max_concurrent_loads:
            if max_concurrent_loads < 1:
                raise CacheValidationError(
                    "max_concurrent_loads must be at least 1",
                    details={"max_concurrent_loads": max_concurrent_loads},
                )
            self._max_concurrent_loads = max_concurrent_loads
            self._semaphore = asyncio.Semaphore(max_concurrent_loads)
        if default_timeout is not None:
            self._default_timeout = default_timeout

        logger.info(
            "Preloader limits updated",
            extra={
                "max_concurrent_loads": self._max_concurrent_loads,
                "default_timeout_ms": self._default_timeout,
            },
        )

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _emit(
        self,
        event_type: CacheEventType,
        key: Optional[str] = None,
        data: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._store.bus.emit(
            CacheEvent(
                type=event_type,
                timestamp=self._store.now(),
                key=key,
                data=data,
                metadata=dict(metadata or {}),
            )
        )

    async def _call_loader(self, target: PreloadTarget, timeout_ms: float) -> Mapping[str, Any]:
        async with self._semaphore:
            return await asyncio.wait_for(
                self._loader(target.locale, target.namespace),
                timeout=timeout_ms / 1000,
            )

    @staticmethod
    def _validate_run_parameters(batch_size: int, delay_between_batches: float, timeout: float) -> None:
        errors: List[str] = []
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            errors.append("batch_size must be an integer of at least 1")
        if delay_between_batches < 0:
            errors.append("delay_between_batches must be non-negative")
        if timeout <= 0:
            errors.append("timeout must be positive")
        if errors:
            raise CacheValidationError(
                f"Invalid preload parameters: {errors[0]}",
                details={"errors": errors},
            )

    async def _preload_one(
        self,
        target: PreloadTarget,
        timeout_ms: float,
        run_id: str,
        skip_cached: bool,
    ) -> TargetOutcome:
        key = target.cache_key

        if skip_cached and key in self._store:
            return TargetOutcome(target=target, success=True, from_cache=True)

        self._emit(
            CacheEventType.PRELOAD_START,
            key=key,
            metadata={"run_id": run_id, "locale": target.locale, "namespace": target.namespace},
        )

        started = time.monotonic()
        try:
            data = await self._call_loader(target, timeout_ms)
            load_time = _elapsed_ms(started)
            self._store.set(
                key,
                data,
                metadata={"source": PRELOAD_SOURCE, "load_time_ms": load_time, "run_id": run_id},
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            reason = _describe_failure(exc, timeout_ms)
            logger.warning(
                "Preload target failed",
                extra={
                    "cache_key": key,
                    "reason": reason,
                    "error_type": type(exc).__name__,
                },
            )
            return TargetOutcome(
                target=target,
                success=False,
                load_time_ms=_elapsed_ms(started),
                error=reason,
            )

        return TargetOutcome(target=target, success=True, load_time_ms=load_time)

    # ------------------------------------------------------------------ #
    # Batch preloading
    # ------------------------------------------------------------------ #

    async def run(
        self,
        targets: Iterable[TargetLike],
        *,
        batch_size: int = constants.DEFAULT_BATCH_SIZE,
        delay_between_batches: float = constants.DEFAULT_DELAY_BETWEEN_BATCHES_MS,
        timeout: float = constants.DEFAULT_LOAD_TIMEOUT_MS,
        cancel_event: Optional[asyncio.Event] = None,
        skip_cached: bool = False,
    ) -> PreloadResult:
        """
        Preload `targets` in consecutive batches.

        Parameters
        ----------
        targets:
            `PreloadTarget`s, locale strings, or `(locale, namespace)` pairs.
        batch_size:
            Targets per batch; each batch's loads run concurrently (still
            bounded by `max_concurrent_loads`).
        delay_between_batches:
            Milliseconds to sleep after every batch except the last.
        timeout:
            Per-load timeout in milliseconds.
        cancel_event:
            Checked between batches. Once set, no further batch starts and
            the batch in flight is excluded from the result.
        skip_cached:
            Count targets that already have a fresh item as successful
            without calling the loader.

        Raises
        ------
        CacheValidationError
            For invalid parameters. Load failures are reported in the result.
        """
        self._validate_run_parameters(batch_size, delay_between_batches, timeout)

        pending = [coerce_target(t) for t in targets]
        batches = [pending[i : i + batch_size] for i in range(0, len(pending), batch_size)]
        run_id = uuid.uuid4().hex[:8]

        outcomes: List[TargetOutcome] = []
        batches_run = 0
        cancelled = False
        started = time.monotonic()
        self._state = PreloadState.RUNNING

        async with LogContext(run_id=run_id, operation="preload"):
            logger.info(
                "Preload run started",
                extra={
                    "targets": len(pending),
                    "batches": len(batches),
                    "batch_size": batch_size,
                    "timeout_ms": timeout,
                },
            )

            try:
                for index, batch in enumerate(batches):
                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        break

                    batch_outcomes = await asyncio.gather(
                        *(self._preload_one(t, timeout, run_id, skip_cached) for t in batch)
                    )
                    batches_run += 1

                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        break

                    outcomes.extend(batch_outcomes)

                    if index < len(batches) - 1:
                        await self._sleep(delay_between_batches / 1000)
            except asyncio.CancelledError:
                self._state = PreloadState.CANCELLED
                logger.warning(
                    "Preload run cancelled by its caller",
                    extra={"completed_batches": batches_run, "targets": len(pending)},
                )
                raise
            except BaseException:
                self._state = PreloadState.IDLE
                raise

            result = self._finish_run(run_id, outcomes, batches_run, cancelled, _elapsed_ms(started))

        return result

    def _finish_run(
        self,
        run_id: str,
        outcomes: List[TargetOutcome],
        batches_run: int,
        cancelled: bool,
        duration_ms: float,
    ) -> PreloadResult:
        failures = [o for o in outcomes if not o.success]
        cached = sum(1 for o in outcomes if o.from_cache)

        if cancelled:
            state = PreloadState.CANCELLED
        elif failures:
            state = PreloadState.PARTIALLY_FAILED
        else:
            state = PreloadState.COMPLETED

        result = PreloadResult(
            attempted=len(outcomes),
            succeeded=len(outcomes) - len(failures),
            failed=len(failures),
            errors=tuple((o.target, o.error or "unknown error") for o in failures),
            batches=batches_run,
            state=state,
            duration_ms=duration_ms,
            run_id=run_id,
            outcomes=tuple(outcomes),
        )
        self._state = state
        self._last_result = result

        summary = {
            "source": PRELOAD_SOURCE,
            "run_id": run_id,
            "attempted": result.attempted,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "cached": cached,
            "batches": result.batches,
            "state": state.value,
            "duration_ms": round(duration_ms, 2),
        }

        if failures:
            self._emit(
                CacheEventType.PRELOAD_ERROR,
                data=[{"target": str(t), "reason": r} for t, r in result.errors],
                metadata=summary,
            )
            logger.warning("Preload run finished with failures", extra=summary)
        else:
            self._emit(CacheEventType.PRELOAD_COMPLETE, metadata=summary)
            logger.info("Preload run finished", extra=summary)

        return result

    async def run_config(
        self,
        config: PreloadConfig,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        skip_cached: bool = False,
    ) -> PreloadResult:
        """
        Preload `config.preload_locales x config.namespaces` with its batching settings.

        Raises
        ------
        CacheValidationError
            If the config snapshot violates the preload rules.
        """
        config.validate().raise_if_invalid("Invalid preload config")

        return await self.run(
            build_targets(config.preload_locales, config.namespaces),
            batch_size=config.batch_size,
            delay_between_batches=config.delay_between_batches,
            timeout=config.timeout,
            cancel_event=cancel_event,
            skip_cached=skip_cached,
        )

    # ------------------------------------------------------------------ #
    # On-demand loading
    # ------------------------------------------------------------------ #

    async def load(
        self,
        locale: str,
        namespace: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Mapping[str, Any]:
        """
        Load one bundle through the loader and store it.

        Concurrent calls for the same key share one loader call. The store
        is written with `source="loader"`.

        Raises
        ------
        CacheError
            Code `CACHE_LOAD_ERROR` when the loader fails or times out.
        """
        key = create(locale, namespace)

        shared = self._inflight.get(key)
        if shared is None:
            shared = asyncio.ensure_future(
                self._load_on_demand(key, PreloadTarget(locale, namespace), timeout)
            )
            self._inflight[key] = shared
            shared.add_done_callback(lambda fut, key=key: self._release_inflight(key, fut))
        else:
            logger.debug("Joining in-flight load", extra={"cache_key": key})

        return await asyncio.shield(shared)

    def _release_inflight(self, key: str, future: "asyncio.Future[Any]") -> None:
        if self._inflight.get(key) is future:
            del self._inflight[key]

    async def _load_on_demand(
        self,
        key: str,
        target: PreloadTarget,
        timeout: Optional[float],
    ) -> Mapping[str, Any]:
        timeout_ms = timeout if timeout is not None else self._default_timeout
        started = time.monotonic()

        try:
            data = await self._call_loader(target, timeout_ms)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            load_time = _elapsed_ms(started)
            reason = _describe_failure(exc, timeout_ms)
            self._emit(
                CacheEventType.PRELOAD_ERROR,
                key=key,
                data=reason,
                metadata={
                    "source": LOADER_SOURCE,
                    "locale": target.locale,
                    "namespace": target.namespace,
                    "load_time_ms": load_time,
                },
            )
            logger.warning(
                "On-demand load failed",
                extra={"cache_key": key, "reason": reason, "error_type": type(exc).__name__},
            )
            raise CacheError(
                "Failed to load translations",
                code="CACHE_LOAD_ERROR",
                details={"locale": target.locale, "namespace": target.namespace, "reason": reason},
            ) from exc

        load_time = _elapsed_ms(started)
        self._store.set(key, data, metadata={"source": LOADER_SOURCE, "load_time_ms": load_time})
        return data


__all__ = ["TranslationPreloader", "Loader", "PRELOAD_SOURCE"]
