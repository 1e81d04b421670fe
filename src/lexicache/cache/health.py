"""
Cache health checker.

Purpose
-------
Judge cache health from the metrics window and the store's occupancy, and
optionally re-check on a fixed interval as a background asyncio task.

Responsibilities
----------------
- Produce a `HealthReport` with issues and recommendations
- Track consecutive at-capacity checks to detect thrashing
- Log health state transitions

Non-Responsibilities
--------------------
- Fixing anything (reports only)
- Collecting metrics (CacheMetrics does that)

Unhealthy when, within the window:
- hit rate < `min_hit_rate` after at least `min_lookups` lookups
- load error rate > `max_error_rate`
- the store sat at `max_size` for `capacity_strikes` consecutive checks

A high average load time is reported as an issue but does not by itself
make the cache unhealthy (status `degraded`).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from lexicache.cache.store import TranslationStore
from lexicache.cache.timeutils import Clock, system_clock
from lexicache.core.config.models import HealthThresholds
from lexicache.core.constants import METRICS_RESET_INTERVAL_MS
from lexicache.core.logging.logger import get_logger
from lexicache.event.metrics import CacheMetrics

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class HealthPerformance:
    hit_rate: float
    average_load_time: float
    error_rate: float


@dataclass(frozen=True, slots=True)
class HealthReport:
    is_healthy: bool
    issues: Tuple[str, ...]
    performance: HealthPerformance
    recommendations: Tuple[str, ...]
    checked_at: int
    capacity_strikes: int = 0

    @property
    def status(self) -> str:
        if not self.is_healthy:
            return "unhealthy"
        return "degraded" if self.issues else "healthy"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "is_healthy": self.is_healthy,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "performance": {
                "hit_rate": self.performance.hit_rate,
                "average_load_time": self.performance.average_load_time,
                "error_rate": self.performance.error_rate,
            },
            "checked_at": self.checked_at,
            "capacity_strikes": self.capacity_strikes,
        }


class CacheHealthChecker:
    """
    Periodic cache health checks.

    Examples
    --------
    >>> checker = CacheHealthChecker(store, metrics)
    >>> checker.check().is_healthy
    True
    >>> await checker.start()   # re-check every `interval_seconds`
    >>> await checker.stop()
    """

    def __init__(
        self,
        store: TranslationStore,
        metrics: CacheMetrics,
        thresholds: Optional[HealthThresholds] = None,
        *,
        window_ms: Optional[int] = METRICS_RESET_INTERVAL_MS,
        clock: Clock = system_clock,
    ) -> None:
        self._store = store
        self._metrics = metrics
        self._thresholds = thresholds or HealthThresholds()
        self._window_ms = window_ms
        self._clock = clock

        self._capacity_strikes = 0
        self._last_report: Optional[HealthReport] = None
        self._is_running = False
        self._monitor_task: Optional["asyncio.Task[None]"] = None

    @property
    def thresholds(self) -> HealthThresholds:
        return self._thresholds

    @property
    def last_report(self) -> Optional[HealthReport]:
        return self._last_report

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ------------------------------------------------------------------ #
    # Checks
    # ------------------------------------------------------------------ #

    def check(self) -> HealthReport:
        t = self._thresholds
        snapshot = self._metrics.snapshot(self._window_ms)
        issues: List[str] = []
        recommendations: List[str] = []
        healthy = True

        lookups = snapshot.hits + snapshot.misses
        if lookups >= t.min_lookups and snapshot.hit_rate < t.min_hit_rate:
            healthy = False
            issues.append(f"Low hit rate: {snapshot.hit_rate * 100:.1f}%")
            recommendations.append(
                "Increase max_size or ttl, or preload the most requested locales"
            )

        if snapshot.error_rate > t.max_error_rate:
            healthy = False
            issues.append(f"High error rate: {snapshot.error_rate * 100:.1f}%")
            recommendations.append("Check loader connectivity and review error logs")

        if len(self._store) >= self._store.config.max_size:
            self._capacity_strikes += 1
        else:
            self._capacity_strikes = 0

        if self._capacity_strikes >= t.capacity_strikes:
            healthy = False
            issues.append(
                f"Cache at capacity for {self._capacity_strikes} consecutive checks (thrashing)"
            )
            recommendations.append("Increase max_size or reduce the number of preloaded locales")

        if snapshot.average_load_time > t.max_load_time_ms:
            issues.append(f"High average load time: {snapshot.average_load_time:.0f}ms")
            recommendations.append(
                "Consider optimizing network requests or reducing payload size"
            )

        report = HealthReport(
            is_healthy=healthy,
            issues=tuple(issues),
            performance=HealthPerformance(
                hit_rate=snapshot.hit_rate,
                average_load_time=snapshot.average_load_time,
                error_rate=snapshot.error_rate,
            ),
            recommendations=tuple(recommendations),
            checked_at=self._clock(),
            capacity_strikes=self._capacity_strikes,
        )

        previous = self._last_report
        self._last_report = report

        if previous is None or previous.status != report.status:
            log = logger.info if report.status == "healthy" else logger.warning
            log(
                "Cache health state changed",
                extra={
                    "old_state": previous.status if previous else None,
                    "new_state": report.status,
                    "issues": list(report.issues),
                    "hit_rate": round(snapshot.hit_rate, 3),
                    "error_rate": round(snapshot.error_rate, 3),
                },
            )

        return report

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        if self._is_running:
            logger.warning("CacheHealthChecker already running")
            return

        self._is_running = True
        self._monitor_task = asyncio.create_task(self._monitor_loop())
        logger.info(
            "CacheHealthChecker started",
            extra={"interval_seconds": self._thresholds.interval_seconds},
        )

    async def stop(self) -> None:
        if not self._is_running:
            return

        self._is_running = False
        if self._monitor_task:
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
            self._monitor_task = None

        logger.info("CacheHealthChecker stopped")

    async def _monitor_loop(self) -> None:
        while self._is_running:
            try:
                self.check()
                await asyncio.sleep(self._thresholds.interval_seconds)
            except asyncio.CancelledError:
                logger.debug("Health check loop cancelled")
                break
            except Exception as exc:
                logger.error(
                    "Error in health check loop",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                await asyncio.sleep(self._thresholds.interval_seconds)


__all__ = ["CacheHealthChecker", "HealthReport", "HealthPerformance", "HealthThresholds"]
