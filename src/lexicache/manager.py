"""
I18nCacheManager: the public facade over store, preloader, metrics and health.

Purpose
-------
Compose one event bus, one store, one preloader, one metrics aggregator and
one health checker into a single explicitly constructed object. Nothing is
created at import time; hosts build a manager, `await init()` it, and
`await destroy()` it on shutdown (or use `async with`).

Responsibilities
----------------
- Cache-first message lookup with de-duplicated on-demand loading
- Preload / warmup entry points driven by `PreloadConfig`
- Validated live reconfiguration (rejected wholesale on any error)
- Aggregated metrics, stats, health and debug views
- Event subscription proxy

Usage
-----
>>> async def loader(locale, namespace):
...     return await fetch_bundle(locale, namespace)
>>> async with I18nCacheManager(loader) as manager:
...     messages = await manager.get_messages("en", "common")
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

from lexicache.cache import keys as cache_keys
from lexicache.cache.health import CacheHealthChecker, HealthReport
from lexicache.cache.persistence import StorageBackend
from lexicache.cache.stats import CacheStats
from lexicache.cache.store import TranslationStore
from lexicache.cache.timeutils import Clock, system_clock
from lexicache.core import constants
from lexicache.core.config.loader import load_config_file
from lexicache.core.config.models import (
    AdvancedCacheConfig,
    CacheConfig,
    HealthThresholds,
    PreloadConfig,
)
from lexicache.core.config.settings import Settings
from lexicache.core.logging.logger import LogContext, get_logger
from lexicache.event.bus import CacheEventBus
from lexicache.event.metrics import CacheMetrics
from lexicache.event.types import CacheEventType, ListenerCallback
from lexicache.preload.preloader import Loader, SleepFn, TranslationPreloader
from lexicache.preload.results import PreloadResult, build_targets

logger = get_logger(__name__)

RECENT_EVENTS_IN_DEBUG = 20


class I18nCacheManager:
    """
    Translation cache facade.

    Parameters
    ----------
    loader:
        `async (locale, namespace | None) -> Mapping` used for misses and preloads.
    config:
        Cache snapshot. An `AdvancedCacheConfig` also selects the eviction
        policy and the preloader's concurrency and default load timeout.
    preload_config:
        What `preload()` and `warmup()` warm.
    health:
        Health thresholds; `health.enabled` starts the background loop in `init()`.
    storage:
        Optional persistence backend (used when `config.enable_persistence`).

    Raises
    ------
    CacheValidationError
        If `config` or `preload_config` breaks a validation rule, including
        snapshots built directly instead of through `from_mapping`.
    """

    def __init__(
        self,
        loader: Loader,
        config: Optional[CacheConfig] = None,
        preload_config: Optional[PreloadConfig] = None,
        health: Optional[HealthThresholds] = None,
        *,
        storage: Optional[StorageBackend] = None,
        bus: Optional[CacheEventBus] = None,
        metrics: Optional[CacheMetrics] = None,
        clock: Clock = system_clock,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        config = (config or CacheConfig()).require_valid()
        self._preload_config = (preload_config or PreloadConfig()).require_valid()

        self._bus = bus or CacheEventBus()
        self._metrics = metrics or CacheMetrics(clock=clock)
        self._metrics.attach(self._bus)

        self._store = TranslationStore(config, self._bus, storage, clock=clock)

        if isinstance(config, AdvancedCacheConfig):
            max_loads = config.performance.max_concurrent_loads
            default_timeout = config.performance.load_timeout
        else:
            max_loads = constants.MAX_CONCURRENT_LOADS
            default_timeout = self._preload_config.timeout

        self._preloader = TranslationPreloader(
            self._store,
            loader,
            max_concurrent_loads=max_loads,
            default_timeout=default_timeout,
            sleep=sleep,
        )
        self._health = CacheHealthChecker(self._store, self._metrics, health, clock=clock)

        self._locale_usage: Dict[str, int] = {}
        self._initialized = False

    @classmethod
    def from_config_file(
        cls,
        loader: Loader,
        path: Optional[Union[str, Path]] = None,
        *,
        settings: Optional[Settings] = None,
        storage: Optional[StorageBackend] = None,
        **kwargs: Any,
    ) -> "I18nCacheManager":
        """Build a manager from a YAML file (see `load_config_file`)."""
        loaded = load_config_file(path, settings=settings)
        return cls(
            loader,
            loaded.cache,
            loaded.preload,
            loaded.health,
            storage=storage,
            **kwargs,
        )

    # ------------------------------------------------------------------ #
    # Components
    # ------------------------------------------------------------------ #

    @property
    def store(self) -> TranslationStore:
        return self._store

    @property
    def preloader(self) -> TranslationPreloader:
        return self._preloader

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    @property
    def health(self) -> CacheHealthChecker:
        return self._health

    @property
    def bus(self) -> CacheEventBus:
        return self._bus

    @property
    def config(self) -> CacheConfig:
        return self._store.config

    @property
    def preload_config(self) -> PreloadConfig:
        return self._preload_config

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def init(self) -> None:
        """Restore persisted entries and start the health loop if enabled. Idempotent."""
        if self._initialized:
            logger.debug("I18nCacheManager already initialized, skipping")
            return

        restored = await self._store.load()
        if self._health.thresholds.enabled:
            await self._health.start()

        self._initialized = True
        logger.info(
            "I18nCacheManager initialized",
            extra={
                "restored_items": restored,
                "max_size": self.config.max_size,
                "ttl_ms": self.config.ttl,
                "strategy": self._store.strategy.value,
                "persistence": self._store.persistence_enabled,
                "health_loop": self._health.is_running,
            },
        )

    async def destroy(self) -> None:
        """Stop the health loop, flush pending writes and detach metrics."""
        await self._health.stop()
        await self._store.aclose()
        await self._bus.drain()
        self._metrics.detach()
        self._initialized = False
        logger.info("I18nCacheManager destroyed")

    async def __aenter__(self) -> "I18nCacheManager":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.destroy()

    # ------------------------------------------------------------------ #
    # Lookup & loading
    # ------------------------------------------------------------------ #

    async def get_messages(self, locale: str, namespace: Optional[str] = None) -> Mapping[str, Any]:
        """
        Cached bundle for `(locale, namespace)`, loading it on a miss.

        Raises
        ------
        CacheValidationError
            If a part contains the key separator.
        CacheError
            Code `CACHE_LOAD_ERROR` when the loader fails.
        """
        key = cache_keys.create(locale, namespace)
        self._locale_usage[locale] = self._locale_usage.get(locale, 0) + 1

        cached = self._store.get(key)
        if cached is not None:
            return cached

        async with LogContext(locale=locale, namespace=namespace, operation="load"):
            return await self._preloader.load(locale, namespace)

    async def preload(
        self,
        locales: Optional[Iterable[str]] = None,
        namespaces: Optional[Sequence[str]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PreloadResult:
        """Preload `locales x namespaces` (defaults from the preload config)."""
        config = self._preload_config
        return await self._preloader.run(
            build_targets(
                locales if locales is not None else config.preload_locales,
                namespaces if namespaces is not None else config.namespaces,
            ),
            batch_size=config.batch_size,
            delay_between_batches=config.delay_between_batches,
            timeout=config.timeout,
            cancel_event=cancel_event,
        )

    async def warmup(self, *, cancel_event: Optional[asyncio.Event] = None) -> Optional[PreloadResult]:
        """Run the configured preload, skipping fresh entries. None when preloading is disabled."""
        if not self._preload_config.enable_preload:
            logger.info("Warmup skipped, preloading disabled")
            return None
        return await self._preloader.run_config(
            self._preload_config,
            cancel_event=cancel_event,
            skip_cached=True,
        )

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    def reconfigure(self, partial: Mapping[str, Any]) -> CacheConfig:
        """
        Apply a partial cache config.

        Validation happens before anything changes; on any error the current
        snapshot stays in place and `CacheValidationError` is raised. A new
        `performance` block also resizes the preloader's concurrency limit and
        default load timeout.
        """
        new_config = self._store.config.merged(partial)
        self._store.reconfigure(new_config)
        if isinstance(new_config, AdvancedCacheConfig):
            self._preloader.configure(
                max_concurrent_loads=new_config.performance.max_concurrent_loads,
                default_timeout=new_config.performance.load_timeout,
            )
        return new_config

    def reconfigure_preload(self, partial: Mapping[str, Any]) -> PreloadConfig:
        self._preload_config = PreloadConfig.from_mapping(partial, base=self._preload_config)
        logger.info(
            "Preload config updated",
            extra={
                "preload_locales": list(self._preload_config.preload_locales),
                "batch_size": self._preload_config.batch_size,
            },
        )
        return self._preload_config

    # ------------------------------------------------------------------ #
    # Observability
    # ------------------------------------------------------------------ #

    def get_metrics(self, window_ms: Optional[int] = None) -> Dict[str, Any]:
        metrics = self._metrics.snapshot(window_ms).to_dict()
        metrics["locale_usage"] = dict(self._locale_usage)
        return metrics

    def get_cache_stats(self) -> CacheStats:
        return self._store.stats()

    async def health_check(self) -> HealthReport:
        return self._health.check()

    def clear_cache(self) -> int:
        return self._store.clear()

    def reset_metrics(self) -> None:
        self._metrics.reset()
        self._locale_usage.clear()

    def invalidate(self, locale: Optional[str] = None, namespace: Optional[str] = None) -> int:
        """Delete every entry under `locale` / `namespace`; everything when both are None."""
        return self._store.invalidate_pattern(cache_keys.create_pattern(locale, namespace))

    def debug_info(self) -> Dict[str, Any]:
        last_result = self._preloader.last_result
        last_report = self._health.last_report
        return {
            "initialized": self._initialized,
            "config": self.config.to_dict(),
            "preload_config": {
                "enable_preload": self._preload_config.enable_preload,
                "preload_locales": list(self._preload_config.preload_locales),
                "namespaces": list(self._preload_config.namespaces),
                "batch_size": self._preload_config.batch_size,
                "delay_between_batches": self._preload_config.delay_between_batches,
                "timeout": self._preload_config.timeout,
            },
            "strategy": self._store.strategy.value,
            "keys": self._store.keys(),
            "stats": self._store.stats().to_dict(),
            "eviction_count": self._store.eviction_count,
            "persistence_errors": self._store.persistence_errors,
            "metrics": self.get_metrics(),
            "bus": self._bus.get_metrics().get_summary(),
            "preloader": {
                "state": self._preloader.state.value,
                "inflight": self._preloader.inflight_count,
                "last_result": last_result.to_dict() if last_result else None,
            },
            "health": last_report.to_dict() if last_report else None,
            "recent_events": [
                event.to_dict() for event in self._bus.recent_events(RECENT_EVENTS_IN_DEBUG)
            ],
        }

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def on(self, event_type: Union[str, CacheEventType], listener: ListenerCallback) -> str:
        return self._bus.on(event_type, listener)

    def off(self, event_type: Union[str, CacheEventType], listener: Union[ListenerCallback, str]) -> bool:
        return self._bus.off(event_type, listener)


__all__ = ["I18nCacheManager"]
