"""
TranslationStore: bounded, TTL-aware in-memory store for message bundles.

Purpose
-------
Own every cached item, enforce size and freshness bounds, publish an event
for every observable change, and optionally mirror the entry set to a
persistence backend.

Responsibilities
----------------
- Synchronous get / set / delete / clear with lazy TTL expiry
- Exactly-one-victim eviction through the configured policy
- Eager expiry (`sweep_expired`) and pattern invalidation
- Live reconfiguration (evicting down to a smaller `max_size`)
- Coalesced background persistence and restore on `load()`

Non-Responsibilities
--------------------
- Loading translations (preloader / manager)
- Metric aggregation (CacheMetrics listens to the bus)
- Validating partial configs (done before a snapshot reaches the store)

Concurrency Model
-----------------
Single asyncio loop. Store operations never await, so each one is atomic
with respect to every other coroutine. Persistence I/O only happens inside
`load()`, `flush()` and the background flush task.

Events
------
- get: `hit`, or `expire` + `miss` for a stale item, or `miss`
- set: `set` (after any eviction `delete` with reason `evicted`, which is
  emitted once the new item is in place and the store is within `max_size`)
- delete / invalidate_pattern: `delete`
- clear: exactly one `clear` per call
- sweep_expired: one `expire` per removed item
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Union

from lexicache.cache import keys as cache_keys
from lexicache.cache.item import CacheItem, deserialize_entries, serialize_entries
from lexicache.cache.persistence import StorageBackend
from lexicache.cache.stats import CacheStats, compute_stats
from lexicache.cache.strategies import EvictionPolicy, EvictionStrategy, get_strategy
from lexicache.cache.timeutils import Clock, system_clock
from lexicache.core import constants
from lexicache.core.config.models import AdvancedCacheConfig, CacheConfig
from lexicache.core.exceptions import CacheError, CacheValidationError
from lexicache.core.logging.logger import get_logger
from lexicache.event.bus import CacheEventBus
from lexicache.event.types import CacheEvent, CacheEventType

logger = get_logger(__name__)


class TranslationStore:
    """
    In-memory translation store.

    Examples
    --------
    >>> store = TranslationStore(CacheConfig(max_size=100))
    >>> store.set("en:common", {"hello": "Hello"})
    >>> store.get("en:common")
    {'hello': 'Hello'}
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        bus: Optional[CacheEventBus] = None,
        storage: Optional[StorageBackend] = None,
        *,
        clock: Clock = system_clock,
        strategy: Optional[Union[str, EvictionStrategy]] = None,
    ) -> None:
        self._config = config or CacheConfig()
        self._bus = bus or CacheEventBus()
        self._storage = storage
        self._clock = clock
        self._explicit_strategy = strategy is not None
        self._policy: EvictionPolicy = get_strategy(strategy or self._strategy_from(self._config))

        self._items: Dict[str, CacheItem[Any]] = {}
        self._eviction_count = 0

        self._dirty = False
        self._flush_task: Optional["asyncio.Task[None]"] = None
        self._persistence_errors = 0

        logger.debug(
            "TranslationStore initialized",
            extra={
                "max_size": self._config.max_size,
                "ttl_ms": self._config.ttl,
                "strategy": self._policy.name.value,
                "persistence": self.persistence_enabled,
            },
        )

    @staticmethod
    def _strategy_from(config: CacheConfig) -> str:
        if isinstance(config, AdvancedCacheConfig):
            return config.eviction_strategy
        return constants.DEFAULT_EVICTION_STRATEGY

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def bus(self) -> CacheEventBus:
        return self._bus

    @property
    def strategy(self) -> EvictionStrategy:
        return self._policy.name

    @property
    def eviction_count(self) -> int:
        return self._eviction_count

    @property
    def persistence_enabled(self) -> bool:
        return self._config.enable_persistence and self._storage is not None

    @property
    def persistence_errors(self) -> int:
        return self._persistence_errors

    def now(self) -> int:
        """Current time from the store's clock (epoch ms)."""
        return self._clock()

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
        self._bus.emit(
            CacheEvent(
                type=event_type,
                timestamp=self._clock(),
                key=key,
                data=data,
                metadata=dict(metadata or {}),
            )
        )

    @staticmethod
    def _require_key(key: Any) -> str:
        if not cache_keys.validate(key):
            raise CacheValidationError(
                "Invalid cache key",
                details={
                    "key": repr(key)[:64],
                    "max_length": constants.MAX_KEY_LENGTH,
                },
            )
        return key

    def _require_ttl(self, ttl: Any) -> int:
        if ttl is None:
            return self._config.ttl
        if isinstance(ttl, bool) or not isinstance(ttl, int):
            raise CacheValidationError("ttl must be an integer", details={"ttl": repr(ttl)})
        if ttl < constants.MIN_TTL_MS:
            raise CacheValidationError(
                f"ttl must be at least {constants.MIN_TTL_MS}ms",
                details={"ttl": ttl},
            )
        if ttl > constants.MAX_TTL_MS:
            logger.warning(
                "Cache item ttl is unusually long",
                extra={"ttl_ms": ttl, "max_ttl_ms": constants.MAX_TTL_MS},
            )
        return ttl

    def _evict_to_capacity(self, now: int, keep: Optional[str] = None) -> List[str]:
        """Remove victims until the store fits `max_size`. `keep` is never chosen."""
        victims: List[str] = []
        while len(self._items) > self._config.max_size:
            candidates = (
                self._items
                if keep is None
                else {k: v for k, v in self._items.items() if k != keep}
            )
            if not candidates:
                break
            victim = self._policy.select_victim(candidates, now)
            del self._items[victim]
            victims.append(victim)

        self._eviction_count += len(victims)
        return victims

    def _emit_evictions(self, victims: List[str]) -> None:
        # Emitted only once the entry set is back within bounds.
        for victim in victims:
            self._emit(
                CacheEventType.DELETE,
                key=victim,
                metadata={"reason": "evicted", "strategy": self._policy.name.value},
            )

    # ------------------------------------------------------------------ #
    # Core operations
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Any:
        """
        Return the cached data for `key`, or None on a miss.

        A hit increments the item's hit count and refreshes its access time.
        An expired item is removed on the spot (`expire`, then `miss`).

        Raises
        ------
        CacheValidationError
            If `key` is not a non-empty string of at most 256 characters.
        """
        self._require_key(key)
        item = self._items.get(key)

        if item is None:
            self._emit(CacheEventType.MISS, key=key)
            return None

        now = self._clock()
        if item.is_expired(now):
            del self._items[key]
            self._emit(CacheEventType.EXPIRE, key=key, metadata={"age_ms": now - item.timestamp})
            self._emit(CacheEventType.MISS, key=key, metadata={"expired": True})
            self._mark_dirty()
            return None

        item.touch(now)
        self._emit(CacheEventType.HIT, key=key, metadata={"hits": item.hits})
        return item.data

    def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[int] = None,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Store `data` under `key`, replacing any previous item.

        Inserting a new key into a full store evicts exactly one victim (never
        the key being written).

        Parameters
        ----------
        ttl:
            Per-item lifetime in ms; defaults to the config TTL.
        metadata:
            Extra context for the `set` event (`source`, `load_time_ms`, ...).
        """
        self._require_key(key)
        item_ttl = self._require_ttl(ttl)
        now = self._clock()

        if key in self._items:
            # Re-insert so insertion order tracks the newest write.
            del self._items[key]

        self._items[key] = CacheItem(data=data, timestamp=now, ttl=item_ttl, last_accessed=now)
        self._emit_evictions(self._evict_to_capacity(now, keep=key))

        event_metadata: Dict[str, Any] = {"ttl": item_ttl}
        if metadata:
            event_metadata.update(metadata)
        self._emit(CacheEventType.SET, key=key, data=data, metadata=event_metadata)
        self._mark_dirty()

    def delete(self, key: str) -> bool:
        self._require_key(key)
        if self._items.pop(key, None) is None:
            return False

        self._emit(CacheEventType.DELETE, key=key)
        self._mark_dirty()
        return True

    def clear(self) -> int:
        """Remove every item. Emits one `clear` event even when already empty."""
        removed = len(self._items)
        self._items.clear()
        self._emit(CacheEventType.CLEAR, metadata={"removed": removed})
        self._mark_dirty()
        return removed

    def stats(self) -> CacheStats:
        return compute_stats(self._items.values(), self._clock())

    # ------------------------------------------------------------------ #
    # Non-counting inspection
    # ------------------------------------------------------------------ #

    def has(self, key: str) -> bool:
        """True when a fresh item exists. No events, no hit accounting."""
        self._require_key(key)
        item = self._items.get(key)
        return item is not None and not item.is_expired(self._clock())

    def peek(self, key: str) -> Optional[CacheItem[Any]]:
        """A copy of the fresh item under `key`, without touching it."""
        self._require_key(key)
        item = self._items.get(key)
        if item is None or item.is_expired(self._clock()):
            return None
        return item.copy()

    def keys(self) -> List[str]:
        """Keys of fresh items, in insertion order."""
        now = self._clock()
        return [key for key, item in self._items.items() if not item.is_expired(now)]

    def __len__(self) -> int:
        # Includes expired items that have not been swept or read yet.
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return cache_keys.validate(key) and self.has(key)  # type: ignore[arg-type]

    # ------------------------------------------------------------------ #
    # Bulk maintenance
    # ------------------------------------------------------------------ #

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [key for key, item in self._items.items() if item.is_expired(now)]

        removed = 0
        for key in expired:
            item = self._items.get(key)
            if item is None or not item.is_expired(now):
                # Removed or rewritten by a listener meanwhile.
                continue
            del self._items[key]
            removed += 1
            self._emit(
                CacheEventType.EXPIRE,
                key=key,
                metadata={"age_ms": now - item.timestamp, "sweep": True},
            )

        if removed:
            self._mark_dirty()
            logger.debug("Swept expired cache items", extra={"count": removed})
        return removed

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a wildcard pattern (see `keys.matches_pattern`).

        >>> store.invalidate_pattern(keys.create_pattern("en"))
        """
        matched = [key for key in self._items if cache_keys.matches_pattern(key, pattern)]

        removed = 0
        for key in matched:
            if self._items.pop(key, None) is None:
                continue
            removed += 1
            self._emit(
                CacheEventType.DELETE,
                key=key,
                metadata={"reason": "invalidated", "pattern": pattern},
            )

        if removed:
            self._mark_dirty()
        logger.info("Invalidated cache pattern", extra={"pattern": pattern, "count": removed})
        return removed

    def reconfigure(self, config: CacheConfig) -> int:
        """
        Swap in a new config snapshot and evict down to its `max_size`.

        Returns the number of evicted items. Existing items keep their own TTL.

        Raises
        ------
        CacheValidationError
            If `config` breaks a cache rule; the current snapshot stays in place.
        """
        config.require_valid()
        previous = self._config
        self._config = config

        if not self._explicit_strategy:
            self._policy = get_strategy(self._strategy_from(config))

        now = self._clock()
        victims = self._evict_to_capacity(now)
        self._emit_evictions(victims)
        evicted = len(victims)

        if evicted:
            self._mark_dirty()

        logger.info(
            "TranslationStore reconfigured",
            extra={
                "previous_max_size": previous.max_size,
                "max_size": config.max_size,
                "ttl_ms": config.ttl,
                "strategy": self._policy.name.value,
                "evicted": evicted,
            },
        )
        return evicted

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def _mark_dirty(self) -> None:
        if not self.persistence_enabled:
            return

        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: stays dirty until the next explicit flush().
            return

        if self._flush_task is None or self._flush_task.done():
            self._flush_task = loop.create_task(self._flush_soon())

    async def _flush_soon(self) -> None:
        # Yield once so a burst of synchronous mutations becomes one write.
        await asyncio.sleep(0)
        while self._dirty:
            if not await self.flush():
                break

    def _record_persistence_error(self, operation: str, exc: Exception) -> None:
        self._persistence_errors += 1
        extra: Dict[str, Any] = {
            "operation": operation,
            "error": str(exc),
            "error_type": type(exc).__name__,
        }
        if isinstance(exc, CacheError):
            extra["error_code"] = exc.code
            extra["details"] = exc.details
        logger.warning("Cache persistence failed", extra=extra)

    async def flush(self) -> bool:
        """
        Write the current entry set to the backend if anything changed.

        Returns True when a write happened. Failures are logged and counted,
        and leave the store dirty so the next flush retries.
        """
        if not self.persistence_enabled or not self._dirty:
            return False

        assert self._storage is not None
        self._dirty = False
        storage_key = self._config.storage_key

        try:
            now = self._clock()
            live = {k: v for k, v in self._items.items() if not v.is_expired(now)}
            if live:
                await self._storage.set(storage_key, serialize_entries(live))
            else:
                await self._storage.delete(storage_key)
        except Exception as exc:
            self._dirty = True
            self._record_persistence_error("flush", exc)
            return False

        logger.debug(
            "Cache entries flushed",
            extra={"storage_key": storage_key, "count": len(live)},
        )
        return True

    async def load(self) -> int:
        """
        Restore fresh items from the backend.

        Keys already in memory win over persisted ones, and restoring never
        exceeds `max_size` (newest persisted items first). Returns the number
        of restored items; 0 on any failure.
        """
        if not self.persistence_enabled:
            return 0

        assert self._storage is not None
        storage_key = self._config.storage_key

        try:
            blob = await self._storage.get(storage_key)
            if not blob:
                return 0
            persisted = deserialize_entries(blob)
        except Exception as exc:
            self._record_persistence_error("load", exc)
            return 0

        now = self._clock()
        candidates = sorted(
            (
                (key, item)
                for key, item in persisted.items()
                if cache_keys.validate(key) and key not in self._items and not item.is_expired(now)
            ),
            key=lambda pair: pair[1].timestamp,
            reverse=True,
        )
        room = max(0, self._config.max_size - len(self._items))
        restored = candidates[:room]

        for key, item in sorted(restored, key=lambda pair: pair[1].timestamp):
            self._items[key] = item

        logger.info(
            "Cache entries restored",
            extra={
                "storage_key": storage_key,
                "persisted": len(persisted),
                "restored": len(restored),
            },
        )
        return len(restored)

    async def aclose(self) -> None:
        """Wait for a pending background flush, then flush once more."""
        task = self._flush_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)
        await self.flush()


__all__ = ["TranslationStore"]
