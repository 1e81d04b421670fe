"""
Unit Tests for TranslationStore
===============================

Test Coverage
-------------
- Lookup semantics (hit / miss / lazy expiry) and their events
- Size bound and single-victim eviction per policy, including writes from listeners
- Clear, delete, sweep and pattern invalidation
- Live reconfiguration
- Persistence: flush, restore, failure degradation, JSON file and Redis backends
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from lexicache.cache import keys
from lexicache.cache.item import CacheItem, serialize_entries
from lexicache.cache.persistence import JsonFileStorage, MemoryStorage, RedisStorage, StorageBackend
from lexicache.cache.store import TranslationStore
from lexicache.cache.strategies import EvictionStrategy
from lexicache.core.config.models import AdvancedCacheConfig, CacheConfig
from lexicache.core.exceptions import CacheStorageError, CacheValidationError

from tests.conftest import START_MS, FakeClock


def _fill(store: TranslationStore, count: int, clock: FakeClock, step_ms: int = 0) -> list:
    inserted = []
    for index in range(count):
        key = f"l{index}"
        store.set(key, {"n": index})
        inserted.append(key)
        clock.advance(step_ms)
    return inserted


@pytest.mark.unit
class TestLookup:
    """Test get semantics and events."""

    def test_miss_emits_miss(self, store, recorder):
        """A missing key should emit a miss."""
        assert store.get("en:common") is None
        assert recorder.types == ["miss"]

    def test_hit_returns_data_and_counts(self, store, recorder):
        """A hit should return the data and count a hit."""
        store.set("en:common", {"hi": "Hello"})
        recorder.clear()

        assert store.get("en:common") == {"hi": "Hello"}
        assert store.peek("en:common").hits == 1
        assert recorder.types == ["hit"]

    def test_hit_refreshes_last_accessed(self, store, clock):
        """A hit should refresh the last-accessed time."""
        store.set("en", {})
        clock.advance(400)
        store.get("en")
        assert store.peek("en").last_accessed == START_MS + 400

    def test_expired_item_emits_expire_then_miss(self, store, recorder, clock):
        """k1 expires after 1000ms: exactly one expire and the item is gone."""
        store.set("k1", {"a": 1}, ttl=1000)
        clock.advance(1001)
        recorder.clear()

        assert store.get("k1") is None
        assert recorder.types == ["expire", "miss"]
        assert recorder.events[1].metadata["expired"] is True
        assert len(store) == 0

    def test_item_fresh_at_exact_ttl(self, store, clock):
        """An item should still be fresh exactly at its TTL."""
        store.set("k1", {"a": 1}, ttl=1000)
        clock.advance(1000)
        assert store.get("k1") == {"a": 1}

    @pytest.mark.parametrize("bad_key", ["", None, 5, "x" * 257])
    def test_invalid_key_rejected(self, store, bad_key):
        """Invalid keys should be rejected."""
        with pytest.raises(CacheValidationError):
            store.get(bad_key)

    def test_has_and_peek_emit_nothing(self, store, recorder):
        """has and peek should not emit events."""
        store.set("en", {})
        recorder.clear()

        assert store.has("en")
        assert store.peek("en") is not None
        assert "en" in store
        assert recorder.events == []

    def test_peek_returns_copy(self, store):
        """peek should return a copy of the item."""
        store.set("en", {})
        store.peek("en").touch(0)
        assert store.peek("en").hits == 0

    def test_contains_tolerates_invalid_keys(self, store):
        """Membership checks should tolerate invalid keys."""
        assert "" not in store
        assert None not in store


@pytest.mark.unit
class TestSet:
    """Test writes."""

    def test_set_emits_set_with_ttl_and_metadata(self, store, recorder):
        """set should emit a set event with the TTL and metadata."""
        store.set("en", {"a": 1}, ttl=2000, metadata={"source": "preload"})

        event = recorder.events[-1]
        assert event.type.value == "set"
        assert event.key == "en"
        assert event.data == {"a": 1}
        assert event.metadata == {"ttl": 2000, "source": "preload"}

    def test_default_ttl_from_config(self, store):
        """Items without a TTL should use the configured default."""
        store.set("en", {})
        assert store.peek("en").ttl == 1000

    @pytest.mark.parametrize("ttl", [999, 0, -5, 1.5, True, "1000"])
    def test_invalid_ttl(self, store, ttl):
        """Invalid per-item TTLs should be rejected."""
        with pytest.raises(CacheValidationError):
            store.set("en", {}, ttl=ttl)

    def test_ttl_above_maximum_only_warns(self, store, caplog):
        """A TTL past the configured maximum should be kept and logged as a warning."""
        with caplog.at_level("WARNING", logger="lexicache"):
            store.set("en", {}, ttl=2 * 86_400_000)

        assert store.peek("en").ttl == 2 * 86_400_000
        assert "Cache item ttl is unusually long" in caplog.text

    def test_replace_does_not_evict(self, store, recorder, clock):
        """Replacing a key at capacity should not evict."""
        _fill(store, 10, clock)
        recorder.clear()

        store.set("l3", {"new": True})

        assert len(store) == 10
        assert recorder.types == ["set"]
        assert store.peek("l3").hits == 0

    def test_replace_resets_timestamp(self, store, clock):
        """Replacing a key should reset its timestamp."""
        store.set("en", {"v": 1})
        clock.advance(900)
        store.set("en", {"v": 2})
        clock.advance(900)
        assert store.get("en") == {"v": 2}


@pytest.mark.unit
class TestEviction:
    """Test size bound and victim selection."""

    def test_fifo_evicts_oldest_insert(self, bus, recorder, clock):
        """max_size=10, FIFO: writing an eleventh key evicts k1."""
        store = TranslationStore(
            CacheConfig(max_size=10, ttl=60_000, enable_persistence=False),
            bus,
            clock=clock,
            strategy="fifo",
        )
        for index in range(1, 11):
            store.set(f"k{index}", {})
            clock.advance(1)
        store.get("k1")
        recorder.clear()

        store.set("k11", {})

        assert "k1" not in store
        assert len(store) == 10
        assert recorder.types == ["delete", "set"]
        assert recorder.events[0].key == "k1"
        assert recorder.events[0].metadata["reason"] == "evicted"
        assert store.eviction_count == 1

    def test_lru_evicts_least_recently_used(self, store, clock):
        """LRU should evict the least recently used item."""
        _fill(store, 10, clock, step_ms=1)
        store.get("l0")
        clock.advance(1)

        store.set("new", {})

        assert "l0" in store
        assert "l1" not in store

    def test_size_never_exceeds_max(self, store, clock):
        """The store should never grow past max_size."""
        _fill(store, 35, clock, step_ms=1)
        assert len(store) == 10
        assert store.eviction_count == 25

    def test_strategy_from_advanced_config(self, bus, clock):
        """An advanced config should select its eviction strategy."""
        store = TranslationStore(
            AdvancedCacheConfig(max_size=10, eviction_strategy="lfu", enable_persistence=False),
            bus,
            clock=clock,
        )
        assert store.strategy is EvictionStrategy.LFU

    def test_default_strategy_is_lru(self, store):
        """LRU should be the default strategy."""
        assert store.strategy is EvictionStrategy.LRU

    def test_write_from_eviction_listener_keeps_bound(self, bus, clock):
        """A listener writing during an eviction should not push the store past max_size."""
        store = TranslationStore(
            CacheConfig(max_size=2, ttl=60_000, enable_persistence=False),
            bus,
            clock=clock,
            strategy="fifo",
        )
        store.set("k1", {})
        clock.advance(1)
        store.set("k2", {})
        clock.advance(1)

        refilled = []

        def refill(event):
            if not refilled:
                refilled.append(event.key)
                store.set("en:refill", {})

        bus.on("delete", refill)
        store.set("k3", {})

        assert refilled == ["k1"]
        assert len(store) <= 2
        assert "k3" in store
        assert "en:refill" in store
        assert store.eviction_count == 2


@pytest.mark.unit
class TestRemoval:
    """Test delete, clear, sweep and invalidation."""

    def test_delete(self, store, recorder):
        """delete should remove the key and emit a delete."""
        store.set("en", {})
        recorder.clear()

        assert store.delete("en") is True
        assert store.delete("en") is False
        assert recorder.types == ["delete"]

    def test_clear_emits_once_even_when_empty(self, store, recorder, clock):
        """clear should emit one event even when empty."""
        _fill(store, 3, clock)
        recorder.clear()

        assert store.clear() == 3
        assert store.clear() == 0
        assert recorder.types == ["clear", "clear"]
        assert recorder.events[0].metadata == {"removed": 3}
        assert len(store) == 0

    def test_sweep_expired(self, store, recorder, clock):
        """sweep_expired should remove only expired items."""
        store.set("old", {}, ttl=1000)
        clock.advance(500)
        store.set("new", {}, ttl=1000)
        clock.advance(600)
        recorder.clear()

        assert store.sweep_expired() == 1
        assert recorder.types == ["expire"]
        assert recorder.events[0].metadata["sweep"] is True
        assert store.keys() == ["new"]

    def test_len_counts_unswept_expired_items(self, store, clock):
        """len should count expired items until they are swept."""
        store.set("en", {}, ttl=1000)
        clock.advance(2000)
        assert len(store) == 1
        assert store.keys() == []

    def test_invalidate_locale(self, store, recorder):
        """Invalidating a locale should remove its keys."""
        for key in ("en", "en:common", "en:errors", "zh:common"):
            store.set(key, {})
        recorder.clear()

        removed = store.invalidate_pattern(keys.create_pattern("en"))

        assert removed == 3
        assert store.keys() == ["zh:common"]
        assert all(e.metadata["reason"] == "invalidated" for e in recorder.events)

    def test_invalidate_namespace(self, store):
        """Invalidating a namespace should remove it across locales."""
        for key in ("en:common", "zh:common", "zh:errors"):
            store.set(key, {})

        assert store.invalidate_pattern(keys.create_pattern(namespace="common")) == 2
        assert store.keys() == ["zh:errors"]

    def test_sweep_tolerates_listener_removing_sibling(self, store, bus, clock):
        """An expire listener touching another expired key should not break the sweep."""
        store.set("en:a", {}, ttl=1000)
        store.set("en:b", {}, ttl=1000)
        store.set("en:c", {}, ttl=5000)
        clock.advance(1001)
        bus.on("expire", lambda event: store.get("en:b"))

        removed = store.sweep_expired()

        assert removed == 1
        assert "en:a" not in store
        assert "en:b" not in store
        assert store.keys() == ["en:c"]

    def test_invalidate_tolerates_listener_removing_sibling(self, store, bus):
        """A delete listener removing another matched key should not break invalidation."""
        for key in ("en:a", "en:b", "zh:a"):
            store.set(key, {})

        def drop_sibling(event):
            if event.key == "en:a":
                store.delete("en:b")

        bus.on("delete", drop_sibling)

        removed = store.invalidate_pattern(keys.create_pattern("en"))

        assert removed == 1
        assert store.keys() == ["zh:a"]

    def test_stats(self, store, clock):
        """stats should summarize size, hit rate and memory."""
        store.set("a", {})
        clock.advance(100)
        store.set("b", {})
        store.get("a")
        store.get("a")

        stats = store.stats()

        assert stats.size == 2
        assert stats.total_hits == 2
        assert stats.average_age == 50.0


@pytest.mark.unit
class TestReconfigure:
    """Test live config swaps."""

    def test_shrinking_evicts_down(self, bus, clock):
        """Shrinking max_size should evict down to the new bound."""
        store = TranslationStore(
            CacheConfig(max_size=20, ttl=60_000, enable_persistence=False), bus, clock=clock
        )
        _fill(store, 20, clock, step_ms=1)

        evicted = store.reconfigure(CacheConfig(max_size=10, ttl=60_000, enable_persistence=False))

        assert evicted == 10
        assert len(store) == 10
        assert store.config.max_size == 10

    def test_existing_items_keep_their_ttl(self, store):
        """Existing items should keep their own TTL after reconfiguring."""
        store.set("en", {})
        store.reconfigure(CacheConfig(max_size=10, ttl=5000, enable_persistence=False))
        assert store.peek("en").ttl == 1000

    def test_strategy_follows_config_unless_explicit(self, bus, clock):
        """The strategy should follow the config unless set explicitly."""
        implicit = TranslationStore(CacheConfig(max_size=10), bus, clock=clock)
        explicit = TranslationStore(CacheConfig(max_size=10), bus, clock=clock, strategy="fifo")
        advanced = AdvancedCacheConfig(max_size=10, eviction_strategy="ttl")

        implicit.reconfigure(advanced)
        explicit.reconfigure(advanced)

        assert implicit.strategy is EvictionStrategy.TTL
        assert explicit.strategy is EvictionStrategy.FIFO

    @pytest.mark.parametrize(
        "config",
        [
            CacheConfig(max_size=5, enable_persistence=False),
            CacheConfig(max_size=10, ttl=10, enable_persistence=False),
            CacheConfig(max_size=10, storage_key="", enable_persistence=False),
        ],
    )
    def test_invalid_snapshot_rejected(self, store, config):
        """A directly built invalid snapshot should be rejected and the old one kept."""
        before = store.config
        store.set("en", {})

        with pytest.raises(CacheValidationError):
            store.reconfigure(config)

        assert store.config is before
        assert store.has("en")


class _FailingStorage:
    def __init__(self) -> None:
        self.attempts = 0

    async def get(self, storage_key):
        raise CacheStorageError("backend offline")

    async def set(self, storage_key, blob):
        self.attempts += 1
        raise CacheStorageError("backend offline")

    async def delete(self, storage_key):
        raise CacheStorageError("backend offline")


def _persistent_store(storage, clock, bus=None, max_size=10) -> TranslationStore:
    return TranslationStore(
        CacheConfig(max_size=max_size, ttl=10_000, enable_persistence=True, storage_key="test_cache"),
        bus,
        storage,
        clock=clock,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestPersistence:
    """Test flush and restore."""

    async def test_background_flush_after_writes(self, clock):
        """Writes should trigger a background flush."""
        storage = MemoryStorage()
        store = _persistent_store(storage, clock)

        store.set("en", {"hi": "Hello"})
        store.set("zh", {"hi": "你好"})
        await store.aclose()

        assert "test_cache" in storage
        restored = _persistent_store(storage, clock)
        assert await restored.load() == 2
        assert restored.get("zh") == {"hi": "你好"}

    async def test_flush_without_changes_is_noop(self, clock):
        """Flushing without changes should not write."""
        store = _persistent_store(MemoryStorage(), clock)
        assert await store.flush() is False

    async def test_disabled_without_backend(self, store):
        """Without a backend persistence should be disabled."""
        assert store.persistence_enabled is False
        assert await store.load() == 0

    async def test_disabled_by_config(self, clock):
        """enable_persistence false should disable persistence."""
        storage = MemoryStorage()
        store = TranslationStore(CacheConfig(enable_persistence=False), None, storage, clock=clock)
        store.set("en", {})
        await store.aclose()
        assert "i18n_cache" not in storage

    async def test_empty_store_deletes_blob(self, clock):
        """Flushing an empty store should delete the blob."""
        storage = MemoryStorage()
        store = _persistent_store(storage, clock)
        store.set("en", {})
        await store.aclose()

        store.clear()
        await store.aclose()

        assert "test_cache" not in storage

    async def test_restore_skips_expired_and_existing(self, clock):
        """Restore should skip expired entries and keys already present."""
        storage = MemoryStorage()
        now = clock()
        await storage.set(
            "test_cache",
            serialize_entries(
                {
                    "fresh": CacheItem(data={"v": "disk"}, timestamp=now, ttl=10_000),
                    "stale": CacheItem(data={}, timestamp=now - 20_000, ttl=10_000),
                    "live": CacheItem(data={"v": "disk"}, timestamp=now, ttl=10_000),
                }
            ),
        )
        store = _persistent_store(storage, clock)
        store.set("live", {"v": "memory"})

        assert await store.load() == 1
        assert store.get("fresh") == {"v": "disk"}
        assert store.get("live") == {"v": "memory"}
        assert "stale" not in store
        await store.aclose()

    async def test_restore_respects_max_size_newest_first(self, clock):
        """Restore should keep the newest entries up to max_size."""
        storage = MemoryStorage()
        now = clock()
        await storage.set(
            "test_cache",
            serialize_entries(
                {
                    f"k{i}": CacheItem(data={}, timestamp=now - 100 + i, ttl=10_000)
                    for i in range(15)
                }
            ),
        )
        store = _persistent_store(storage, clock)

        assert await store.load() == 10
        assert "k14" in store
        assert "k4" not in store

    async def test_corrupt_blob_degrades_to_empty(self, clock):
        """A corrupt blob should restore nothing."""
        storage = MemoryStorage()
        await storage.set("test_cache", "{corrupt")
        store = _persistent_store(storage, clock)

        assert await store.load() == 0
        assert store.persistence_errors == 1

    async def test_backend_failure_never_reaches_caller(self, clock):
        """Backend failures should never reach the caller."""
        storage = _FailingStorage()
        store = _persistent_store(storage, clock)

        store.set("en", {"a": 1})
        await store.aclose()

        assert store.get("en") == {"a": 1}
        assert store.persistence_errors >= 1
        assert await store.load() == 0

    async def test_failed_flush_is_retried(self, clock):
        """A failed flush should be retried on the next write."""
        storage = _FailingStorage()
        store = _persistent_store(storage, clock)
        store.set("en", {})
        await store.aclose()
        attempts = storage.attempts

        assert await store.flush() is False
        assert storage.attempts == attempts + 1

    async def test_unserializable_data_counts_as_error(self, clock):
        """Unserializable data should count as a persistence error."""
        storage = MemoryStorage()
        store = _persistent_store(storage, clock)
        store.set("en", {"bad": object()})
        await store.aclose()

        assert store.persistence_errors >= 1
        assert store.get("en") is not None


@pytest.mark.unit
@pytest.mark.asyncio
class TestJsonFileStorage:
    """Test the JSON file backend."""

    async def test_round_trip(self, tmp_path):
        """A written blob should read back unchanged."""
        storage = JsonFileStorage(tmp_path / "cache")

        await storage.set("i18n_cache", '{"a": 1}')

        assert storage.path_for("i18n_cache").name == "i18n_cache.json"
        assert await storage.get("i18n_cache") == '{"a": 1}'

    async def test_missing_file(self, tmp_path):
        """A missing file should read as None."""
        assert await JsonFileStorage(tmp_path).get("nothing") is None

    async def test_delete(self, tmp_path):
        """delete should remove the file."""
        storage = JsonFileStorage(tmp_path)
        await storage.set("k", "{}")
        await storage.delete("k")
        await storage.delete("k")
        assert await storage.get("k") is None

    async def test_key_sanitized(self, tmp_path):
        """Unsafe characters in the key should be sanitized."""
        assert JsonFileStorage(tmp_path).path_for("a/b:c").name == "a_b_c.json"

    async def test_write_failure(self, tmp_path):
        """Write failures should raise a storage error."""
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        storage = JsonFileStorage(blocker / "sub")

        with pytest.raises(CacheStorageError):
            await storage.set("k", "{}")

    async def test_store_integration(self, tmp_path, clock):
        """A file backend should persist a store across instances."""
        storage = JsonFileStorage(tmp_path)
        store = _persistent_store(storage, clock)
        store.set("en", {"hi": "Hello"})
        await store.aclose()

        restored = _persistent_store(JsonFileStorage(tmp_path), clock)
        assert await restored.load() == 1

    async def test_satisfies_protocol(self, tmp_path):
        """File and memory backends should satisfy the backend protocol."""
        assert isinstance(JsonFileStorage(tmp_path), StorageBackend)
        assert isinstance(MemoryStorage(), StorageBackend)


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisStorage:
    """Test the Redis backend against a mocked client."""

    async def test_get_set_delete_use_prefix(self, mocker):
        """get, set and delete should use the key prefix."""
        client = mocker.MagicMock()
        client.get = mocker.AsyncMock(return_value=b'{"a": 1}')
        client.set = mocker.AsyncMock()
        client.delete = mocker.AsyncMock()
        storage = RedisStorage(client, key_prefix="app:")

        assert await storage.get("i18n_cache") == '{"a": 1}'
        await storage.set("i18n_cache", "{}")
        await storage.delete("i18n_cache")

        client.get.assert_awaited_once_with("app:i18n_cache")
        client.set.assert_awaited_once_with("app:i18n_cache", "{}")
        client.delete.assert_awaited_once_with("app:i18n_cache")

    async def test_ttl_applied_on_write(self, mocker):
        """The configured TTL should be applied on write."""
        client = mocker.MagicMock()
        client.set = mocker.AsyncMock()
        storage = RedisStorage(client, ttl_seconds=60)

        await storage.set("k", "{}")

        client.set.assert_awaited_once_with("lexicache:k", "{}", ex=60)

    async def test_redis_errors_wrapped(self, mocker):
        """Redis errors should be wrapped in a storage error."""
        client = mocker.MagicMock()
        client.get = mocker.AsyncMock(side_effect=RedisConnectionError("down"))
        storage = RedisStorage(client)

        with pytest.raises(CacheStorageError, match="Redis GET failed"):
            await storage.get("k")

    async def test_borrowed_client_not_closed(self, mocker):
        """A borrowed client should not be closed."""
        client = mocker.MagicMock()
        client.aclose = mocker.AsyncMock()

        await RedisStorage(client).aclose()

        client.aclose.assert_not_awaited()

    async def test_owned_client_closed(self, mocker):
        """An owned client should be closed."""
        client = mocker.MagicMock()
        client.aclose = mocker.AsyncMock()
        from_url = mocker.patch("lexicache.cache.persistence.AsyncRedis.from_url", return_value=client)

        storage = RedisStorage.from_url("redis://cache:6379/1")
        await storage.aclose()

        from_url.assert_called_once()
        client.aclose.assert_awaited_once()
