"""
lexicache cache layer.

- keys: cache key codec
- timeutils: clock, expiry and formatting helpers
- item: CacheItem and the persisted blob format
- stats: CacheStats and hit-rate helpers
- strategies: eviction policies
- persistence: StorageBackend implementations
- store: TranslationStore
- health: CacheHealthChecker

Import submodules directly (`from lexicache.cache.store import ...`).
"""
