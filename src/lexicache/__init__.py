"""
lexicache: translation bundle cache and preloader.

Public entry point is `I18nCacheManager`; the building blocks (store, bus,
metrics, preloader, health checker, config models) are exported for hosts
that compose them differently.
"""

from lexicache.cache.health import CacheHealthChecker, HealthReport
from lexicache.cache.item import CacheItem
from lexicache.cache.keys import CacheKey
from lexicache.cache.persistence import JsonFileStorage, MemoryStorage, RedisStorage, StorageBackend
from lexicache.cache.stats import CacheStats
from lexicache.cache.store import TranslationStore
from lexicache.cache.strategies import EvictionStrategy
from lexicache.core.config.loader import load_config_file
from lexicache.core.config.models import AdvancedCacheConfig, CacheConfig, HealthThresholds, PreloadConfig
from lexicache.core.config.settings import Settings
from lexicache.core.exceptions import (
    CacheError,
    CacheSerializationError,
    CacheStorageError,
    CacheValidationError,
)
from lexicache.core.logging import get_logger, setup_logging, shutdown_logging
from lexicache.event import CacheEvent, CacheEventBus, CacheEventType, CacheMetrics, MetricsSnapshot
from lexicache.manager import I18nCacheManager
from lexicache.preload import PreloadResult, PreloadState, PreloadTarget, TranslationPreloader

__version__ = "0.3.0"

__all__ = [
    "I18nCacheManager",
    "TranslationStore",
    "TranslationPreloader",
    "CacheHealthChecker",
    "HealthReport",
    "CacheEventBus",
    "CacheEvent",
    "CacheEventType",
    "CacheMetrics",
    "MetricsSnapshot",
    "CacheItem",
    "CacheKey",
    "CacheStats",
    "EvictionStrategy",
    "StorageBackend",
    "MemoryStorage",
    "JsonFileStorage",
    "RedisStorage",
    "CacheConfig",
    "AdvancedCacheConfig",
    "PreloadConfig",
    "HealthThresholds",
    "Settings",
    "load_config_file",
    "PreloadResult",
    "PreloadState",
    "PreloadTarget",
    "CacheError",
    "CacheValidationError",
    "CacheStorageError",
    "CacheSerializationError",
    "setup_logging",
    "shutdown_logging",
    "get_logger",
]
