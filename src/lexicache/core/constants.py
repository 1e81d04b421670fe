"""
lexicache Infrastructure Constants

Purpose
-------
Bounds, defaults and intervals shared by the cache, the validator, the
preloader and the health checker. Everything here is a plain value with no
side effects at import time.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- All durations are milliseconds unless the name says otherwise
- Grouped by functional area for easy scanning
"""

from __future__ import annotations

from typing import Final

# ============================================================================
# CACHE BOUNDS
# ============================================================================

MIN_CACHE_SIZE: Final[int] = 10
MAX_CACHE_SIZE: Final[int] = 10_000

MIN_TTL_MS: Final[int] = 1_000  # 1 second
MAX_TTL_MS: Final[int] = 24 * 60 * 60 * 1_000  # 24 hours; above this is a warning

MAX_KEY_LENGTH: Final[int] = 256
KEY_SEPARATOR: Final[str] = ":"
KEY_WILDCARD: Final[str] = "*"

# ============================================================================
# CACHE DEFAULTS
# ============================================================================

DEFAULT_MAX_SIZE: Final[int] = 1_000
DEFAULT_TTL_MS: Final[int] = 5 * 60 * 1_000  # 5 minutes
DEFAULT_ENABLE_PERSISTENCE: Final[bool] = True
DEFAULT_STORAGE_KEY: Final[str] = "i18n_cache"
DEFAULT_EVICTION_STRATEGY: Final[str] = "lru"

# ============================================================================
# PRELOADING
# ============================================================================

DEFAULT_BATCH_SIZE: Final[int] = 5
DEFAULT_DELAY_BETWEEN_BATCHES_MS: Final[int] = 100
DEFAULT_LOAD_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_PRELOAD_LOCALES: Final[tuple[str, ...]] = ("en", "zh")

# Hard ceiling on overlapping loader calls, independent of any batch size
MAX_CONCURRENT_LOADS: Final[int] = 10

# ============================================================================
# ADVANCED CONFIG BOUNDS
# ============================================================================

MIN_COMPRESSION_LEVEL: Final[int] = 1
MAX_COMPRESSION_LEVEL: Final[int] = 9
DEFAULT_COMPRESSION_THRESHOLD: Final[int] = 1_024
DEFAULT_COMPRESSION_LEVEL: Final[int] = 6
LOAD_TIMEOUT_WARNING_MS: Final[int] = 1_000
DEFAULT_ADVANCED_MAX_CONCURRENT_LOADS: Final[int] = 5
DEFAULT_ADVANCED_LOAD_TIMEOUT_MS: Final[int] = 10_000

# ============================================================================
# METRICS, EVENTS & HEALTH
# ============================================================================

EVENT_RETENTION: Final[int] = 1_000
METRICS_RETENTION: Final[int] = 10_000
METRICS_RESET_INTERVAL_MS: Final[int] = 60 * 60 * 1_000  # 1 hour

HEALTH_CHECK_INTERVAL_SECONDS: Final[float] = 300.0  # 5 minutes
HEALTH_MIN_HIT_RATE: Final[float] = 0.8
HEALTH_MAX_ERROR_RATE: Final[float] = 0.05
HEALTH_MAX_LOAD_TIME_MS: Final[float] = 1_000.0
HEALTH_MIN_LOOKUPS: Final[int] = 20
HEALTH_CAPACITY_STRIKES: Final[int] = 3
