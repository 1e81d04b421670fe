"""
Immutable configuration snapshots for lexicache.

Purpose
-------
Typed, frozen config objects consumed by the store, the preloader and the
health checker. Each `from_mapping` constructor validates exactly once at the
boundary, logs validation warnings, and raises `CacheValidationError` on any
error. Directly constructed snapshots are re-checked with `validate()` /
`require_valid()` by the manager and by `TranslationStore.reconfigure`.

Design Notes
------------
- Snapshots are replaced wholesale, never mutated (`merged` returns a copy)
- Mapping keys may be camelCase or snake_case
- Durations are milliseconds except `HealthThresholds.interval_seconds`
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from lexicache.core import constants
from lexicache.core.config.settings import Settings
from lexicache.core.config.validator import (
    ConfigValidation,
    validate_advanced_cache_config,
    validate_cache_config,
    validate_health_config,
    validate_preload_config,
)
from lexicache.core.logging.logger import get_logger

logger = get_logger(__name__)

# (camelCase, snake_case, attribute)
FieldAlias = Tuple[str, str, str]

_CACHE_FIELDS: Tuple[FieldAlias, ...] = (
    ("maxSize", "max_size", "max_size"),
    ("ttl", "ttl_ms", "ttl"),
    ("enablePersistence", "enable_persistence", "enable_persistence"),
    ("storageKey", "storage_key", "storage_key"),
)

_PRELOAD_FIELDS: Tuple[FieldAlias, ...] = (
    ("enablePreload", "enable_preload", "enable_preload"),
    ("preloadLocales", "preload_locales", "preload_locales"),
    ("batchSize", "batch_size", "batch_size"),
    ("delayBetweenBatches", "delay_between_batches", "delay_between_batches"),
    ("timeout", "timeout_ms", "timeout"),
    ("namespaces", "namespaces", "namespaces"),
)

_TUPLE_FIELDS = frozenset({"preload_locales", "namespaces"})


def _extract(partial: Mapping[str, Any], aliases: Sequence[FieldAlias]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for camel, snake, attr in aliases:
        if camel in partial:
            value = partial[camel]
        elif snake in partial:
            value = partial[snake]
        else:
            continue
        overrides[attr] = tuple(value) if attr in _TUPLE_FIELDS else value
    return overrides


def _check(validation: ConfigValidation, kind: str) -> None:
    for warning in validation.warnings:
        logger.warning("Config validation warning", extra={"config": kind, "warning": warning})

    if not validation.is_valid:
        logger.warning(
            "Config validation failed",
            extra={"config": kind, "errors": validation.errors},
        )
        validation.raise_if_invalid(f"Invalid {kind} config: {validation.errors[0]}")


# ============================================================================
# Base cache config
# ============================================================================


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Bounds and persistence settings for one translation store."""

    max_size: int = constants.DEFAULT_MAX_SIZE
    ttl: int = constants.DEFAULT_TTL_MS
    enable_persistence: bool = constants.DEFAULT_ENABLE_PERSISTENCE
    storage_key: str = constants.DEFAULT_STORAGE_KEY

    @classmethod
    def from_mapping(
        cls, partial: Mapping[str, Any], base: Optional["CacheConfig"] = None
    ) -> "CacheConfig":
        """
        Validate `partial` and build a config from it.

        Fields missing from `partial` are taken from `base` (or the defaults).

        Raises
        ------
        CacheValidationError
            If any rule fails; `details["errors"]` lists all of them.
        """
        _check(validate_cache_config(partial), "cache")
        return replace(base or cls(), **_extract(partial, _CACHE_FIELDS))

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheConfig":
        return cls(
            max_size=settings.max_size,
            ttl=settings.ttl_ms,
            storage_key=settings.storage_key,
        )

    def merged(self, partial: Mapping[str, Any]) -> "CacheConfig":
        """Return a validated copy with `partial` applied on top of this snapshot."""
        return type(self).from_mapping(partial, base=self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> ConfigValidation:
        """Re-check a directly constructed snapshot against the cache rules."""
        return validate_cache_config(self.to_dict())

    def require_valid(self) -> "CacheConfig":
        """
        Return this snapshot unchanged.

        Raises
        ------
        CacheValidationError
            If any rule fails; `details["errors"]` lists all of them.
        """
        _check(self.validate(), "cache")
        return self


# ============================================================================
# Advanced cache config
# ============================================================================


@dataclass(frozen=True, slots=True)
class CompressionConfig:
    enable_compression: bool = False
    threshold: int = constants.DEFAULT_COMPRESSION_THRESHOLD
    level: int = constants.DEFAULT_COMPRESSION_LEVEL


@dataclass(frozen=True, slots=True)
class PerformanceConfig:
    max_concurrent_loads: int = constants.DEFAULT_ADVANCED_MAX_CONCURRENT_LOADS
    load_timeout: int = constants.DEFAULT_ADVANCED_LOAD_TIMEOUT_MS


@dataclass(frozen=True, slots=True)
class AdvancedCacheConfig(CacheConfig):
    """
    Base cache config plus compression, performance and eviction policy.

    `performance.max_concurrent_loads` and `performance.load_timeout` feed
    the preloader when the manager is built from an advanced config.
    """

    compression: CompressionConfig = field(default_factory=CompressionConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    eviction_strategy: str = constants.DEFAULT_EVICTION_STRATEGY

    @classmethod
    def from_mapping(
        cls, partial: Mapping[str, Any], base: Optional[CacheConfig] = None
    ) -> "AdvancedCacheConfig":
        _check(validate_advanced_cache_config(partial), "advanced cache")

        current = base if isinstance(base, AdvancedCacheConfig) else cls(**asdict(base or CacheConfig()))
        overrides = _extract(partial, _CACHE_FIELDS)

        if "compression" in partial:
            block = partial["compression"]
            overrides["compression"] = replace(
                current.compression,
                **_extract(
                    block,
                    (
                        ("enableCompression", "enable_compression", "enable_compression"),
                        ("threshold", "threshold", "threshold"),
                        ("level", "level", "level"),
                    ),
                ),
            )

        if "performance" in partial:
            block = partial["performance"]
            overrides["performance"] = replace(
                current.performance,
                **_extract(
                    block,
                    (
                        ("maxConcurrentLoads", "max_concurrent_loads", "max_concurrent_loads"),
                        ("loadTimeout", "load_timeout", "load_timeout"),
                    ),
                ),
            )

        strategy = partial.get("evictionStrategy", partial.get("eviction_strategy"))
        if strategy is not None:
            overrides["eviction_strategy"] = strategy.lower()

        return replace(current, **overrides)

    def validate(self) -> ConfigValidation:
        return validate_advanced_cache_config(self.to_dict())

    def require_valid(self) -> "AdvancedCacheConfig":
        _check(self.validate(), "advanced cache")
        return self


# ============================================================================
# Preload config
# ============================================================================


@dataclass(frozen=True, slots=True)
class PreloadConfig:
    """What to warm and how aggressively."""

    enable_preload: bool = True
    preload_locales: Tuple[str, ...] = constants.DEFAULT_PRELOAD_LOCALES
    batch_size: int = constants.DEFAULT_BATCH_SIZE
    delay_between_batches: int = constants.DEFAULT_DELAY_BETWEEN_BATCHES_MS
    timeout: int = constants.DEFAULT_LOAD_TIMEOUT_MS
    namespaces: Tuple[str, ...] = ()

    @classmethod
    def from_mapping(
        cls, partial: Mapping[str, Any], base: Optional["PreloadConfig"] = None
    ) -> "PreloadConfig":
        _check(validate_preload_config(partial), "preload")
        return replace(base or cls(), **_extract(partial, _PRELOAD_FIELDS))

    def validate(self) -> ConfigValidation:
        """Re-check a directly constructed snapshot against the preload rules."""
        return validate_preload_config(
            {
                "enable_preload": self.enable_preload,
                "preload_locales": list(self.preload_locales),
                "batch_size": self.batch_size,
                "delay_between_batches": self.delay_between_batches,
                "timeout": self.timeout,
                "namespaces": list(self.namespaces),
            }
        )

    def require_valid(self) -> "PreloadConfig":
        _check(self.validate(), "preload")
        return self


# ============================================================================
# Health thresholds
# ============================================================================


@dataclass(frozen=True, slots=True)
class HealthThresholds:
    """Limits the health checker compares the metrics window against."""

    enabled: bool = False
    interval_seconds: float = constants.HEALTH_CHECK_INTERVAL_SECONDS
    min_hit_rate: float = constants.HEALTH_MIN_HIT_RATE
    max_error_rate: float = constants.HEALTH_MAX_ERROR_RATE
    max_load_time_ms: float = constants.HEALTH_MAX_LOAD_TIME_MS
    min_lookups: int = constants.HEALTH_MIN_LOOKUPS
    capacity_strikes: int = constants.HEALTH_CAPACITY_STRIKES

    @classmethod
    def from_mapping(cls, partial: Mapping[str, Any]) -> "HealthThresholds":
        _check(validate_health_config(partial), "health")
        return cls(**{k: v for k, v in partial.items() if k in cls.__dataclass_fields__})


__all__ = [
    "CacheConfig",
    "CompressionConfig",
    "PerformanceConfig",
    "AdvancedCacheConfig",
    "PreloadConfig",
    "HealthThresholds",
]
