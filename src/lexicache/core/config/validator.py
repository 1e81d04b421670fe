"""
Configuration validation for lexicache.

Purpose
-------
Validate partial cache, advanced-cache and preload configurations before a
config snapshot is built or swapped. Validation never mutates its input and
never raises; it returns a `ConfigValidation` with accumulated errors and
warnings so callers can decide whether to reject the change wholesale.

Responsibilities
----------------
- Recursive `ConfigSchema` type checking with dot-notation error paths
- Range rules for cache size, TTL, compression and performance blocks
- Accept both camelCase and snake_case field names

Non-Responsibilities
--------------------
- Building config objects (see models.py)
- Reading YAML or environment variables (see loader.py / settings.py)

Key Validation Rules
--------------------
1. Absent fields are not validated (partial configs are the norm)
2. `maxSize` must be an int in [MIN_CACHE_SIZE, MAX_CACHE_SIZE]
3. `ttl` below MIN_TTL_MS is an error; above MAX_TTL_MS only a warning
4. Nested blocks are type-checked first; range rules run only on
   well-typed values so one bad field yields one message
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Tuple, Union

from lexicache.core import constants
from lexicache.core.exceptions import CacheValidationError

EVICTION_STRATEGIES: Tuple[str, ...] = ("lru", "lfu", "fifo", "ttl")

SchemaField = Union[type, Tuple[type, ...], "ConfigSchema"]


def _type_name(expected: Union[type, Tuple[type, ...]]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _matches_type(raw: Any, expected: Union[type, Tuple[type, ...]]) -> bool:
    candidates = expected if isinstance(expected, tuple) else (expected,)

    # bool is an int subclass; never accept it for numeric fields
    if isinstance(raw, bool) and bool not in candidates:
        return False

    if float in candidates and isinstance(raw, int):
        return True

    return isinstance(raw, candidates)


@dataclass(slots=True)
class ConfigSchema:
    """
    Recursive schema for nested configuration validation.

    Attributes
    ----------
    fields:
        Mapping of field names to expected types or nested schemas.
    allow_extra:
        Whether to allow fields not defined in the schema.

    Examples
    --------
    >>> schema = ConfigSchema(fields={"level": int})
    >>> schema.collect_errors({"level": "9"}, path="compression")
    ["Config value at 'compression.level' must be int; got str"]
    """

    fields: Mapping[str, SchemaField]
    allow_extra: bool = True

    def collect_errors(self, value: Any, path: str = "") -> List[str]:
        """Return every type violation under `value`; empty when valid."""
        if not isinstance(value, Mapping):
            return [
                f"Config value at '{path or '<root>'}' must be a mapping; "
                f"got {type(value).__name__}"
            ]

        errors: List[str] = []

        for key, expected in self.fields.items():
            if key not in value:
                continue

            full_path = f"{path}.{key}" if path else key
            raw = value[key]

            if isinstance(expected, ConfigSchema):
                errors.extend(expected.collect_errors(raw, path=full_path))
            elif not _matches_type(raw, expected):
                errors.append(
                    f"Config value at '{full_path}' must be {_type_name(expected)}; "
                    f"got {type(raw).__name__}"
                )

        if not self.allow_extra:
            unknown_keys = set(value.keys()) - set(self.fields.keys())
            if unknown_keys:
                unknown_list = ", ".join(sorted(str(k) for k in unknown_keys))
                errors.append(f"Unexpected config keys at '{path or '<root>'}': {unknown_list}")

        return errors

    def validate(self, value: Any, path: str = "") -> Any:
        """
        Validate value against this schema.

        Raises
        ------
        CacheValidationError
            With every violation under `details["errors"]`.
        """
        errors = self.collect_errors(value, path)
        if errors:
            raise CacheValidationError(errors[0], details={"errors": errors})
        return value


COMPRESSION_SCHEMA = ConfigSchema(
    fields={
        "enableCompression": bool,
        "enable_compression": bool,
        "threshold": int,
        "level": int,
    }
)

PERFORMANCE_SCHEMA = ConfigSchema(
    fields={
        "maxConcurrentLoads": int,
        "max_concurrent_loads": int,
        "loadTimeout": (int, float),
        "load_timeout": (int, float),
    }
)


@dataclass(slots=True)
class ConfigValidation:
    """Outcome of validating a partial configuration."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def merge(self, other: "ConfigValidation") -> "ConfigValidation":
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        return self

    def raise_if_invalid(self, message: str) -> None:
        if self.errors:
            raise CacheValidationError(
                message,
                details={"errors": list(self.errors), "warnings": list(self.warnings)},
            )


_MISSING = object()


def _pick(partial: Mapping[str, Any], camel: str, snake: str) -> Any:
    """Read a field under either naming convention (camelCase wins)."""
    if camel in partial:
        return partial[camel]
    return partial.get(snake, _MISSING)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_cache_config(partial: Mapping[str, Any]) -> ConfigValidation:
    """
    Validate a partial base cache configuration.

    Example
    -------
    >>> validate_cache_config({"maxSize": 5}).errors
    ['maxSize must be at least 10']
    """
    result = ConfigValidation()
    if not isinstance(partial, Mapping):
        result.errors.append(
            f"Config value at '<root>' must be a mapping; got {type(partial).__name__}"
        )
        return result

    max_size = _pick(partial, "maxSize", "max_size")
    if max_size is not _MISSING:
        if not _is_int(max_size):
            result.errors.append("maxSize must be an integer")
        elif max_size < constants.MIN_CACHE_SIZE:
            result.errors.append(f"maxSize must be at least {constants.MIN_CACHE_SIZE}")
        elif max_size > constants.MAX_CACHE_SIZE:
            result.errors.append(f"maxSize must not exceed {constants.MAX_CACHE_SIZE}")

    ttl = _pick(partial, "ttl", "ttl_ms")
    if ttl is not _MISSING:
        if not _is_number(ttl):
            result.errors.append("ttl must be a number of milliseconds")
        elif ttl < constants.MIN_TTL_MS:
            result.errors.append(f"ttl must be at least {constants.MIN_TTL_MS}ms")
        elif ttl > constants.MAX_TTL_MS:
            result.warnings.append(f"ttl is very high ({ttl}ms), consider reducing it")

    storage_key = _pick(partial, "storageKey", "storage_key")
    if storage_key is not _MISSING:
        if not isinstance(storage_key, str) or not storage_key:
            result.errors.append("storageKey must be a non-empty string")

    enable_persistence = _pick(partial, "enablePersistence", "enable_persistence")
    if enable_persistence is not _MISSING and not isinstance(enable_persistence, bool):
        result.errors.append("enablePersistence must be a boolean")

    return result


def _validate_compression(block: Any) -> ConfigValidation:
    result = ConfigValidation(errors=COMPRESSION_SCHEMA.collect_errors(block, path="compression"))
    if result.errors:
        return result

    enabled = _pick(block, "enableCompression", "enable_compression")
    threshold = block.get("threshold", _MISSING)
    if enabled is True and threshold is not _MISSING and threshold < 0:
        result.errors.append("compression.threshold must be non-negative")

    level = block.get("level", _MISSING)
    if level is not _MISSING and not (
        constants.MIN_COMPRESSION_LEVEL <= level <= constants.MAX_COMPRESSION_LEVEL
    ):
        result.errors.append(
            f"compression.level must be between {constants.MIN_COMPRESSION_LEVEL} "
            f"and {constants.MAX_COMPRESSION_LEVEL}"
        )

    return result


def _validate_performance(block: Any) -> ConfigValidation:
    result = ConfigValidation(errors=PERFORMANCE_SCHEMA.collect_errors(block, path="performance"))
    if result.errors:
        return result

    max_loads = _pick(block, "maxConcurrentLoads", "max_concurrent_loads")
    if max_loads is not _MISSING and max_loads < 1:
        result.errors.append("performance.maxConcurrentLoads must be at least 1")

    load_timeout = _pick(block, "loadTimeout", "load_timeout")
    if load_timeout is not _MISSING and load_timeout < constants.LOAD_TIMEOUT_WARNING_MS:
        result.warnings.append(
            f"performance.loadTimeout is very short ({load_timeout}ms), loads may time out"
        )

    return result


def validate_advanced_cache_config(partial: Mapping[str, Any]) -> ConfigValidation:
    """Validate a partial advanced config: base rules plus nested blocks."""
    result = validate_cache_config(partial)
    if not isinstance(partial, Mapping):
        return result

    compression = partial.get("compression", _MISSING)
    if compression is not _MISSING:
        result.merge(_validate_compression(compression))

    performance = partial.get("performance", _MISSING)
    if performance is not _MISSING:
        result.merge(_validate_performance(performance))

    strategy = _pick(partial, "evictionStrategy", "eviction_strategy")
    if strategy is not _MISSING and (
        not isinstance(strategy, str) or strategy.lower() not in EVICTION_STRATEGIES
    ):
        result.errors.append(
            f"evictionStrategy must be one of {', '.join(EVICTION_STRATEGIES)}; got {strategy!r}"
        )

    return result


def validate_preload_config(partial: Mapping[str, Any]) -> ConfigValidation:
    """Validate a partial preload configuration."""
    result = ConfigValidation()
    if not isinstance(partial, Mapping):
        result.errors.append(
            f"Config value at '<root>' must be a mapping; got {type(partial).__name__}"
        )
        return result

    enable = _pick(partial, "enablePreload", "enable_preload")
    if enable is not _MISSING and not isinstance(enable, bool):
        result.errors.append("enablePreload must be a boolean")

    batch_size = _pick(partial, "batchSize", "batch_size")
    if batch_size is not _MISSING and (not _is_int(batch_size) or batch_size < 1):
        result.errors.append("batchSize must be an integer of at least 1")

    timeout = _pick(partial, "timeout", "timeout_ms")
    if timeout is not _MISSING and (not _is_number(timeout) or timeout <= 0):
        result.errors.append("timeout must be a positive number of milliseconds")

    delay = _pick(partial, "delayBetweenBatches", "delay_between_batches")
    if delay is not _MISSING and (not _is_number(delay) or delay < 0):
        result.errors.append("delayBetweenBatches must be a non-negative number of milliseconds")

    for label, camel, snake in (
        ("preloadLocales", "preloadLocales", "preload_locales"),
        ("namespaces", "namespaces", "namespaces"),
    ):
        values = _pick(partial, camel, snake)
        if values is _MISSING:
            continue
        if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
            result.errors.append(f"{label} must be a list of strings")
        elif not all(isinstance(v, str) and v for v in values):
            result.errors.append(f"{label} must contain only non-empty strings")

    return result


HEALTH_SCHEMA = ConfigSchema(
    fields={
        "enabled": bool,
        "interval_seconds": (int, float),
        "min_hit_rate": float,
        "max_error_rate": float,
        "max_load_time_ms": float,
        "min_lookups": int,
        "capacity_strikes": int,
    }
)


def validate_health_config(partial: Mapping[str, Any]) -> ConfigValidation:
    """Validate the `health:` block of a config file (snake_case only)."""
    result = ConfigValidation(errors=HEALTH_SCHEMA.collect_errors(partial, path="health"))
    if result.errors:
        return result

    for name in ("min_hit_rate", "max_error_rate"):
        if name in partial and not 0.0 <= partial[name] <= 1.0:
            result.errors.append(f"health.{name} must be between 0 and 1")

    for name in ("interval_seconds", "max_load_time_ms"):
        if name in partial and partial[name] <= 0:
            result.errors.append(f"health.{name} must be positive")

    if "min_lookups" in partial and partial["min_lookups"] < 0:
        result.errors.append("health.min_lookups must be non-negative")

    if "capacity_strikes" in partial and partial["capacity_strikes"] < 1:
        result.errors.append("health.capacity_strikes must be at least 1")

    return result


__all__ = [
    "ConfigSchema",
    "ConfigValidation",
    "EVICTION_STRATEGIES",
    "validate_cache_config",
    "validate_advanced_cache_config",
    "validate_preload_config",
    "validate_health_config",
]
