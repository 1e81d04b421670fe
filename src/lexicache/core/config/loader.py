"""
YAML configuration file loading for lexicache.

A config file has up to three top-level sections, each optional:

    cache:
      maxSize: 500
      ttl: 600000
      evictionStrategy: lfu      # any advanced key selects AdvancedCacheConfig
    preload:
      preloadLocales: [en, zh, fr]
      namespaces: [common, errors]
    health:
      enabled: true
      interval_seconds: 60

Each section is validated with the same rules as the programmatic API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from lexicache.core.config.models import (
    AdvancedCacheConfig,
    CacheConfig,
    HealthThresholds,
    PreloadConfig,
)
from lexicache.core.config.settings import Settings
from lexicache.core.config.validator import ConfigSchema
from lexicache.core.exceptions import CacheValidationError
from lexicache.core.logging.logger import get_logger

logger = get_logger(__name__)

FILE_SCHEMA = ConfigSchema(
    fields={
        "cache": (dict, type(None)),
        "preload": (dict, type(None)),
        "health": (dict, type(None)),
    },
    allow_extra=False,
)

_ADVANCED_KEYS = frozenset(
    {"compression", "performance", "evictionStrategy", "eviction_strategy"}
)


@dataclass(frozen=True, slots=True)
class LoadedConfig:
    cache: CacheConfig = field(default_factory=CacheConfig)
    preload: PreloadConfig = field(default_factory=PreloadConfig)
    health: HealthThresholds = field(default_factory=HealthThresholds)


def parse_config(data: Optional[Mapping[str, Any]], base: Optional[CacheConfig] = None) -> LoadedConfig:
    """Build a `LoadedConfig` from an already-parsed mapping."""
    if data is None:
        return LoadedConfig(cache=base or CacheConfig())

    FILE_SCHEMA.validate(data)

    cache_block = data.get("cache") or {}
    if _ADVANCED_KEYS & set(cache_block):
        cache: CacheConfig = AdvancedCacheConfig.from_mapping(cache_block, base=base)
    else:
        cache = CacheConfig.from_mapping(cache_block, base=base)

    return LoadedConfig(
        cache=cache,
        preload=PreloadConfig.from_mapping(data.get("preload") or {}),
        health=HealthThresholds.from_mapping(data.get("health") or {}),
    )


def load_config_file(
    path: Optional[Union[str, Path]] = None,
    settings: Optional[Settings] = None,
) -> LoadedConfig:
    """
    Load and validate a YAML config file.

    Parameters
    ----------
    path:
        File to read. Defaults to `settings.config_file`.
    settings:
        Source of the default path and of the base cache bounds
        (`LEXICACHE_MAX_SIZE` etc.) that the file's `cache:` block overrides.

    Raises
    ------
    CacheValidationError
        If the file is missing, is not valid YAML, or fails validation.
    """
    settings = settings or Settings.from_env()
    target = Path(path) if path is not None else settings.config_file
    base = CacheConfig.from_settings(settings)

    if target is None:
        logger.debug("No config file configured, using settings defaults")
        return LoadedConfig(cache=base)

    if not target.is_file():
        raise CacheValidationError("Config file not found", details={"path": str(target)})

    try:
        with open(target, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CacheValidationError(
            "Config file is not valid YAML",
            details={"path": str(target), "error": str(e)},
        ) from e

    loaded = parse_config(data, base=base)

    logger.info(
        "Loaded config file",
        extra={
            "path": str(target),
            "cache_config": type(loaded.cache).__name__,
            "preload_locales": list(loaded.preload.preload_locales),
            "health_enabled": loaded.health.enabled,
        },
    )
    return loaded


__all__ = ["LoadedConfig", "load_config_file", "parse_config"]
