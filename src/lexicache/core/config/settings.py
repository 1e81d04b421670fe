"""
Static settings for lexicache.

Purpose
-------
Load process-level settings from environment variables (with `.env`
support) and expose them as one immutable snapshot. These settings decide
how logging behaves, where a Redis backend lives, which YAML config file to
read, and the default cache bounds when no explicit config is given.

Responsibilities
----------------
- Load `.env` via python-dotenv, then read `LEXICACHE_*` variables
- Parse ints/bools safely, falling back to defaults with a warning
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Cache/preload config validation (see validator.py)
- YAML file parsing (see loader.py)

Environment Variables
---------------------
- LEXICACHE_ENV: development | testing | staging | production
- LEXICACHE_LOG_LEVEL: logging level name (default INFO)
- LEXICACHE_LOG_JSON: force JSON logs on/off (default: production only)
- LEXICACHE_LOG_COLORS: colored console output in development (default true)
- LEXICACHE_LOGS_DIR: enables the rotating JSON file handler when set
- LEXICACHE_REDIS_URL: Redis URL for `RedisStorage`
- LEXICACHE_CONFIG_FILE: YAML file consumed by `load_config_file`
- LEXICACHE_MAX_SIZE / LEXICACHE_TTL_MS / LEXICACHE_STORAGE_KEY: cache defaults
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from lexicache.core import constants

_bootstrap_log = logging.getLogger(__name__)


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("PRODUCTION") is Environment.PRODUCTION
        True
        >>> Environment.from_string("nope") is Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            _bootstrap_log.warning(
                "Unknown environment, defaulting to development",
                extra={"value": value},
            )
            return cls.DEVELOPMENT


DEFAULT_REDIS_URL = "redis://localhost:6379/0"

_TRUE_VALUES = {"true", "yes", "1", "on"}
_FALSE_VALUES = {"false", "no", "0", "off"}


def _safe_int(
    key: str,
    default: int,
    sources: Dict[str, bool],
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    raw_value = os.getenv(key)
    if raw_value is None:
        sources[key] = False
        return default

    try:
        value = int(raw_value)
    except ValueError:
        _bootstrap_log.warning(
            "Environment value is not a valid integer, using default",
            extra={"key": key, "value": raw_value, "default": default},
        )
        sources[key] = False
        return default

    if (min_val is not None and value < min_val) or (
        max_val is not None and value > max_val
    ):
        _bootstrap_log.warning(
            "Environment value out of bounds, using default",
            extra={
                "key": key,
                "value": value,
                "min": min_val,
                "max": max_val,
                "default": default,
            },
        )
        sources[key] = False
        return default

    sources[key] = True
    return value


def _safe_bool(key: str, default: Optional[bool], sources: Dict[str, bool]) -> Optional[bool]:
    raw_value = os.getenv(key)
    if raw_value is None:
        sources[key] = False
        return default

    normalized = raw_value.strip().lower()
    if normalized in _TRUE_VALUES:
        sources[key] = True
        return True
    if normalized in _FALSE_VALUES:
        sources[key] = True
        return False

    _bootstrap_log.warning(
        "Environment value is not a valid boolean, using default",
        extra={"key": key, "value": raw_value, "default": default},
    )
    sources[key] = False
    return default


def _safe_str(key: str, default: Optional[str], sources: Dict[str, bool]) -> Optional[str]:
    value = os.getenv(key)
    if value is None or not value.strip():
        sources[key] = False
        return default
    sources[key] = True
    return value.strip()


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Immutable process settings.

    Usage
    -----
    >>> settings = Settings.from_env()
    >>> settings.is_production
    False
    """

    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "INFO"
    log_json: Optional[bool] = None
    log_colors: bool = True
    logs_dir: Optional[Path] = None
    redis_url: str = DEFAULT_REDIS_URL
    config_file: Optional[Path] = None
    max_size: int = constants.DEFAULT_MAX_SIZE
    ttl_ms: int = constants.DEFAULT_TTL_MS
    storage_key: str = constants.DEFAULT_STORAGE_KEY
    sources: Dict[str, bool] = field(default_factory=dict, compare=False)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """
        Build settings from the process environment.

        Parameters
        ----------
        dotenv_path:
            Optional explicit `.env` path. Existing environment variables
            always win over `.env` values.
        """
        load_dotenv(dotenv_path=dotenv_path, override=False)

        sources: Dict[str, bool] = {}
        env_raw = _safe_str("LEXICACHE_ENV", Environment.DEVELOPMENT.value, sources)
        logs_dir = _safe_str("LEXICACHE_LOGS_DIR", None, sources)
        config_file = _safe_str("LEXICACHE_CONFIG_FILE", None, sources)

        return cls(
            environment=Environment.from_string(env_raw or "development"),
            log_level=(_safe_str("LEXICACHE_LOG_LEVEL", "INFO", sources) or "INFO").upper(),
            log_json=_safe_bool("LEXICACHE_LOG_JSON", None, sources),
            log_colors=bool(_safe_bool("LEXICACHE_LOG_COLORS", True, sources)),
            logs_dir=Path(logs_dir).resolve() if logs_dir else None,
            redis_url=_safe_str("LEXICACHE_REDIS_URL", DEFAULT_REDIS_URL, sources)
            or DEFAULT_REDIS_URL,
            config_file=Path(config_file) if config_file else None,
            max_size=_safe_int(
                "LEXICACHE_MAX_SIZE",
                constants.DEFAULT_MAX_SIZE,
                sources,
                min_val=constants.MIN_CACHE_SIZE,
                max_val=constants.MAX_CACHE_SIZE,
            ),
            ttl_ms=_safe_int(
                "LEXICACHE_TTL_MS",
                constants.DEFAULT_TTL_MS,
                sources,
                min_val=constants.MIN_TTL_MS,
            ),
            storage_key=_safe_str("LEXICACHE_STORAGE_KEY", constants.DEFAULT_STORAGE_KEY, sources)
            or constants.DEFAULT_STORAGE_KEY,
            sources=sources,
        )

    @property
    def is_production(self) -> bool:
        return self.environment is Environment.PRODUCTION

    @property
    def use_json_logs(self) -> bool:
        if self.log_json is None:
            return self.is_production
        return self.log_json

    def get_summary(self) -> Dict[str, Any]:
        """Summary of where values came from, safe to log."""
        return {
            "environment": self.environment.value,
            "log_level": self.log_level,
            "from_environment": sorted(k for k, v in self.sources.items() if v),
            "from_defaults": sorted(k for k, v in self.sources.items() if not v),
        }


__all__ = ["Environment", "Settings"]
