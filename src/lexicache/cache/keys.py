"""
Cache key codec.

Keys are `locale[:namespace[:key]]`. The codec is pure and stateless; the
store only ever calls `validate`, the manager and preloader build keys with
`create`, and bulk invalidation goes through `create_pattern` plus
`matches_pattern`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from lexicache.core.constants import KEY_SEPARATOR, KEY_WILDCARD, MAX_KEY_LENGTH
from lexicache.core.exceptions import CacheValidationError

_NORMALIZE_RE = re.compile(r"[^a-z0-9:_-]")


@dataclass(frozen=True, slots=True)
class CacheKey:
    locale: str
    namespace: Optional[str] = None
    key: Optional[str] = None

    def encode(self) -> str:
        return create(self.locale, self.namespace, self.key)


def create(locale: str, namespace: Optional[str] = None, key: Optional[str] = None) -> str:
    """
    Join the non-empty parts with `:`.

    >>> create("en", "common", "title")
    'en:common:title'
    >>> create("zh")
    'zh'

    Raises
    ------
    CacheValidationError
        If a part contains the separator, or `key` is given without a namespace.
    """
    if key and not namespace:
        raise CacheValidationError(
            "Cache key part 'key' requires a namespace",
            details={"locale": locale, "key": key},
        )

    parts = [locale]
    if namespace:
        parts.append(namespace)
    if key:
        parts.append(key)

    for part in parts:
        if KEY_SEPARATOR in part:
            raise CacheValidationError(
                "Cache key parts must not contain the separator",
                details={"part": part, "separator": KEY_SEPARATOR},
            )

    return KEY_SEPARATOR.join(parts)


def parse(cache_key: str) -> CacheKey:
    """
    Split a cache key into its parts.

    The first segment is always the locale (possibly empty). Empty namespace
    or key segments decode to None and segments past the third are ignored.

    >>> parse("en:common")
    CacheKey(locale='en', namespace='common', key=None)
    >>> parse("")
    CacheKey(locale='', namespace=None, key=None)
    """
    parts = cache_key.split(KEY_SEPARATOR)
    locale = parts[0]
    namespace = parts[1] if len(parts) > 1 and parts[1] else None
    key = parts[2] if len(parts) > 2 and parts[2] else None
    return CacheKey(locale=locale, namespace=namespace, key=key)


def validate(cache_key: Any) -> bool:
    return isinstance(cache_key, str) and 0 < len(cache_key) <= MAX_KEY_LENGTH


def normalize(cache_key: str) -> str:
    """
    >>> normalize("  EN:Common Page ")
    'en:common_page'
    """
    return _NORMALIZE_RE.sub("_", cache_key.lower().strip())


def create_pattern(locale: Optional[str] = None, namespace: Optional[str] = None) -> str:
    """
    >>> create_pattern("en")
    'en:*:*'
    """
    return KEY_SEPARATOR.join([locale or KEY_WILDCARD, namespace or KEY_WILDCARD, KEY_WILDCARD])


def matches_pattern(cache_key: str, pattern: str) -> bool:
    """
    Segment-wise wildcard match.

    A `*` segment matches any value. Pattern segments past the end of the
    key only match when they are all wildcards, so `en:*:*` matches `en`,
    `en:common` and `en:common:title`, but `en:common:*` does not match `en`.
    """
    key_parts = cache_key.split(KEY_SEPARATOR)
    pattern_parts = pattern.split(KEY_SEPARATOR)

    if len(key_parts) > len(pattern_parts):
        return False

    for index, expected in enumerate(pattern_parts):
        if index >= len(key_parts):
            if expected != KEY_WILDCARD:
                return False
            continue
        if expected != KEY_WILDCARD and expected != key_parts[index]:
            return False

    return True


__all__ = [
    "CacheKey",
    "create",
    "parse",
    "validate",
    "normalize",
    "create_pattern",
    "matches_pattern",
]
