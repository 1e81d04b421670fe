"""
Cache items and the persisted entry-set format.

The persisted blob is one JSON object mapping cache keys to items:

    {"en:common": {"data": {...}, "timestamp": 1700000000000,
                   "ttl": 300000, "hits": 3, "last_accessed": 1700000004000}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Generic, Mapping, TypeVar

from lexicache.cache.timeutils import is_expired, remaining_ttl
from lexicache.core.exceptions import CacheSerializationError

T = TypeVar("T")

_REQUIRED_FIELDS = ("data", "timestamp", "ttl")


@dataclass(slots=True)
class CacheItem(Generic[T]):
    """
    One stored value with its freshness and usage bookkeeping.

    Owned by the store; callers only ever see `data` or a `copy()`.
    """

    data: T
    timestamp: int
    ttl: int
    hits: int = 0
    last_accessed: int = 0

    def __post_init__(self) -> None:
        if not self.last_accessed:
            self.last_accessed = self.timestamp

    def is_expired(self, now: int) -> bool:
        return is_expired(self.timestamp, self.ttl, now)

    def remaining(self, now: int) -> int:
        return remaining_ttl(self.timestamp, self.ttl, now)

    def touch(self, now: int) -> None:
        self.hits += 1
        self.last_accessed = now

    def copy(self) -> "CacheItem[T]":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "timestamp": self.timestamp,
            "ttl": self.ttl,
            "hits": self.hits,
            "last_accessed": self.last_accessed,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CacheItem[Any]":
        missing = [name for name in _REQUIRED_FIELDS if name not in raw]
        if missing:
            raise CacheSerializationError(
                "Persisted cache item is missing fields",
                details={"missing": missing},
            )

        try:
            return cls(
                data=raw["data"],
                timestamp=int(raw["timestamp"]),
                ttl=int(raw["ttl"]),
                hits=max(0, int(raw.get("hits", 0))),
                last_accessed=int(raw.get("last_accessed", 0)),
            )
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(
                "Persisted cache item has malformed fields",
                details={"error": str(e)},
            ) from e


def serialize_entries(items: Mapping[str, CacheItem[Any]]) -> str:
    """
    Raises
    ------
    CacheSerializationError
        If any item's data is not JSON-serializable.
    """
    try:
        return json.dumps(
            {key: item.to_dict() for key, item in items.items()},
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as e:
        raise CacheSerializationError(
            "Cache entries are not JSON-serializable",
            details={"error": str(e), "count": len(items)},
        ) from e


def deserialize_entries(blob: str) -> Dict[str, CacheItem[Any]]:
    """
    Decode a persisted blob.

    Individual malformed items raise; the caller decides whether to skip
    the whole blob.
    """
    try:
        raw = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise CacheSerializationError(
            "Persisted cache blob is not valid JSON",
            details={"error": str(e)},
        ) from e

    if not isinstance(raw, dict):
        raise CacheSerializationError(
            "Persisted cache blob must be a JSON object",
            details={"type": type(raw).__name__},
        )

    entries: Dict[str, CacheItem[Any]] = {}
    for key, value in raw.items():
        if not isinstance(value, Mapping):
            raise CacheSerializationError(
                "Persisted cache item must be a JSON object",
                details={"key": key},
            )
        entries[key] = CacheItem.from_dict(value)
    return entries
