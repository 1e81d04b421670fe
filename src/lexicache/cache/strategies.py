"""
Eviction policies.

Each policy picks exactly one victim from a non-empty entry set. Policies
are stateless; everything they need lives on the items themselves.

Policy          Victim
------          ------
LRU             oldest `last_accessed`
LFU             fewest `hits`, ties to oldest `timestamp`
FIFO            oldest `timestamp`
TTL             least remaining lifetime
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Protocol, Union

from lexicache.cache.item import CacheItem
from lexicache.core.exceptions import CacheValidationError


class EvictionStrategy(str, Enum):
    LRU = "lru"
    LFU = "lfu"
    FIFO = "fifo"
    TTL = "ttl"


class EvictionPolicy(Protocol):
    name: EvictionStrategy

    def select_victim(self, items: Mapping[str, CacheItem[Any]], now: int) -> str: ...


def _require_items(items: Mapping[str, CacheItem[Any]]) -> None:
    if not items:
        raise CacheValidationError("Cannot select an eviction victim from an empty store")


class LRUPolicy:
    name = EvictionStrategy.LRU

    def select_victim(self, items: Mapping[str, CacheItem[Any]], now: int) -> str:
        _require_items(items)
        return min(items, key=lambda k: items[k].last_accessed)


class LFUPolicy:
    name = EvictionStrategy.LFU

    def select_victim(self, items: Mapping[str, CacheItem[Any]], now: int) -> str:
        _require_items(items)
        return min(items, key=lambda k: (items[k].hits, items[k].timestamp))


class FIFOPolicy:
    name = EvictionStrategy.FIFO

    def select_victim(self, items: Mapping[str, CacheItem[Any]], now: int) -> str:
        _require_items(items)
        return min(items, key=lambda k: items[k].timestamp)


class TTLPolicy:
    name = EvictionStrategy.TTL

    def select_victim(self, items: Mapping[str, CacheItem[Any]], now: int) -> str:
        _require_items(items)
        # Signed so already-expired items sort first.
        return min(items, key=lambda k: items[k].ttl - (now - items[k].timestamp))


_POLICIES: Dict[EvictionStrategy, EvictionPolicy] = {
    EvictionStrategy.LRU: LRUPolicy(),
    EvictionStrategy.LFU: LFUPolicy(),
    EvictionStrategy.FIFO: FIFOPolicy(),
    EvictionStrategy.TTL: TTLPolicy(),
}


def get_strategy(strategy: Union[str, EvictionStrategy]) -> EvictionPolicy:
    """
    Resolve a policy by name or enum member.

    Raises
    ------
    CacheValidationError
        For unknown names.
    """
    if isinstance(strategy, EvictionStrategy):
        return _POLICIES[strategy]

    try:
        return _POLICIES[EvictionStrategy(str(strategy).strip().lower())]
    except ValueError as e:
        raise CacheValidationError(
            "Unknown eviction strategy",
            details={"strategy": strategy, "known": [s.value for s in EvictionStrategy]},
        ) from e


__all__ = [
    "EvictionStrategy",
    "EvictionPolicy",
    "LRUPolicy",
    "LFUPolicy",
    "FIFOPolicy",
    "TTLPolicy",
    "get_strategy",
]
