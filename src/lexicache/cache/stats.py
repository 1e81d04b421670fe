"""Point-in-time statistics derived from the current entry set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable

from lexicache.cache.item import CacheItem
from lexicache.cache.timeutils import format_duration


@dataclass(frozen=True, slots=True)
class CacheStats:
    size: int
    total_hits: int
    average_age: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "total_hits": self.total_hits,
            "average_age": self.average_age,
        }


@dataclass(frozen=True, slots=True)
class StatsDiff:
    size_diff: int
    hits_diff: int
    age_diff: float


def calculate_hit_rate(hits: int, misses: int) -> float:
    """
    Fraction of lookups that hit; 0.0 when there were none.

    >>> calculate_hit_rate(3, 1)
    0.75
    >>> calculate_hit_rate(0, 0)
    0.0
    """
    total = hits + misses
    return hits / total if total > 0 else 0.0


def calculate_average_age(items: Iterable[CacheItem[Any]], now: int) -> float:
    ages = [now - item.timestamp for item in items]
    return sum(ages) / len(ages) if ages else 0.0


def compute_stats(items: Iterable[CacheItem[Any]], now: int) -> CacheStats:
    snapshot = list(items)
    return CacheStats(
        size=len(snapshot),
        total_hits=sum(item.hits for item in snapshot),
        average_age=calculate_average_age(snapshot, now),
    )


def compare_stats(before: CacheStats, after: CacheStats) -> StatsDiff:
    return StatsDiff(
        size_diff=after.size - before.size,
        hits_diff=after.total_hits - before.total_hits,
        age_diff=after.average_age - before.average_age,
    )


def generate_report(stats: CacheStats) -> str:
    return "\n".join(
        [
            "Cache Statistics:",
            f"- Size: {stats.size} items",
            f"- Total Hits: {stats.total_hits}",
            f"- Average Age: {format_duration(stats.average_age)}",
        ]
    )
