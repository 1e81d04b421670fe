"""
Preload targets, outcomes and run results, plus report helpers.

`PreloadResult` is what `TranslationPreloader.run` returns. `summarize` and
`format_result` turn per-target outcomes into a human-readable report for
logs and debug output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from lexicache.cache.keys import create


class PreloadState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class PreloadTarget:
    """One bundle to warm: a whole locale, or one namespace of it."""

    locale: str
    namespace: Optional[str] = None

    def __post_init__(self) -> None:
        # Rejects separators inside parts.
        create(self.locale, self.namespace)

    @property
    def cache_key(self) -> str:
        return create(self.locale, self.namespace)

    def __str__(self) -> str:
        return self.cache_key


TargetLike = Union[PreloadTarget, str, Tuple[str, Optional[str]]]


def coerce_target(value: TargetLike) -> PreloadTarget:
    """
    >>> coerce_target("en")
    PreloadTarget(locale='en', namespace=None)
    >>> coerce_target(("zh", "common"))
    PreloadTarget(locale='zh', namespace='common')
    """
    if isinstance(value, PreloadTarget):
        return value
    if isinstance(value, str):
        return PreloadTarget(locale=value)
    locale, namespace = value
    return PreloadTarget(locale=locale, namespace=namespace)


def build_targets(locales: Iterable[str], namespaces: Sequence[str] = ()) -> List[PreloadTarget]:
    """Cartesian product `locales x namespaces`; whole-locale targets when no namespaces."""
    if not namespaces:
        return [PreloadTarget(locale=locale) for locale in locales]
    return [PreloadTarget(locale=locale, namespace=ns) for locale in locales for ns in namespaces]


@dataclass(frozen=True, slots=True)
class TargetOutcome:
    target: PreloadTarget
    success: bool
    load_time_ms: float = 0.0
    error: Optional[str] = None
    from_cache: bool = False


@dataclass(frozen=True, slots=True)
class PreloadResult:
    """
    Summary of one preload run.

    Targets from a batch that was in flight when cancellation was requested
    are not counted.
    """

    attempted: int
    succeeded: int
    failed: int
    errors: Tuple[Tuple[PreloadTarget, str], ...] = ()
    batches: int = 0
    state: PreloadState = PreloadState.COMPLETED
    duration_ms: float = 0.0
    run_id: Optional[str] = None
    outcomes: Tuple[TargetOutcome, ...] = field(default=(), compare=False, repr=False)

    @property
    def success_rate(self) -> float:
        return self.succeeded / self.attempted if self.attempted else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "batches": self.batches,
            "duration_ms": round(self.duration_ms, 2),
            "errors": [{"target": str(target), "reason": reason} for target, reason in self.errors],
        }


@dataclass(frozen=True, slots=True)
class PreloadReport:
    total: int
    successful: int
    failed: int
    average_time: float
    cache_hit_rate: float
    details: Tuple[str, ...]


def format_result(outcome: TargetOutcome) -> str:
    """
    >>> format_result(TargetOutcome(PreloadTarget("en"), True, 12.0))
    'OK en 12ms (network)'
    """
    status = "OK" if outcome.success else "FAIL"
    source = "(cached)" if outcome.from_cache else "(network)"
    line = f"{status} {outcome.target} {outcome.load_time_ms:.0f}ms {source}"
    if outcome.error:
        line += f" - {outcome.error}"
    return line


def summarize(outcomes: Sequence[TargetOutcome]) -> PreloadReport:
    total = len(outcomes)
    successful = sum(1 for o in outcomes if o.success)
    cached = sum(1 for o in outcomes if o.from_cache)
    total_time = sum(o.load_time_ms for o in outcomes)

    return PreloadReport(
        total=total,
        successful=successful,
        failed=total - successful,
        average_time=total_time / total if total else 0.0,
        cache_hit_rate=cached / total if total else 0.0,
        details=tuple(format_result(o) for o in outcomes),
    )


__all__ = [
    "PreloadState",
    "PreloadTarget",
    "TargetOutcome",
    "PreloadResult",
    "PreloadReport",
    "build_targets",
    "coerce_target",
    "format_result",
    "summarize",
]
