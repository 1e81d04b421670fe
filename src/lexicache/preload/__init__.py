"""
lexicache preloading.

- preloader: TranslationPreloader (batched warming, de-duplicated on-demand loads)
- results: targets, run results and report helpers
"""

from lexicache.preload.preloader import Loader, TranslationPreloader
from lexicache.preload.results import (
    PreloadReport,
    PreloadResult,
    PreloadState,
    PreloadTarget,
    TargetOutcome,
    build_targets,
    format_result,
    summarize,
)

__all__ = [
    "TranslationPreloader",
    "Loader",
    "PreloadResult",
    "PreloadState",
    "PreloadTarget",
    "TargetOutcome",
    "PreloadReport",
    "build_targets",
    "format_result",
    "summarize",
]
