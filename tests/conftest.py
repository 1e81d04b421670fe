"""
Pytest Configuration and Fixtures for lexicache Tests
=====================================================

Purpose
-------
Shared fixtures for the unit suite: a controllable clock, an event recorder,
and pre-wired bus / metrics / store instances.

Architecture Notes
------------------
- Every test gets fresh instances; nothing is shared across tests
- Time only moves when a test calls `clock.advance()`
- Async tests are marked explicitly (`asyncio_mode = strict`)
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional

import pytest

from lexicache.cache.store import TranslationStore
from lexicache.core.config.models import CacheConfig
from lexicache.event.bus import CacheEventBus
from lexicache.event.metrics import CacheMetrics
from lexicache.event.types import CacheEvent

START_MS = 1_700_000_000_000


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ.setdefault("LEXICACHE_ENV", "testing")
    os.environ.setdefault("LEXICACHE_LOG_LEVEL", "DEBUG")


# ============================================================================
# HELPERS
# ============================================================================


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class EventRecorder:
    """Bus listener that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: List[CacheEvent] = []

    def __call__(self, event: CacheEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [event.type.value for event in self.events]

    def of_type(self, event_type: str) -> List[CacheEvent]:
        return [event for event in self.events if event.type.value == event_type]

    def clear(self) -> None:
        self.events.clear()


def make_loader(
    bundles: Optional[Dict[str, Dict[str, Any]]] = None,
    fail_on: Optional[set] = None,
) -> Callable[..., Any]:
    """
    Async loader returning `{"locale": ..., "namespace": ...}` bundles.

    Targets listed in `fail_on` (as `"locale"` or `"locale:namespace"`) raise.
    Every call is appended to `loader.calls`.
    """
    calls: List[tuple] = []
    failing = fail_on or set()

    async def loader(locale: str, namespace: Optional[str]) -> Dict[str, Any]:
        calls.append((locale, namespace))
        target = f"{locale}:{namespace}" if namespace else locale
        if target in failing:
            raise RuntimeError(f"cannot load {target}")
        if bundles and target in bundles:
            return bundles[target]
        return {"locale": locale, "namespace": namespace}

    loader.calls = calls  # type: ignore[attr-defined]
    return loader


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> CacheEventBus:
    return CacheEventBus()


@pytest.fixture
def recorder(bus: CacheEventBus) -> EventRecorder:
    """Wildcard recorder attached to `bus`."""
    events = EventRecorder()
    bus.on("*", events)
    return events


@pytest.fixture
def metrics(bus: CacheEventBus, clock: FakeClock) -> CacheMetrics:
    cache_metrics = CacheMetrics(clock=clock)
    cache_metrics.attach(bus)
    return cache_metrics


@pytest.fixture
def small_config() -> CacheConfig:
    return CacheConfig(max_size=10, ttl=1000, enable_persistence=False)


@pytest.fixture
def store(small_config: CacheConfig, bus: CacheEventBus, clock: FakeClock) -> TranslationStore:
    return TranslationStore(small_config, bus, clock=clock)
