"""Benchmark: CacheAsideStrategy.get hit and miss paths.

Compares:
- A warm key served from the shared store
- A warm key served from the local tier
- A miss that goes through lease acquisition and the loader
"""

from __future__ import annotations

from notify_commons.application.cache import CacheAsideStrategy, CacheBackend, LocalCacheTier
from notify_commons.application.invalidation import InvalidationManager
from notify_commons.testing import FakeClock, InMemoryStateStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


async def _load() -> dict[str, str]:
    return {"subject": "Welcome", "body": "Hello {name}"}


def _make_strategy(local_tier_size: int = 0) -> CacheAsideStrategy:
    clock = FakeClock()
    local = LocalCacheTier(local_tier_size, ttl=60.0, clock=clock) if local_tier_size else None
    backend = CacheBackend(InMemoryStateStore(clock), namespace="bench", local_tier=local, clock=clock)
    return CacheAsideStrategy(backend, InvalidationManager(backend))


# ---------------------------------------------------------------------------
# Benchmarks
# ---------------------------------------------------------------------------


def test_get_hit_shared_store(benchmark, run_async):
    """Warm key read from the shared store."""
    strategy = _make_strategy()
    run_async(strategy.get("template:welcome", _load))

    result = benchmark(lambda: run_async(strategy.get("template:welcome", _load)))
    assert result["subject"] == "Welcome"


def test_get_hit_local_tier(benchmark, run_async):
    """Warm key read from the in-process tier."""
    strategy = _make_strategy(local_tier_size=128)
    run_async(strategy.get("template:welcome", _load))

    result = benchmark(lambda: run_async(strategy.get("template:welcome", _load)))
    assert result["subject"] == "Welcome"


def test_get_miss(benchmark, run_async):
    """Every call misses a fresh key and runs the loader."""
    strategy = _make_strategy()
    counter = [0]

    def run():
        counter[0] += 1
        return run_async(strategy.get(f"template:{counter[0]}", _load))

    result = benchmark(run)
    assert result["body"] == "Hello {name}"
