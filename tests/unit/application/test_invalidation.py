"""Unit tests for invalidation, stampede prevention and proactive refresh."""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from notify_commons.application.cache import CacheAsideStrategy, CacheBackend, LocalCacheTier
from notify_commons.application.invalidation import (
    DistributedLease,
    InvalidationEvent,
    InvalidationKind,
    InvalidationManager,
    InvalidationScheduler,
)
from notify_commons.resilience import Deadline, DeadlineContext
from notify_commons.testing import FakeClock, FakeMetricsRegistry, InMemoryStateStore


def _manager(store: InMemoryStateStore | None = None, clock: Any = None, *, local: bool = False, **kwargs: Any):  # type: ignore[no-untyped-def]
    clock = clock or FakeClock()
    store = store or InMemoryStateStore(clock)
    metrics = FakeMetricsRegistry()
    tier = LocalCacheTier(100, ttl=60.0, clock=clock) if local else None
    backend = CacheBackend(store, namespace="tpl", local_tier=tier, metrics=metrics, clock=clock)
    kwargs.setdefault("poll_interval", 0.01)
    return InvalidationManager(backend, **kwargs), backend, store, clock, metrics


class _CountingLoader:
    def __init__(self, value: Any = "loaded", delay: float = 0.0) -> None:
        self.value = value
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.value


# ---------------------------------------------------------------------------
# Targeted invalidation
# ---------------------------------------------------------------------------


class TestInvalidateByKey:
    def test_removes_entry(self) -> None:
        async def run() -> None:
            manager, backend, _, _, metrics = _manager()
            await backend.write("welcome", "hi", ttl=60)
            result = await manager.invalidate_by_key("welcome")
            assert (result.removed, result.complete) == (1, True)
            assert await backend.read("welcome") is None
            assert metrics.counter_total("cache_invalidations_total", kind="key") == 1
        asyncio.run(run())

    def test_missing_key_is_complete(self) -> None:
        async def run() -> None:
            manager, _, _, _, _ = _manager()
            result = await manager.invalidate_by_key("ghost")
            assert (result.removed, result.complete) == (0, True)
        asyncio.run(run())

    def test_store_failure_is_reported_and_retried(self) -> None:
        async def run() -> None:
            manager, backend, store, _, metrics = _manager()
            await backend.write("k", "v", ttl=60)
            store.inject_failure("delete")
            result = await manager.invalidate_by_key("k")
            assert result.complete is False
            assert result.error == "store_unavailable"
            assert manager.pending == [(InvalidationKind.KEY, "k")]
            assert metrics.counter_total("cache_invalidation_failures_total") == 1

            retried = await manager.retry_pending()
            assert [r.complete for r in retried] == [True]
            assert manager.pending == []
            assert await backend.read("k") is None
        asyncio.run(run())


class TestInvalidateByPattern:
    def test_removes_only_matching_entries(self) -> None:
        async def run() -> None:
            manager, backend, _, _, _ = _manager(scan_batch_size=2)
            for i in range(5):
                await backend.write(f"user:{i}", i, ttl=60)
            await backend.write("org:1", "o", ttl=60)
            result = await manager.invalidate_by_pattern("user:*")
            assert (result.removed, result.complete) == (5, True)
            assert await backend.read("org:1") is not None
        asyncio.run(run())

    def test_never_touches_tag_indexes_or_leases(self) -> None:
        async def run() -> None:
            manager, backend, store, _, _ = _manager()
            await backend.write("a", 1, ttl=60, tags=["t"])
            lease = DistributedLease(store, backend.keyspace.lease("a"), 10)
            await lease.acquire()
            await manager.invalidate_by_pattern("*")
            assert store.keys() == ["lease:tpl:a", "tag:tpl:t"]
        asyncio.run(run())

    def test_scan_failure_is_incomplete(self) -> None:
        async def run() -> None:
            manager, backend, store, _, _ = _manager()
            await backend.write("a", 1, ttl=60)
            store.inject_failure("scan")
            result = await manager.invalidate_by_pattern("*")
            assert result.complete is False
            assert manager.pending == [(InvalidationKind.PATTERN, "*")]
        asyncio.run(run())


class TestInvalidateByTag:
    def test_removes_tagged_entries_and_index(self) -> None:
        async def run() -> None:
            manager, backend, store, _, _ = _manager()
            await backend.write("a", 1, ttl=60, tags=["templates"])
            await backend.write("b", 2, ttl=60, tags=["templates", "sms"])
            await backend.write("c", 3, ttl=60)
            result = await manager.invalidate_by_tag("templates")
            assert (result.removed, result.complete) == (2, True)
            assert await backend.read("c") is not None
            assert await store.set_members("tag:tpl:templates") == set()
        asyncio.run(run())

    def test_expired_members_are_skipped(self) -> None:
        async def run() -> None:
            manager, backend, _, clock, _ = _manager()
            await backend.write("short", 1, ttl=5, tags=["t"])
            await backend.write("long", 2, ttl=600, tags=["t"])
            clock.advance(seconds=10)
            result = await manager.invalidate_by_tag("t")
            assert (result.removed, result.complete) == (1, True)
        asyncio.run(run())

    def test_partial_failure_keeps_index_for_retry(self) -> None:
        async def run() -> None:
            manager, backend, store, _, _ = _manager()
            await backend.write("a", 1, ttl=60, tags=["t"])
            await backend.write("b", 2, ttl=60, tags=["t"])
            store.inject_failure("delete")
            result = await manager.invalidate_by_tag("t")
            assert result.complete is False
            assert await store.set_members("tag:tpl:t") == {"tpl:a", "tpl:b"}

            [retried] = await manager.retry_pending()
            assert (retried.removed, retried.complete) == (2, True)
            assert store.keys() == []
        asyncio.run(run())


# ---------------------------------------------------------------------------
# Leases and stampede prevention
# ---------------------------------------------------------------------------


class TestDistributedLease:
    def test_single_owner(self) -> None:
        async def run() -> None:
            store = InMemoryStateStore(FakeClock())
            first = DistributedLease(store, "lease:x", 10)
            second = DistributedLease(store, "lease:x", 10)
            assert await first.acquire() is True
            assert await second.acquire() is False
            assert await second.release() is False
            assert await first.release() is True
            assert await second.acquire() is True
        asyncio.run(run())

    def test_expired_lease_is_not_deleted_by_old_owner(self) -> None:
        async def run() -> None:
            clock = FakeClock()
            store = InMemoryStateStore(clock)
            old = DistributedLease(store, "lease:x", 10)
            await old.acquire()
            clock.advance(seconds=11)
            new = DistributedLease(store, "lease:x", 10)
            assert await new.acquire() is True
            assert await old.release() is False
            assert store.keys() == ["lease:x"]
        asyncio.run(run())


class TestStampedePrevention:
    def test_store_failure_degrades_to_loader(self) -> None:
        async def run() -> None:
            manager, _, store, _, metrics = _manager()
            store.inject_failure("set_if_absent")
            loader = _CountingLoader("v")
            assert await manager.with_stampede_prevention("k", loader, ttl=60) == "v"
            assert loader.calls == 1
            assert metrics.counter_total("cache_stampede_degraded_total", reason="store_unavailable") == 1
        asyncio.run(run())

    def test_wait_budget_exceeded_loads_directly(self) -> None:
        async def run() -> None:
            manager, backend, store, _, metrics = _manager(max_wait=0.05)
            await DistributedLease(store, "lease:tpl:k", 10).acquire()
            loader = _CountingLoader("mine")
            assert await manager.with_stampede_prevention("k", loader, ttl=60) == "mine"
            assert metrics.counter_total("cache_stampede_degraded_total", reason="wait_exceeded") == 1
            assert (await backend.read("k")).value == "mine"  # type: ignore[union-attr]
        asyncio.run(run())

    def test_failed_holder_hands_lease_to_one_waiter(self) -> None:
        async def run() -> None:
            manager, backend, _, _, metrics = _manager(max_wait=1.0)
            calls = 0

            async def flaky() -> Any:
                nonlocal calls
                calls += 1
                await asyncio.sleep(0.02)
                if calls == 1:
                    raise RuntimeError("source down")
                return "v"

            async def get() -> Any:
                try:
                    return await manager.with_stampede_prevention("k", flaky, ttl=60)
                except RuntimeError:
                    return "failed"

            loop = asyncio.get_running_loop()
            started = loop.time()
            results = await asyncio.gather(*(get() for _ in range(20)))
            assert calls == 2
            assert sorted(results) == ["failed"] + ["v"] * 19
            assert loop.time() - started < 0.5
            assert metrics.counter_total("cache_stampede_degraded_total") == 0
            assert (await backend.read("k")).value == "v"  # type: ignore[union-attr]
        asyncio.run(run())

    def test_caller_deadline_shortens_wait(self) -> None:
        async def run() -> None:
            manager, _, store, _, _ = _manager(max_wait=30.0)
            await DistributedLease(store, "lease:tpl:k", 10).acquire()
            loop = asyncio.get_running_loop()
            started = loop.time()
            async with DeadlineContext.scoped(Deadline.after(0.05)):
                await manager.with_stampede_prevention("k", _CountingLoader(), ttl=60)
            assert loop.time() - started < 1.0
        asyncio.run(run())

    def test_lease_holder_rechecks_cache(self) -> None:
        async def run() -> None:
            manager, backend, _, _, _ = _manager()
            await backend.write("k", "already", ttl=60)
            loader = _CountingLoader()
            assert await manager.with_stampede_prevention("k", loader, ttl=60) == "already"
            assert loader.calls == 0
        asyncio.run(run())


# ---------------------------------------------------------------------------
# Proactive refresh
# ---------------------------------------------------------------------------


class TestProactiveRefresh:
    def test_near_expiry_hit_triggers_one_background_load(self) -> None:
        async def run() -> None:
            manager, backend, _, clock, _ = _manager()
            cache = CacheAsideStrategy(backend, manager, default_ttl=100, refresh_threshold=0.2)
            loader = _CountingLoader("v1")
            await cache.get("k", loader)
            clock.advance(seconds=85)
            loader.value = "v2"
            results = await asyncio.gather(*(cache.get("k", loader) for _ in range(10)))
            assert all(r == "v1" for r in results)
            await manager.join_background()
            assert loader.calls == 2
            assert (await backend.read("k")).value == "v2"  # type: ignore[union-attr]
            assert await backend.remaining_ttl("k") == pytest.approx(100.0)
        asyncio.run(run())

    def test_fresh_entry_is_not_refreshed(self) -> None:
        async def run() -> None:
            manager, backend, _, clock, _ = _manager()
            await backend.write("k", "v", ttl=100)
            clock.advance(seconds=50)
            assert await manager.refresh_cache("k", _CountingLoader(), ttl=100) is False
        asyncio.run(run())

    def test_refresh_skipped_while_lease_held(self) -> None:
        async def run() -> None:
            manager, backend, store, clock, _ = _manager()
            await backend.write("k", "v", ttl=100)
            clock.advance(seconds=90)
            await DistributedLease(store, "lease:tpl:k", 10).acquire()
            loader = _CountingLoader()
            assert await manager.refresh_cache("k", loader, ttl=100) is True
            await manager.join_background()
            assert loader.calls == 0
        asyncio.run(run())

    def test_refresh_failure_keeps_old_value(self) -> None:
        async def run() -> None:
            manager, backend, _, clock, _ = _manager()
            await backend.write("k", "old", ttl=100)
            clock.advance(seconds=90)

            async def broken() -> Any:
                raise RuntimeError("source down")

            await manager.refresh_cache("k", broken, ttl=100)
            await manager.join_background()
            assert (await backend.read("k")).value == "old"  # type: ignore[union-attr]
            assert await manager.refresh_cache("k", _CountingLoader(), ttl=100) is True
            await manager.join_background()
        asyncio.run(run())


# ---------------------------------------------------------------------------
# Cross-instance broadcast
# ---------------------------------------------------------------------------


class TestBroadcast:
    def test_event_json_round_trip(self) -> None:
        event = InvalidationEvent(InvalidationKind.TAG, "templates", "node-a", 1.5)
        assert InvalidationEvent.from_json(event.to_json()) == event

    def test_peer_drops_local_copy(self) -> None:
        async def run() -> None:
            clock = FakeClock()
            store = InMemoryStateStore(clock)
            a, a_backend, _, _, a_metrics = _manager(store, clock, local=True, instance_id="a")
            b, b_backend, _, _, b_metrics = _manager(store, clock, local=True, instance_id="b")
            async with a, b:
                await a_backend.write("k", "v", ttl=60)
                await b_backend.read("k")
                assert b_backend.local_tier.get("tpl:k") is not None  # type: ignore[union-attr]
                await a.invalidate_by_key("k")
                await asyncio.sleep(0.05)
                assert b_backend.local_tier.get("tpl:k") is None  # type: ignore[union-attr]
            assert b_metrics.counter_total("cache_evictions_total", reason="broadcast") == 1
            assert a_metrics.counter_total("cache_evictions_total", reason="broadcast") == 0
        asyncio.run(run())

    def test_invalid_payload_does_not_stop_listener(self) -> None:
        async def run() -> None:
            clock = FakeClock()
            store = InMemoryStateStore(clock)
            manager, backend, _, _, _ = _manager(store, clock, local=True, instance_id="b")
            async with manager:
                await backend.write("k", "v", ttl=60)
                await store.publish("invalidation:tpl", b"{not json")
                event = InvalidationEvent(InvalidationKind.PATTERN, "*", "a", 0.0)
                await store.publish("invalidation:tpl", event.to_json())
                await asyncio.sleep(0.05)
                assert len(backend.local_tier) == 0  # type: ignore[arg-type]
        asyncio.run(run())

    def test_handle_event_by_tag(self) -> None:
        async def run() -> None:
            manager, backend, _, _, _ = _manager(local=True)
            await backend.write("a", 1, ttl=60, tags=["t"])
            await backend.write("b", 2, ttl=60)
            evicted = manager.handle_event(InvalidationEvent(InvalidationKind.TAG, "t", "peer", 0.0))
            assert evicted == 1
            assert len(backend.local_tier) == 1  # type: ignore[arg-type]
        asyncio.run(run())

    def test_publish_failure_does_not_fail_invalidation(self) -> None:
        async def run() -> None:
            manager, backend, store, _, _ = _manager()
            await backend.write("k", "v", ttl=60)
            store.inject_failure("publish")
            result = await manager.invalidate_by_key("k")
            assert result.complete is True
        asyncio.run(run())


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class TestInvalidationScheduler:
    def test_periodic_pattern(self) -> None:
        async def run() -> None:
            manager, backend, _, clock, _ = _manager()
            scheduler = InvalidationScheduler(manager, clock=clock)
            await backend.write("user:1", 1, ttl=60)
            scheduler.schedule_pattern("users", "user:*", interval=0.01)
            assert scheduler.names == ["users"]
            await asyncio.sleep(0.05)
            assert await backend.read("user:1") is None
            assert scheduler.cancel("users") is True
            assert scheduler.cancel("users") is False
        asyncio.run(run())

    def test_one_shot_in_the_past_runs_immediately(self) -> None:
        async def run() -> None:
            manager, backend, _, clock, _ = _manager()
            scheduler = InvalidationScheduler(manager, clock=clock)
            await backend.write("promo:1", 1, ttl=600)
            scheduler.schedule_pattern_at("promo", "promo:*", clock.now() - timedelta(seconds=1))
            await asyncio.sleep(0.02)
            assert await backend.read("promo:1") is None
            assert scheduler.names == []
        asyncio.run(run())

    def test_sweep_retries_pending(self) -> None:
        async def run() -> None:
            manager, backend, store, clock, _ = _manager()
            scheduler = InvalidationScheduler(manager, clock=clock)
            await backend.write("k", 1, ttl=60)
            store.inject_failure("delete")
            await manager.invalidate_by_key("k")
            scheduler.schedule_sweep(0.01)
            await asyncio.sleep(0.05)
            await scheduler.cancel_all()
            assert manager.pending == []
            assert scheduler.names == []
        asyncio.run(run())

    def test_failing_job_keeps_running(self) -> None:
        async def run() -> None:
            manager = MagicMock()
            manager.invalidate_by_pattern = AsyncMock(side_effect=RuntimeError("boom"))
            scheduler = InvalidationScheduler(manager)
            scheduler.schedule_pattern("flaky", "*", interval=0.01)
            await asyncio.sleep(0.06)
            await scheduler.cancel_all()
            assert manager.invalidate_by_pattern.await_count >= 2
        asyncio.run(run())
