"""Application invalidation – InvalidationManager.

Owns every path that removes or reloads cache entries:

* targeted invalidation by key, glob pattern or tag, each broadcast to
  the other instances so they can drop their L1 copies;
* single-flight loading on a miss (:meth:`with_stampede_prevention`),
  coordinated through a lease in the shared store;
* proactive background refresh of entries close to expiry.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import Any, Awaitable, Callable

from notify_commons.application.cache.backend import CacheBackend
from notify_commons.application.cache.config import CacheConfig
from notify_commons.application.invalidation.events import (
    InvalidationEvent,
    InvalidationKind,
    InvalidationResult,
)
from notify_commons.application.invalidation.lease import DistributedLease
from notify_commons.application.state import Subscription
from notify_commons.kernel.errors import StoreUnavailableError
from notify_commons.resilience.deadline import bounded_timeout, deadline_exceeded

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]

__all__ = ["InvalidationManager"]


class InvalidationManager:
    """Invalidation, stampede prevention and proactive refresh for one namespace."""

    def __init__(
        self,
        backend: CacheBackend,
        *,
        lease_timeout: float = 10.0,
        poll_interval: float = 0.05,
        max_wait: float = 2.0,
        scan_batch_size: int = 100,
        instance_id: str | None = None,
    ) -> None:
        self._backend = backend
        self._keyspace = backend.keyspace
        self._store = backend.store
        self._metrics = backend.metrics
        self._lease_timeout = lease_timeout
        self._poll_interval = poll_interval
        self._max_wait = max_wait
        self._scan_batch_size = scan_batch_size
        self._instance_id = instance_id or uuid.uuid4().hex
        self._pending: dict[tuple[InvalidationKind, str], str] = {}
        self._refreshing: set[str] = set()
        self._background: set[asyncio.Task[None]] = set()
        self._subscription: Subscription | None = None
        self._listener: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls, backend: CacheBackend, config: CacheConfig, *, instance_id: str | None = None
    ) -> "InvalidationManager":
        return cls(
            backend,
            lease_timeout=config.lease_timeout,
            poll_interval=config.lease_poll_interval,
            max_wait=config.lease_max_wait,
            scan_batch_size=config.scan_batch_size,
            instance_id=instance_id,
        )

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def pending(self) -> list[tuple[InvalidationKind, str]]:
        """Invalidations that ended incomplete and await :meth:`retry_pending`."""
        return list(self._pending)

    # ------------------------------------------------------------------
    # Targeted invalidation
    # ------------------------------------------------------------------

    async def invalidate_by_key(self, key: str) -> InvalidationResult:
        local = self._backend.local_tier
        if local is not None:
            local.evict(self._keyspace.entry(key))
        try:
            removed = await self._store.delete(self._keyspace.entry(key))
        except StoreUnavailableError as exc:
            return await self._finish(InvalidationKind.KEY, key, 0, exc)
        return await self._finish(InvalidationKind.KEY, key, removed)

    async def invalidate_by_pattern(self, pattern: str) -> InvalidationResult:
        """Delete every entry matching the glob *pattern*, one SCAN batch at a time."""
        full_pattern = self._keyspace.pattern(pattern)
        local = self._backend.local_tier
        if local is not None:
            local.evict_matching(full_pattern)
        removed = 0
        cursor = 0
        try:
            while True:
                cursor, keys = await self._store.scan(full_pattern, cursor, self._scan_batch_size)
                if keys:
                    removed += await self._store.delete(*keys)
                if cursor == 0:
                    break
        except StoreUnavailableError as exc:
            return await self._finish(InvalidationKind.PATTERN, pattern, removed, exc)
        return await self._finish(InvalidationKind.PATTERN, pattern, removed)

    async def invalidate_by_tag(self, tag: str) -> InvalidationResult:
        """Delete every key indexed under *tag*, then the index itself.

        Indexed keys that already expired are skipped silently.
        """
        local = self._backend.local_tier
        if local is not None:
            local.evict_tagged(tag)
        removed = 0
        try:
            keys = sorted(await self._backend.tags.members(tag))
            for start in range(0, len(keys), self._scan_batch_size):
                removed += await self._store.delete(*keys[start:start + self._scan_batch_size])
            await self._backend.tags.drop(tag)
        except StoreUnavailableError as exc:
            return await self._finish(InvalidationKind.TAG, tag, removed, exc)
        return await self._finish(InvalidationKind.TAG, tag, removed)

    async def retry_pending(self) -> list[InvalidationResult]:
        """Re-run every invalidation that previously ended incomplete."""
        results = []
        for kind, target in list(self._pending):
            results.append(await self._dispatch(kind, target))
        return results

    async def _dispatch(self, kind: InvalidationKind, target: str) -> InvalidationResult:
        if kind is InvalidationKind.KEY:
            return await self.invalidate_by_key(target)
        if kind is InvalidationKind.PATTERN:
            return await self.invalidate_by_pattern(target)
        return await self.invalidate_by_tag(target)

    async def _finish(
        self,
        kind: InvalidationKind,
        target: str,
        removed: int,
        error: StoreUnavailableError | None = None,
    ) -> InvalidationResult:
        result = InvalidationResult(
            kind=kind,
            target=target,
            removed=removed,
            complete=error is None,
            error=None if error is None else error.code,
        )
        self._metrics.invalidation(kind.value, complete=result.complete)
        self._metrics.evicted(removed, reason=kind.value)
        if result.complete:
            self._pending.pop((kind, target), None)
            logger.info("cache.invalidated kind=%s target=%s removed=%d", kind.value, target, removed)
        else:
            self._pending[(kind, target)] = result.error or "incomplete"
            logger.warning(
                "cache.invalidation_incomplete kind=%s target=%s removed=%d error=%r",
                kind.value, target, removed, error,
            )
        await self._broadcast(kind, target)
        return result

    async def _broadcast(self, kind: InvalidationKind, target: str) -> None:
        event = InvalidationEvent(
            kind=kind,
            target=target,
            origin_instance=self._instance_id,
            timestamp=self._backend.clock.timestamp(),
        )
        try:
            await self._store.publish(self._keyspace.channel, event.to_json())
        except StoreUnavailableError as exc:
            logger.warning("cache.invalidation_publish_failed kind=%s target=%s error=%r", kind.value, target, exc)

    # ------------------------------------------------------------------
    # Stampede prevention
    # ------------------------------------------------------------------

    def _lease(self, key: str, ttl: float | None = None) -> DistributedLease:
        return DistributedLease(self._store, self._keyspace.lease(key), ttl or self._lease_timeout)

    async def with_stampede_prevention(
        self,
        key: str,
        loader: Loader,
        *,
        ttl: float,
        tags: tuple[str, ...] | list[str] = (),
        version: str | int | None = None,
        lease_timeout: float | None = None,
    ) -> Any:
        """Load *key* at most once across all instances and cache the result.

        The lease holder re-checks the cache, loads and writes. Everyone
        else polls the cache and retries the lease until the value shows up,
        the lease is theirs, or the wait budget (``max_wait``, bounded by the
        caller deadline) runs out, in which case they load directly. Loader
        exceptions propagate after the lease is released.
        """
        if deadline_exceeded():
            self._metrics.stampede_degraded("deadline_exceeded")
            return await loader()
        lease = self._lease(key, lease_timeout)
        try:
            acquired = await lease.acquire()
        except StoreUnavailableError as exc:
            logger.warning("cache.lease_unavailable key=%s error=%r", key, exc)
            self._metrics.stampede_degraded("store_unavailable")
            return await loader()

        if acquired:
            return await self._load_under_lease(lease, key, loader, ttl, tags, version, recheck=True)

        self._metrics.stampede_prevented()
        outcome, value = await self._wait_for_peer(lease, key)
        if outcome == "hit":
            return value
        if outcome == "acquired":
            return await self._load_under_lease(lease, key, loader, ttl, tags, version, recheck=True)
        logger.warning("cache.stampede_degraded key=%s", key)
        self._metrics.stampede_degraded("wait_exceeded")
        return await self._load_and_store(key, loader, ttl, tags, version)

    async def _wait_for_peer(self, lease: DistributedLease, key: str) -> tuple[str, Any]:
        """Poll until the holder's value lands, the lease frees up, or the wait runs out.

        Returns ``("hit", value)``, ``("acquired", None)`` or ``("timeout", None)``.
        """
        loop = asyncio.get_running_loop()
        give_up_at = loop.time() + bounded_timeout(self._max_wait)
        while True:
            remaining = give_up_at - loop.time()
            if remaining <= 0:
                return "timeout", None
            await asyncio.sleep(min(self._poll_interval, remaining))
            try:
                entry = await self._backend.read(key)
                if entry is not None:
                    return "hit", entry.value
                # a holder whose loader failed has released the lease
                if await lease.acquire():
                    return "acquired", None
            except StoreUnavailableError:
                return "timeout", None

    async def _load_under_lease(
        self,
        lease: DistributedLease,
        key: str,
        loader: Loader,
        ttl: float,
        tags: tuple[str, ...] | list[str],
        version: str | int | None,
        *,
        recheck: bool,
    ) -> Any:
        try:
            if recheck:
                try:
                    entry = await self._backend.read(key)
                except StoreUnavailableError:
                    entry = None
                if entry is not None:
                    return entry.value
            return await self._load_and_store(key, loader, ttl, tags, version)
        finally:
            try:
                await lease.release()
            except StoreUnavailableError as exc:
                logger.warning("cache.lease_release_failed key=%s error=%r", lease.key, exc)

    async def _load_and_store(
        self,
        key: str,
        loader: Loader,
        ttl: float,
        tags: tuple[str, ...] | list[str],
        version: str | int | None,
    ) -> Any:
        value = await loader()
        try:
            await self._backend.write(key, value, ttl=ttl, tags=tags, version=version)
        except StoreUnavailableError as exc:
            logger.warning("cache.populate_failed key=%s error=%r", key, exc)
        else:
            self._metrics.stored("loader")
        return value

    # ------------------------------------------------------------------
    # Proactive refresh
    # ------------------------------------------------------------------

    async def refresh_cache(
        self,
        key: str,
        loader: Loader,
        ttl: float,
        refresh_threshold: float = 0.2,
        *,
        tags: tuple[str, ...] | list[str] = (),
        stored_ttl: float | None = None,
    ) -> bool:
        """Schedule a background reload when less than *refresh_threshold* of the TTL is left.

        The ratio is measured against *stored_ttl*, the TTL the entry was
        written with, falling back to *ttl*; the reload is written with
        *ttl*. Never blocks on the reload. Returns whether a refresh was
        scheduled.
        """
        full_ttl = stored_ttl if stored_ttl is not None else ttl
        if key in self._refreshing or full_ttl <= 0:
            return False
        # claimed before the first await so concurrent hits schedule one refresh
        self._refreshing.add(key)
        try:
            remaining = await self._backend.remaining_ttl(key)
        except StoreUnavailableError:
            self._refreshing.discard(key)
            return False
        if remaining is None or remaining / full_ttl >= refresh_threshold:
            self._refreshing.discard(key)
            return False
        task = asyncio.create_task(self._refresh(key, loader, ttl, tuple(tags)))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        logger.debug("cache.refresh_scheduled key=%s remaining=%.3f", key, remaining)
        return True

    async def _refresh(self, key: str, loader: Loader, ttl: float, tags: tuple[str, ...]) -> None:
        lease = self._lease(key)
        try:
            if not await lease.acquire():
                logger.debug("cache.refresh_skipped key=%s reason=lease_held", key)
                return
            await self._load_under_lease(lease, key, loader, ttl, tags, None, recheck=False)
        except Exception as exc:  # noqa: BLE001
            logger.warning("cache.refresh_failed key=%s error=%r", key, exc)
        finally:
            self._refreshing.discard(key)

    async def join_background(self) -> None:
        """Wait for every scheduled refresh to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Cross-instance listener
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the namespace channel and evict L1 entries on peer events."""
        if self._listener is not None:
            return
        self._subscription = await self._store.subscribe(self._keyspace.channel)
        self._listener = asyncio.create_task(self._listen(self._subscription))

    async def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

    async def _listen(self, subscription: Subscription) -> None:
        try:
            async for payload in subscription:
                try:
                    event = InvalidationEvent.from_json(payload)
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("cache.invalidation_event_invalid error=%r", exc)
                    continue
                if event.origin_instance == self._instance_id:
                    continue
                self.handle_event(event)
        except StoreUnavailableError as exc:
            logger.error("cache.invalidation_listener_stopped error=%r", exc)

    def handle_event(self, event: InvalidationEvent) -> int:
        """Apply a peer's invalidation to the L1 tier; returns how many entries were dropped."""
        local = self._backend.local_tier
        if local is None:
            return 0
        if event.kind is InvalidationKind.KEY:
            evicted = int(local.evict(self._keyspace.entry(event.target)))
        elif event.kind is InvalidationKind.PATTERN:
            evicted = local.evict_matching(self._keyspace.pattern(event.target))
        else:
            evicted = local.evict_tagged(event.target)
        self._metrics.evicted(evicted, reason="broadcast")
        logger.debug(
            "cache.local_evicted kind=%s target=%s origin=%s evicted=%d",
            event.kind.value, event.target, event.origin_instance, evicted,
        )
        return evicted

    async def __aenter__(self) -> "InvalidationManager":
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.stop()
