"""Testing fakes – InMemoryStateStore."""
from __future__ import annotations

import asyncio
import fnmatch
from typing import AsyncIterator

from notify_commons.kernel.errors import StoreUnavailableError
from notify_commons.kernel.time import Clock, SystemClock

_CLOSED = object()


class InMemorySubscription:
    """Queue-backed subscription handed out by :class:`InMemoryStateStore`."""

    def __init__(self, store: "InMemoryStateStore", channel: str) -> None:
        self._store = store
        self._channel = channel
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self.closed = False

    def _deliver(self, payload: bytes) -> None:
        self._queue.put_nowait(payload)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            payload = await self._queue.get()
            if payload is _CLOSED:
                return
            yield payload  # type: ignore[misc]

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._store._unsubscribe(self._channel, self)  # noqa: SLF001
            self._queue.put_nowait(_CLOSED)


class InMemoryStateStore:
    """Dict-backed :class:`SharedStateStore` for tests.

    TTLs follow the injected *clock*, so a ``FrozenClock`` makes expiry
    deterministic. Every call yields to the event loop once (plus any
    configured *latency*), and conditional operations are atomic, like
    their Redis counterparts.

    Failure injection::

        store.set_available(False)            # every call raises StoreUnavailableError
        store.inject_failure("delete", times=1)  # only the next delete fails
    """

    def __init__(self, clock: Clock | None = None, *, latency: float = 0.0) -> None:
        self._clock = clock or SystemClock()
        self._latency = latency
        self._values: dict[str, bytes] = {}
        self._sets: dict[str, set[str]] = {}
        self._expiry: dict[str, float] = {}
        self._subscribers: dict[str, list[InMemorySubscription]] = {}
        self._scans: dict[str, list[str]] = {}
        self._available = True
        self._failures: dict[str, int] = {}
        self.calls: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def set_available(self, available: bool) -> None:
        self._available = available

    def set_latency(self, seconds: float) -> None:
        self._latency = seconds

    def inject_failure(self, operation: str, times: int = 1) -> None:
        self._failures[operation] = self._failures.get(operation, 0) + times

    def keys(self) -> list[str]:
        self._purge()
        return sorted([*self._values, *self._sets])

    async def _enter(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        await asyncio.sleep(self._latency)
        if not self._available:
            raise StoreUnavailableError(operation, f"In-memory store offline during '{operation}'")
        remaining = self._failures.get(operation, 0)
        if remaining:
            self._failures[operation] = remaining - 1
            raise StoreUnavailableError(operation, f"Injected failure during '{operation}'")
        self._purge()

    def _purge(self) -> None:
        now = self._clock.timestamp()
        for key in [k for k, at in self._expiry.items() if at <= now]:
            self._drop(key)

    def _drop(self, key: str) -> bool:
        self._expiry.pop(key, None)
        existed = self._values.pop(key, None) is not None
        return (self._sets.pop(key, None) is not None) or existed

    def _expire_in(self, key: str, ttl: float | None) -> None:
        if ttl is None:
            self._expiry.pop(key, None)
        else:
            self._expiry[key] = self._clock.timestamp() + ttl

    # ------------------------------------------------------------------
    # SharedStateStore
    # ------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        await self._enter("get")
        return self._values.get(key)

    async def set(self, key: str, value: bytes, ttl: float | None = None) -> None:
        await self._enter("set")
        self._sets.pop(key, None)
        self._values[key] = value
        self._expire_in(key, ttl)

    async def set_if_absent(self, key: str, value: bytes, ttl: float) -> bool:
        await self._enter("set_if_absent")
        if key in self._values or key in self._sets:
            return False
        self._values[key] = value
        self._expire_in(key, ttl)
        return True

    async def delete(self, *keys: str) -> int:
        await self._enter("delete")
        return sum(1 for key in keys if self._drop(key))

    async def delete_if_equals(self, key: str, value: bytes) -> bool:
        await self._enter("delete_if_equals")
        if self._values.get(key) != value:
            return False
        return self._drop(key)

    async def compare_and_set(
        self, key: str, expected: bytes | None, value: bytes, ttl: float | None = None
    ) -> bool:
        await self._enter("compare_and_set")
        if self._values.get(key) != expected:
            return False
        self._values[key] = value
        self._expire_in(key, ttl)
        return True

    async def ttl(self, key: str) -> float | None:
        await self._enter("ttl")
        if key not in self._expiry:
            return None
        return self._expiry[key] - self._clock.timestamp()

    async def scan(self, pattern: str, cursor: int = 0, count: int = 100) -> tuple[int, list[str]]:
        await self._enter("scan")
        if cursor == 0:
            # later pages walk this snapshot, so deleting returned keys never shifts the cursor
            self._scans[pattern] = [k for k in sorted([*self._values, *self._sets]) if fnmatch.fnmatchcase(k, pattern)]
        snapshot = self._scans.get(pattern, [])
        page = [k for k in snapshot[cursor:cursor + count] if k in self._values or k in self._sets]
        next_cursor = cursor + count
        if next_cursor >= len(snapshot):
            self._scans.pop(pattern, None)
            next_cursor = 0
        return next_cursor, page

    async def set_add(self, key: str, members: list[str], ttl: float | None = None) -> None:
        await self._enter("set_add")
        if key in self._values:
            raise TypeError(f"{key!r} holds a string value")
        self._sets.setdefault(key, set()).update(members)
        if ttl is not None:
            self._expire_in(key, ttl)

    async def set_members(self, key: str) -> set[str]:
        await self._enter("set_members")
        return set(self._sets.get(key, set()))

    async def publish(self, channel: str, payload: bytes) -> int:
        await self._enter("publish")
        subscribers = list(self._subscribers.get(channel, []))
        for subscription in subscribers:
            subscription._deliver(payload)  # noqa: SLF001
        return len(subscribers)

    async def subscribe(self, channel: str) -> InMemorySubscription:
        await self._enter("subscribe")
        subscription = InMemorySubscription(self, channel)
        self._subscribers.setdefault(channel, []).append(subscription)
        return subscription

    def _unsubscribe(self, channel: str, subscription: InMemorySubscription) -> None:
        subscribers = self._subscribers.get(channel, [])
        if subscription in subscribers:
            subscribers.remove(subscription)


__all__ = ["InMemoryStateStore", "InMemorySubscription"]
