"""Application state – SharedStateStore and Subscription ports.

Every cross-instance concern of the core (token buckets, cache entries, tag
indexes, leases, invalidation broadcast) goes through one injected
:class:`SharedStateStore`. Implementations must bound every call and raise
:class:`~notify_commons.kernel.errors.StoreUnavailableError` on timeout or
connection failure; callers rely on that single exception type to degrade.
"""
from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class Subscription(Protocol):
    """An open pub/sub subscription yielding raw message payloads."""

    def __aiter__(self) -> AsyncIterator[bytes]: ...
    async def close(self) -> None: ...


@runtime_checkable
class SharedStateStore(Protocol):
    """Port: low-latency key-value service shared by all gateway instances.

    TTLs are expressed in seconds (floats allowed); ``None`` means no expiry.
    """

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl: float | None = None) -> None: ...

    async def set_if_absent(self, key: str, value: bytes, ttl: float) -> bool:
        """SETNX with TTL; ``True`` when the key was created."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete *keys*; returns how many existed."""
        ...

    async def delete_if_equals(self, key: str, value: bytes) -> bool:
        """Atomically delete *key* only while it still holds *value*."""
        ...

    async def compare_and_set(
        self, key: str, expected: bytes | None, value: bytes, ttl: float | None = None
    ) -> bool:
        """Atomically replace *key* with *value* if it currently holds *expected*.

        ``expected=None`` means "only if absent".
        """
        ...

    async def ttl(self, key: str) -> float | None:
        """Remaining lifetime in seconds; ``None`` when absent or persistent."""
        ...

    async def scan(self, pattern: str, cursor: int = 0, count: int = 100) -> tuple[int, list[str]]:
        """One cursor step over keys matching a glob *pattern*; cursor ``0`` ends the scan."""
        ...

    async def set_add(self, key: str, members: list[str], ttl: float | None = None) -> None: ...

    async def set_members(self, key: str) -> set[str]: ...

    async def publish(self, channel: str, payload: bytes) -> int: ...

    async def subscribe(self, channel: str) -> Subscription: ...


__all__ = ["SharedStateStore", "Subscription"]
