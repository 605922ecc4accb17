"""Application invalidation – DistributedLease."""
from __future__ import annotations

import uuid

from notify_commons.application.state import SharedStateStore

__all__ = ["DistributedLease"]


class DistributedLease:
    """Single-owner lease on a shared-store key (``SET NX`` with TTL).

    Only the owner token that created the lease can release it, so a holder
    whose lease already expired never deletes a successor's lease. A lease
    that is never released simply expires after *ttl* seconds.
    """

    def __init__(self, store: SharedStateStore, key: str, ttl: float, *, owner: str | None = None) -> None:
        self._store = store
        self._key = key
        self._ttl = ttl
        self._owner = owner or uuid.uuid4().hex
        self._held = False

    @property
    def key(self) -> str:
        return self._key

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def held(self) -> bool:
        return self._held

    async def acquire(self) -> bool:
        """Try once; ``False`` means another owner holds the lease."""
        self._held = await self._store.set_if_absent(self._key, self._owner.encode(), self._ttl)
        return self._held

    async def release(self) -> bool:
        """Release if still ours; returns whether a lease was deleted."""
        if not self._held:
            return False
        self._held = False
        return await self._store.delete_if_equals(self._key, self._owner.encode())
