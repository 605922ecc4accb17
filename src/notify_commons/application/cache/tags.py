"""Application cache – TagIndex kept in the shared store."""
from __future__ import annotations

from notify_commons.application.cache.keys import KeySpace
from notify_commons.application.state import SharedStateStore

__all__ = ["TagIndex"]


class TagIndex:
    """Tag -> set of full cache keys, stored as a store-side set per tag.

    The index is reconciled lazily: entries may expire before the index
    does, so readers of :meth:`members` must tolerate keys that no longer
    exist. The index TTL only ever grows: each add extends it, if needed,
    to outlive the entry being added.
    """

    def __init__(self, store: SharedStateStore, keyspace: KeySpace, ttl: float = 86400.0) -> None:
        self._store = store
        self._keyspace = keyspace
        self._ttl = ttl

    async def add(self, full_key: str, tags: tuple[str, ...] | list[str], entry_ttl: float) -> None:
        for tag in tags:
            tag_key = self._keyspace.tag(tag)
            current = await self._store.ttl(tag_key)
            await self._store.set_add(tag_key, [full_key], ttl=max(self._ttl, entry_ttl, current or 0.0))

    async def members(self, tag: str) -> set[str]:
        return await self._store.set_members(self._keyspace.tag(tag))

    async def drop(self, tag: str) -> None:
        await self._store.delete(self._keyspace.tag(tag))
