"""Application cache – LocalCacheTier (process-local L1)."""
from __future__ import annotations

import fnmatch
from collections import OrderedDict

from notify_commons.application.cache.entry import CacheEntry
from notify_commons.kernel.time import Clock, SystemClock

__all__ = ["LocalCacheTier"]


class LocalCacheTier:
    """Bounded LRU of decoded entries in front of the shared store.

    Each entry lives for ``min(ttl, entry.ttl)`` seconds, so a missed
    invalidation broadcast can serve stale data for at most *ttl*.
    Keys are full store keys (``{ns}:{key}``).
    """

    def __init__(self, max_entries: int = 1024, ttl: float = 5.0, clock: Clock | None = None) -> None:
        self._max_entries = max_entries
        self._ttl = ttl
        self._clock = clock or SystemClock()
        self._entries: OrderedDict[str, tuple[float, CacheEntry]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, full_key: str) -> CacheEntry | None:
        item = self._entries.get(full_key)
        if item is None:
            return None
        expires_at, entry = item
        if self._clock.timestamp() >= expires_at:
            del self._entries[full_key]
            return None
        self._entries.move_to_end(full_key)
        return entry

    def put(self, full_key: str, entry: CacheEntry) -> None:
        expires_at = self._clock.timestamp() + min(self._ttl, entry.ttl)
        self._entries[full_key] = (expires_at, entry)
        self._entries.move_to_end(full_key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def evict(self, full_key: str) -> bool:
        return self._entries.pop(full_key, None) is not None

    def evict_matching(self, full_pattern: str) -> int:
        doomed = [k for k in self._entries if fnmatch.fnmatchcase(k, full_pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def evict_tagged(self, tag: str) -> int:
        doomed = [k for k, (_, entry) in self._entries.items() if tag in entry.tags]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
