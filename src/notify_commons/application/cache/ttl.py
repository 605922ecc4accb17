"""Application cache – AccessTracker and AdaptiveTtlPolicy."""
from __future__ import annotations

import dataclasses
import math
from collections import OrderedDict
from typing import Mapping

__all__ = [
    "AccessStats",
    "AccessTracker",
    "AdaptiveTtlPolicy",
    "DEFAULT_CATEGORY_TTLS",
    "ttl_for_staleness",
]

DEFAULT_CATEGORY_TTLS: dict[str, float] = {
    "user": 3600.0,
    "session": 1800.0,
    "product": 7200.0,
    "static": 86400.0,
    "frequent": 300.0,
    "rare": 3600.0,
    "template": 7200.0,
    "preference": 1800.0,
}


@dataclasses.dataclass
class AccessStats:
    reads: int = 0
    writes: int = 0

    @property
    def total(self) -> int:
        return self.reads + self.writes

    @property
    def read_write_ratio(self) -> float:
        return self.reads / max(self.writes, 1)


class AccessTracker:
    """Per-key read/write counters, bounded to the *max_keys* most recently touched keys."""

    def __init__(self, max_keys: int = 10_000) -> None:
        self._max_keys = max_keys
        self._stats: OrderedDict[str, AccessStats] = OrderedDict()

    def _touch(self, key: str) -> AccessStats:
        stats = self._stats.get(key)
        if stats is None:
            stats = self._stats[key] = AccessStats()
            if len(self._stats) > self._max_keys:
                self._stats.popitem(last=False)
        else:
            self._stats.move_to_end(key)
        return stats

    def record_read(self, key: str) -> None:
        self._touch(key).reads += 1

    def record_write(self, key: str) -> None:
        self._touch(key).writes += 1

    def stats(self, key: str) -> AccessStats | None:
        return self._stats.get(key)

    def forget(self, key: str) -> None:
        self._stats.pop(key, None)


class AdaptiveTtlPolicy:
    """Chooses a TTL from a data category and, optionally, the key's access pattern.

    Read-heavy keys (reads/writes > 10) get twice the category TTL,
    write-heavy keys (< 0.1) half of it. The adjustment only kicks in once a
    key has *min_samples* recorded accesses.
    """

    def __init__(
        self,
        categories: Mapping[str, float] | None = None,
        *,
        default_ttl: float = 3600.0,
        tracker: AccessTracker | None = None,
        min_samples: int = 10,
    ) -> None:
        self._categories = dict(DEFAULT_CATEGORY_TTLS if categories is None else categories)
        self._default_ttl = default_ttl
        self.tracker = tracker
        self._min_samples = min_samples

    def base_ttl(self, category: str | None) -> float:
        if category is None:
            return self._default_ttl
        return self._categories.get(category, self._default_ttl)

    def ttl_for(self, key: str, category: str | None = None) -> float:
        ttl = self.base_ttl(category)
        if self.tracker is None:
            return ttl
        stats = self.tracker.stats(key)
        if stats is None or stats.total < self._min_samples:
            return ttl
        ratio = stats.read_write_ratio
        if ratio > 10:
            return ttl * 2
        if ratio < 0.1:
            return ttl * 0.5
        return ttl


def ttl_for_staleness(max_staleness: float, confidence: float = 0.9) -> int:
    """TTL that keeps served data within *max_staleness* seconds with the given *confidence*."""
    if not 0.0 < confidence <= 1.0:
        raise ValueError("confidence must be within (0, 1]")
    return max(1, math.floor(max_staleness * confidence))
