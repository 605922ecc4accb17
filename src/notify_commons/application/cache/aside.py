"""Application cache – CacheAsideStrategy (lazy loading with stampede prevention)."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar

from notify_commons.application.cache.backend import CacheBackend
from notify_commons.application.cache.base import BaseCacheStrategy, Loader
from notify_commons.application.cache.entry import CacheEntry, CacheOptions
from notify_commons.application.cache.ttl import AdaptiveTtlPolicy
from notify_commons.kernel.errors import StoreUnavailableError
from notify_commons.resilience.deadline import deadline_exceeded

if TYPE_CHECKING:
    from notify_commons.application.invalidation.manager import InvalidationManager

logger = logging.getLogger(__name__)

BatchLoader = Callable[[list[str]], Awaitable[dict[str, Any]]]

__all__ = ["BatchLoader", "CacheAsideStrategy"]


class CacheAsideStrategy(BaseCacheStrategy):
    """Read through the cache, loading and populating on a miss.

    Misses go through :meth:`InvalidationManager.with_stampede_prevention`
    so that concurrent misses for one key cost a single loader call across
    all instances. When the store is unreachable, or the caller's deadline
    has passed, the loader is called directly and nothing is cached.
    """

    name: ClassVar[str] = "cache_aside"

    def __init__(
        self,
        backend: CacheBackend,
        invalidation: InvalidationManager,
        *,
        ttl_policy: AdaptiveTtlPolicy | None = None,
        default_ttl: float = 3600.0,
        refresh_threshold: float | None = None,
    ) -> None:
        super().__init__(backend, ttl_policy=ttl_policy, default_ttl=default_ttl)
        self._invalidation = invalidation
        self._refresh_threshold = refresh_threshold

    async def get(self, key: str, loader: Loader, options: CacheOptions | None = None) -> Any:
        opts = options or CacheOptions()
        if deadline_exceeded():
            self._metrics.miss(self.name)
            return await loader()
        try:
            entry = await self._lookup(key)
        except StoreUnavailableError as exc:
            logger.warning("cache.read_degraded strategy=%s key=%s error=%r", self.name, key, exc)
            self._metrics.miss(self.name)
            return await loader()

        ttl = self.resolve_ttl(key, opts)
        if entry is not None:
            threshold = opts.refresh_threshold if opts.refresh_threshold is not None else self._refresh_threshold
            if threshold:
                await self._invalidation.refresh_cache(
                    key, loader, ttl, threshold, tags=opts.tags, stored_ttl=entry.ttl
                )
            return entry.value

        value = await self._invalidation.with_stampede_prevention(
            key, loader, ttl=ttl, tags=opts.tags, version=opts.version
        )
        self._track_write(key)
        return value

    async def get_many(
        self,
        keys: list[str],
        loader_many: BatchLoader,
        options: CacheOptions | None = None,
    ) -> dict[str, Any]:
        """Batch read; one ``loader_many(missing_keys)`` call covers every miss.

        Keys the loader does not return are left out of the result.
        """
        if not keys:
            return {}
        if deadline_exceeded():
            return await loader_many(list(keys))
        try:
            entries: list[CacheEntry | None] = list(
                await asyncio.gather(*(self._lookup(key) for key in keys))
            )
        except StoreUnavailableError as exc:
            logger.warning("cache.read_many_degraded strategy=%s keys=%d error=%r", self.name, len(keys), exc)
            return await loader_many(list(keys))

        found = {key: entry.value for key, entry in zip(keys, entries) if entry is not None}
        missing = [key for key in keys if key not in found]
        if not missing:
            return found

        loaded = await loader_many(missing)
        for key, value in loaded.items():
            await self.set(key, value, options)
        found.update(loaded)
        return {key: found[key] for key in keys if key in found}
