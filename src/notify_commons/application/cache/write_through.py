"""Application cache – WriteThroughStrategy."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, ClassVar

from notify_commons.application.cache.base import BaseCacheStrategy, Loader
from notify_commons.application.cache.entry import CacheOptions
from notify_commons.kernel.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

Persister = Callable[[Any], Awaitable[Any]]

__all__ = ["Persister", "WriteThroughStrategy"]


class WriteThroughStrategy(BaseCacheStrategy):
    """Persist first, then cache.

    A persister exception propagates and the cache is left untouched, so
    the cache never holds a value the system of record rejected.
    """

    name: ClassVar[str] = "write_through"

    async def set(  # type: ignore[override]
        self,
        key: str,
        value: Any,
        persister: Persister,
        options: CacheOptions | None = None,
    ) -> bool:
        """Persist *value*, then cache it. Returns whether the cache write landed."""
        await persister(value)
        try:
            await self._store(key, value, options)
        except StoreUnavailableError as exc:
            # persisted but not cached; a stale entry (if any) lives until its TTL
            logger.error("cache.write_through_cache_failed key=%s error=%r", key, exc)
            return False
        return True

    async def get(self, key: str, loader: Loader, options: CacheOptions | None = None) -> Any:
        try:
            entry = await self._lookup(key)
        except StoreUnavailableError as exc:
            logger.warning("cache.read_degraded strategy=%s key=%s error=%r", self.name, key, exc)
            return await loader()
        if entry is not None:
            return entry.value
        value = await loader()
        await super().set(key, value, options)
        return value
