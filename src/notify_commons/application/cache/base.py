"""Application cache – BaseCacheStrategy."""
from __future__ import annotations

import abc
import logging
from typing import Any, Awaitable, Callable, ClassVar

from notify_commons.application.cache.backend import CacheBackend
from notify_commons.application.cache.entry import CacheEntry, CacheOptions
from notify_commons.application.cache.ttl import AdaptiveTtlPolicy
from notify_commons.kernel.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]

__all__ = ["BaseCacheStrategy", "Loader"]


class BaseCacheStrategy(abc.ABC):
    """Shared plumbing for the cache strategies: TTL resolution, metrics, access tracking.

    ``set`` and ``delete`` absorb :class:`StoreUnavailableError` and report
    success as a bool; the cache is an optimisation, never the source of truth.
    """

    name: ClassVar[str] = "cache"

    def __init__(
        self,
        backend: CacheBackend,
        *,
        ttl_policy: AdaptiveTtlPolicy | None = None,
        default_ttl: float = 3600.0,
    ) -> None:
        self._backend = backend
        self._ttl_policy = ttl_policy
        self._default_ttl = default_ttl
        self._metrics = backend.metrics

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @abc.abstractmethod
    async def get(self, key: str, loader: Loader, options: CacheOptions | None = None) -> Any: ...

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def resolve_ttl(self, key: str, options: CacheOptions | None = None) -> float:
        if options is not None and options.ttl is not None:
            return options.ttl
        if self._ttl_policy is not None and options is not None and options.category is not None:
            return self._ttl_policy.ttl_for(key, options.category)
        return self._default_ttl

    def _track_read(self, key: str) -> None:
        if self._ttl_policy is not None and self._ttl_policy.tracker is not None:
            self._ttl_policy.tracker.record_read(key)

    def _track_write(self, key: str) -> None:
        if self._ttl_policy is not None and self._ttl_policy.tracker is not None:
            self._ttl_policy.tracker.record_write(key)

    def _forget(self, key: str) -> None:
        if self._ttl_policy is not None and self._ttl_policy.tracker is not None:
            self._ttl_policy.tracker.forget(key)

    async def _lookup(self, key: str) -> CacheEntry | None:
        """Read *key*, counting a hit or a miss. Store failures propagate."""
        entry = await self._backend.read(key)
        self._track_read(key)
        if entry is None:
            self._metrics.miss(self.name)
        else:
            self._metrics.hit(self.name)
        return entry

    async def _store(self, key: str, value: Any, options: CacheOptions | None) -> CacheEntry:
        opts = options or CacheOptions()
        entry = await self._backend.write(
            key,
            value,
            ttl=self.resolve_ttl(key, opts),
            tags=opts.tags,
            version=opts.version,
        )
        self._track_write(key)
        self._metrics.stored(self.name)
        return entry

    # ------------------------------------------------------------------
    # Direct writes
    # ------------------------------------------------------------------

    async def set(self, key: str, value: Any, options: CacheOptions | None = None) -> bool:
        try:
            await self._store(key, value, options)
        except StoreUnavailableError as exc:
            logger.warning("cache.set_failed strategy=%s key=%s error=%r", self.name, key, exc)
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            removed = await self._backend.remove(key)
        except StoreUnavailableError as exc:
            logger.warning("cache.delete_failed strategy=%s key=%s error=%r", self.name, key, exc)
            return False
        self._forget(key)
        self._metrics.deleted(self.name)
        return removed
