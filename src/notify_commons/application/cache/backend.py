"""Application cache – CacheBackend (envelope I/O against the shared store)."""
from __future__ import annotations

import logging
from typing import Any

from notify_commons.application.cache.config import CacheConfig
from notify_commons.application.cache.entry import CacheEntry, CacheSerializer, JsonSerializer
from notify_commons.application.cache.keys import KeySpace
from notify_commons.application.cache.local import LocalCacheTier
from notify_commons.application.cache.tags import TagIndex
from notify_commons.application.state import SharedStateStore
from notify_commons.kernel.errors import SerializationError
from notify_commons.kernel.time import Clock, SystemClock
from notify_commons.observability.metrics import CacheMetrics, Metrics

logger = logging.getLogger(__name__)

__all__ = ["CacheBackend"]


class CacheBackend:
    """Reads and writes :class:`CacheEntry` envelopes for one namespace.

    Shared by every strategy, the invalidation manager and the warmer so
    that they agree on key layout, serialization and the L1 tier.
    Store failures surface as :class:`StoreUnavailableError`; deciding how
    to degrade is left to the caller.
    """

    def __init__(
        self,
        store: SharedStateStore,
        *,
        namespace: str = "cache",
        serializer: CacheSerializer | None = None,
        local_tier: LocalCacheTier | None = None,
        metrics: Metrics | None = None,
        clock: Clock | None = None,
        tag_index_ttl: float = 86400.0,
    ) -> None:
        self._store = store
        self._keyspace = KeySpace(namespace)
        self._serializer = serializer or JsonSerializer()
        self._local = local_tier
        self._metrics = CacheMetrics(metrics, namespace=namespace)
        self._clock = clock or SystemClock()
        self._tags = TagIndex(store, self._keyspace, ttl=tag_index_ttl)

    @classmethod
    def from_config(
        cls,
        store: SharedStateStore,
        config: CacheConfig,
        *,
        metrics: Metrics | None = None,
        clock: Clock | None = None,
        serializer: CacheSerializer | None = None,
    ) -> "CacheBackend":
        local = None
        if config.local_tier_size > 0:
            local = LocalCacheTier(config.local_tier_size, config.local_tier_ttl, clock=clock)
        return cls(
            store,
            namespace=config.namespace,
            serializer=serializer,
            local_tier=local,
            metrics=metrics,
            clock=clock,
            tag_index_ttl=config.tag_index_ttl,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def store(self) -> SharedStateStore:
        return self._store

    @property
    def keyspace(self) -> KeySpace:
        return self._keyspace

    @property
    def local_tier(self) -> LocalCacheTier | None:
        return self._local

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    @property
    def tags(self) -> TagIndex:
        return self._tags

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Entry I/O
    # ------------------------------------------------------------------

    async def read(self, key: str) -> CacheEntry | None:
        """Return the live entry for *key* or ``None``.

        A corrupt payload is logged and reported as a miss so that the
        loader overwrites it.
        """
        full_key = self._keyspace.entry(key)
        if self._local is not None:
            entry = self._local.get(full_key)
            if entry is not None:
                return entry
        raw = await self._store.get(full_key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_payload(key, self._serializer.loads(raw))
        except (SerializationError, KeyError, TypeError, ValueError) as exc:
            logger.warning("cache.corrupt_entry key=%s error=%r", full_key, exc)
            return None
        if self._local is not None:
            self._local.put(full_key, entry)
        return entry

    async def write(
        self,
        key: str,
        value: Any,
        *,
        ttl: float,
        tags: tuple[str, ...] | list[str] = (),
        version: str | int | None = None,
    ) -> CacheEntry:
        full_key = self._keyspace.entry(key)
        entry = CacheEntry(
            key=key,
            value=value,
            ttl=ttl,
            tags=tuple(tags),
            version=version,
            stored_at=self._clock.timestamp(),
        )
        payload = self._serializer.dumps(entry.to_payload())
        # index before entry: a stored tagged entry is always reachable from its tags
        if entry.tags:
            await self._tags.add(full_key, entry.tags, ttl)
        await self._store.set(full_key, payload, ttl=ttl)
        if self._local is not None:
            self._local.put(full_key, entry)
        return entry

    async def remove(self, key: str) -> bool:
        full_key = self._keyspace.entry(key)
        if self._local is not None:
            self._local.evict(full_key)
        return await self._store.delete(full_key) > 0

    async def remaining_ttl(self, key: str) -> float | None:
        return await self._store.ttl(self._keyspace.entry(key))
