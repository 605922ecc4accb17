"""Application cache – strategies, backend, key space, TTL policy and warming."""
from notify_commons.application.cache.aside import BatchLoader, CacheAsideStrategy
from notify_commons.application.cache.backend import CacheBackend
from notify_commons.application.cache.base import BaseCacheStrategy, Loader
from notify_commons.application.cache.config import CacheConfig
from notify_commons.application.cache.entry import CacheEntry, CacheOptions, CacheSerializer, JsonSerializer
from notify_commons.application.cache.keys import CacheKey, KeySpace
from notify_commons.application.cache.local import LocalCacheTier
from notify_commons.application.cache.tags import TagIndex
from notify_commons.application.cache.ttl import (
    DEFAULT_CATEGORY_TTLS,
    AccessStats,
    AccessTracker,
    AdaptiveTtlPolicy,
    ttl_for_staleness,
)
from notify_commons.application.cache.warming import CacheWarmer, WarmupEntry, WarmupReport
from notify_commons.application.cache.write_behind import BatchPersister, WriteBehindStrategy
from notify_commons.application.cache.write_through import Persister, WriteThroughStrategy

__all__ = [
    "DEFAULT_CATEGORY_TTLS",
    "AccessStats",
    "AccessTracker",
    "AdaptiveTtlPolicy",
    "BaseCacheStrategy",
    "BatchLoader",
    "BatchPersister",
    "CacheAsideStrategy",
    "CacheBackend",
    "CacheConfig",
    "CacheEntry",
    "CacheKey",
    "CacheOptions",
    "CacheSerializer",
    "CacheWarmer",
    "JsonSerializer",
    "KeySpace",
    "Loader",
    "LocalCacheTier",
    "Persister",
    "TagIndex",
    "WarmupEntry",
    "WarmupReport",
    "WriteBehindStrategy",
    "WriteThroughStrategy",
    "ttl_for_staleness",
]
