"""
notify_commons – distributed rate limiting and caching core of the notification gateway.

Import path convention::

    from notify_commons.application.rate_limit import TokenBucketLimiter, TokenBucketConfig
    from notify_commons.application.cache import CacheAsideStrategy, CacheBackend
    from notify_commons.application.invalidation import InvalidationManager
    from notify_commons.adapters.redis import RedisStateStore
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
