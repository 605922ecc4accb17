"""Redis adapter – shared state store, scripted bucket store and connection settings."""
from notify_commons.adapters.redis.bucket_store import RedisScriptBucketStore
from notify_commons.adapters.redis.config import RedisConfig
from notify_commons.adapters.redis.store import RedisStateStore, RedisSubscription

__all__ = ["RedisConfig", "RedisScriptBucketStore", "RedisStateStore", "RedisSubscription"]
