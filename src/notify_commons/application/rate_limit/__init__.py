"""Application rate limiting – token bucket limiter, bucket stores and result types."""
from notify_commons.application.rate_limit.bucket import (
    AtomicBucketStore,
    BucketDecision,
    CasBucketStore,
    RateLimitBucket,
    refill,
    take_tokens,
)
from notify_commons.application.rate_limit.config import BucketPolicy, TokenBucketConfig
from notify_commons.application.rate_limit.rate_limiter import (
    BucketSnapshot,
    RateLimitDecision,
    RateLimitResult,
    RateLimiter,
)
from notify_commons.application.rate_limit.token_bucket import TokenBucketLimiter

__all__ = [
    "AtomicBucketStore",
    "BucketDecision",
    "BucketPolicy",
    "BucketSnapshot",
    "CasBucketStore",
    "RateLimitBucket",
    "RateLimitDecision",
    "RateLimitResult",
    "RateLimiter",
    "TokenBucketConfig",
    "TokenBucketLimiter",
    "refill",
    "take_tokens",
]
