"""Redis adapter – RedisScriptBucketStore (server-side atomic token bucket)."""
from __future__ import annotations

from notify_commons.adapters.redis.store import RedisStateStore
from notify_commons.application.rate_limit import BucketDecision, BucketPolicy, RateLimitBucket

# KEYS[1] bucket hash; ARGV: max_tokens, refill_rate, now, cost, ttl_ms
_TAKE_TOKENS = """
local state = redis.call("HMGET", KEYS[1], "tokens", "last_refill_at")
local max_tokens = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local cost = tonumber(ARGV[4])
local tokens = tonumber(state[1])
local last = tonumber(state[2])
if tokens == nil or last == nil then
    tokens = max_tokens
    last = now
else
    local elapsed = math.max(0, now - last)
    tokens = math.min(max_tokens, math.max(0, tokens) + elapsed * refill_rate)
    last = math.max(now, last)
end
local allowed = 0
if tokens >= cost then
    tokens = tokens - cost
    allowed = 1
end
redis.call("HSET", KEYS[1], "tokens", tostring(tokens), "last_refill_at", tostring(last))
redis.call("PEXPIRE", KEYS[1], ARGV[5])
return {allowed, tostring(tokens)}
"""


class RedisScriptBucketStore:
    """:class:`AtomicBucketStore` that runs the whole take as one Lua script.

    Buckets are hashes with ``tokens`` and ``last_refill_at`` fields; they
    are not interchangeable with the JSON strings written by
    :class:`~notify_commons.application.rate_limit.CasBucketStore`.
    """

    def __init__(self, store: RedisStateStore) -> None:
        self._store = store

    async def take(self, key: str, policy: BucketPolicy, now: float, cost: float = 1.0) -> BucketDecision:
        allowed, tokens = await self._store.eval(
            _TAKE_TOKENS,
            [key],
            [repr(policy.max_tokens), repr(policy.refill_rate), repr(now), repr(cost), policy.ttl_seconds * 1000],
            operation="take_tokens",
        )
        return BucketDecision(allowed=int(allowed) == 1, tokens=float(tokens))

    async def peek(self, key: str) -> RateLimitBucket | None:
        tokens, last_refill_at = await self._store.hash_get(key, ["tokens", "last_refill_at"])
        if tokens is None or last_refill_at is None:
            return None
        return RateLimitBucket(tokens=float(tokens), last_refill_at=float(last_refill_at))

    async def reset(self, key: str) -> None:
        await self._store.delete(key)


__all__ = ["RedisScriptBucketStore"]
