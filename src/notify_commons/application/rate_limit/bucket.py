"""Application rate limiting – RateLimitBucket state, refill arithmetic and bucket stores.

The refill rule is written once, in :func:`take_tokens`; the Lua script of
:class:`~notify_commons.adapters.redis.RedisScriptBucketStore` is a
line-for-line port of it.
"""
from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from typing import Protocol, runtime_checkable

from notify_commons.application.rate_limit.config import BucketPolicy
from notify_commons.application.state import SharedStateStore
from notify_commons.kernel.errors import StoreContentionError
from notify_commons.resilience.retry import BackoffStrategy, ExponentialBackoff, FullJitter, JitterStrategy

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RateLimitBucket:
    """Stored bucket state for one identifier."""
    tokens: float
    last_refill_at: float

    def encode(self) -> bytes:
        return json.dumps({"tokens": self.tokens, "last_refill_at": self.last_refill_at}).encode()

    @classmethod
    def decode(cls, raw: bytes | None) -> "RateLimitBucket | None":
        if raw is None:
            return None
        data = json.loads(raw)
        return cls(tokens=float(data["tokens"]), last_refill_at=float(data["last_refill_at"]))


@dataclasses.dataclass(frozen=True)
class BucketDecision:
    """Outcome of one atomic take: whether it was admitted and the tokens left."""
    allowed: bool
    tokens: float


def refill(bucket: RateLimitBucket | None, policy: BucketPolicy, now: float) -> RateLimitBucket:
    """Bring *bucket* forward to *now*; a missing bucket is full.

    Clock skew between instances can hand us a *now* older than the stored
    refill time: elapsed is clamped at zero and the refill time never moves
    backwards.
    """
    if bucket is None:
        return RateLimitBucket(tokens=policy.max_tokens, last_refill_at=now)
    elapsed = max(0.0, now - bucket.last_refill_at)
    tokens = min(policy.max_tokens, max(0.0, bucket.tokens) + elapsed * policy.refill_rate)
    return RateLimitBucket(tokens=tokens, last_refill_at=max(now, bucket.last_refill_at))


def take_tokens(
    bucket: RateLimitBucket | None, policy: BucketPolicy, now: float, cost: float = 1.0
) -> tuple[BucketDecision, RateLimitBucket]:
    current = refill(bucket, policy, now)
    if current.tokens >= cost:
        current = dataclasses.replace(current, tokens=current.tokens - cost)
        return BucketDecision(allowed=True, tokens=current.tokens), current
    return BucketDecision(allowed=False, tokens=current.tokens), current


@runtime_checkable
class AtomicBucketStore(Protocol):
    """Capability: run read-refill-decrement-write as one indivisible step."""

    async def take(self, key: str, policy: BucketPolicy, now: float, cost: float = 1.0) -> BucketDecision: ...

    async def peek(self, key: str) -> RateLimitBucket | None: ...

    async def reset(self, key: str) -> None: ...


class CasBucketStore:
    """Portable :class:`AtomicBucketStore` built on ``compare_and_set``.

    Each attempt reads the raw bucket, computes the new state locally and
    swaps it in only if nobody wrote in between. Conflicts back off with
    jitter; after *max_attempts* conflicts :class:`StoreContentionError` is
    raised, which the limiter handles like any other store failure.
    """

    def __init__(
        self,
        store: SharedStateStore,
        *,
        max_attempts: int = 8,
        backoff: BackoffStrategy | None = None,
        jitter: JitterStrategy | None = None,
    ) -> None:
        self._store = store
        self._max_attempts = max_attempts
        self._backoff = backoff or ExponentialBackoff()
        self._jitter = jitter or FullJitter()

    async def take(self, key: str, policy: BucketPolicy, now: float, cost: float = 1.0) -> BucketDecision:
        for attempt in range(1, self._max_attempts + 1):
            raw = await self._store.get(key)
            decision, updated = take_tokens(RateLimitBucket.decode(raw), policy, now, cost)
            if await self._store.compare_and_set(key, raw, updated.encode(), ttl=policy.ttl_seconds):
                return decision
            delay = self._jitter.apply(self._backoff.compute(attempt))
            logger.debug("rate_limit.cas_conflict key=%s attempt=%d delay=%.4fs", key, attempt, delay)
            await asyncio.sleep(delay)
        raise StoreContentionError(key, self._max_attempts)

    async def peek(self, key: str) -> RateLimitBucket | None:
        return RateLimitBucket.decode(await self._store.get(key))

    async def reset(self, key: str) -> None:
        await self._store.delete(key)


__all__ = [
    "AtomicBucketStore",
    "BucketDecision",
    "CasBucketStore",
    "RateLimitBucket",
    "refill",
    "take_tokens",
]
