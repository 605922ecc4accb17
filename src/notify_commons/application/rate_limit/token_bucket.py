"""Application rate limiting – distributed token-bucket limiter."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Literal

from notify_commons.application.rate_limit.bucket import AtomicBucketStore, BucketDecision, refill
from notify_commons.application.rate_limit.config import TokenBucketConfig
from notify_commons.application.rate_limit.rate_limiter import (
    BucketSnapshot,
    RateLimitDecision,
    RateLimitResult,
    RateLimiter,
)
from notify_commons.kernel.errors import RateLimitError, StoreUnavailableError
from notify_commons.kernel.time import Clock, SystemClock, from_timestamp
from notify_commons.observability.metrics import Metrics, RateLimitMetrics
from notify_commons.resilience.deadline import bounded_timeout, deadline_exceeded

logger = logging.getLogger(__name__)


class TokenBucketLimiter(RateLimiter):
    """Token-bucket admission control shared by every gateway instance.

    Buckets live in the shared store behind an :class:`AtomicBucketStore`,
    so two concurrent checks for one identifier are strictly ordered by the
    store. A bucket seen for the first time starts full
    (``capacity * burst_multiplier`` tokens).

    The limiter never blocks a caller longer than
    ``config.store_timeout_seconds`` (or the caller's deadline, if shorter).
    When the store is slow or unreachable it fails open: the request is
    allowed, the result is flagged ``degraded`` and the event is logged and
    counted.
    """

    def __init__(
        self,
        bucket_store: AtomicBucketStore,
        config: TokenBucketConfig | None = None,
        *,
        clock: Clock | None = None,
        metrics: Metrics | None = None,
    ) -> None:
        self._store = bucket_store
        self._config = config or TokenBucketConfig()
        self._policy = self._config.policy
        self._clock = clock or SystemClock()
        self._metrics = RateLimitMetrics(metrics)

    @property
    def config(self) -> TokenBucketConfig:
        return self._config

    async def check(self, identifier: str, cost: float = 1.0) -> RateLimitResult:
        started = time.perf_counter()
        now = self._clock.timestamp()
        if deadline_exceeded():
            return self._fail_open(identifier, now, "deadline_exceeded")
        key = self._config.key_for(identifier)
        try:
            decision = await asyncio.wait_for(
                self._store.take(key, self._policy, now, cost),
                timeout=bounded_timeout(self._config.store_timeout_seconds),
            )
        except (asyncio.TimeoutError, TimeoutError):
            return self._fail_open(identifier, now, "timeout")
        except StoreUnavailableError as exc:
            return self._fail_open(identifier, now, exc.code)

        result = self._to_result(identifier, decision, now, cost)
        self._metrics.record_check(
            identifier,
            allowed=result.allowed,
            remaining=result.remaining,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        logger.debug(
            "rate_limit.checked identifier=%s allowed=%s remaining=%d",
            identifier, result.allowed, result.remaining,
        )
        return result

    async def check_many(
        self,
        identifiers: list[str],
        mode: Literal["all", "any"] = "all",
        cost: float = 1.0,
    ) -> RateLimitResult:
        """Check several identifiers at once (e.g. per-user and per-IP).

        Every identifier is charged independently, even when the combined
        answer is a denial.
        """
        if not identifiers:
            raise ValueError("check_many() needs at least one identifier")
        results = await asyncio.gather(*(self.check(i, cost) for i in identifiers))
        if mode == "all":
            allowed = all(r.allowed for r in results)
            denied_waits = [r.retry_after or 0.0 for r in results if not r.allowed]
            return RateLimitResult(
                decision=RateLimitDecision.ALLOWED if allowed else RateLimitDecision.DENIED,
                remaining=min(r.remaining for r in results),
                reset_at=min(r.reset_at for r in results),
                limit=self._config.capacity,
                identifier=",".join(identifiers),
                retry_after=None if allowed else max(denied_waits),
                degraded=any(r.degraded for r in results),
            )
        allowed = any(r.allowed for r in results)
        return RateLimitResult(
            decision=RateLimitDecision.ALLOWED if allowed else RateLimitDecision.DENIED,
            remaining=max(r.remaining for r in results),
            reset_at=max(r.reset_at for r in results),
            limit=self._config.capacity,
            identifier=",".join(identifiers),
            retry_after=None if allowed else min(r.retry_after or 0.0 for r in results),
            degraded=any(r.degraded for r in results),
        )

    async def enforce(self, identifier: str, cost: float = 1.0) -> RateLimitResult:
        """Like :meth:`check`, but raise :class:`RateLimitError` on denial."""
        result = await self.check(identifier, cost)
        if not result.allowed:
            raise RateLimitError(
                identifier=identifier,
                retry_after_seconds=result.retry_after,
                detail={"remaining": result.remaining, "reset_at": result.reset_at.isoformat()},
            )
        return result

    async def peek(self, identifier: str) -> BucketSnapshot:
        """Current bucket level without consuming a token."""
        now = self._clock.timestamp()
        try:
            stored = await asyncio.wait_for(
                self._store.peek(self._config.key_for(identifier)),
                timeout=bounded_timeout(self._config.store_timeout_seconds),
            )
        except (asyncio.TimeoutError, TimeoutError, StoreUnavailableError) as exc:
            logger.warning("rate_limit.peek_failed identifier=%s error=%r", identifier, exc)
            stored = None
        current = refill(stored, self._policy, now)
        return BucketSnapshot(
            tokens=math.floor(current.tokens),
            reset_at=from_timestamp(now + self._seconds_until_full(current.tokens)),
        )

    async def reset(self, identifier: str) -> bool:
        try:
            await self._store.reset(self._config.key_for(identifier))
        except StoreUnavailableError as exc:
            logger.error("rate_limit.reset_failed identifier=%s error=%r", identifier, exc)
            return False
        logger.info("rate_limit.reset identifier=%s", identifier)
        return True

    # ------------------------------------------------------------------

    def _seconds_until_full(self, tokens: float) -> float:
        return max(0.0, self._policy.capacity - tokens) / self._policy.refill_rate

    def _to_result(self, identifier: str, decision: BucketDecision, now: float, cost: float) -> RateLimitResult:
        retry_after = None
        if not decision.allowed:
            retry_after = (cost - decision.tokens) / self._policy.refill_rate
        return RateLimitResult(
            decision=RateLimitDecision.ALLOWED if decision.allowed else RateLimitDecision.DENIED,
            remaining=max(0, math.floor(decision.tokens)),
            reset_at=from_timestamp(now + self._seconds_until_full(decision.tokens)),
            limit=self._config.capacity,
            identifier=identifier,
            retry_after=retry_after,
        )

    def _fail_open(self, identifier: str, now: float, reason: str) -> RateLimitResult:
        logger.warning("rate_limit.fail_open identifier=%s reason=%s", identifier, reason)
        self._metrics.record_degraded(identifier, reason)
        return RateLimitResult(
            decision=RateLimitDecision.ALLOWED,
            remaining=self._config.capacity,
            reset_at=from_timestamp(now),
            limit=self._config.capacity,
            identifier=identifier,
            degraded=True,
        )


__all__ = ["TokenBucketLimiter"]
