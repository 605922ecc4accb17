"""Application rate limiting – RateLimiter, RateLimitDecision, RateLimitResult, BucketSnapshot."""
from __future__ import annotations

import abc
import dataclasses
from datetime import datetime
from enum import Enum


class RateLimitDecision(str, Enum):
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"


@dataclasses.dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    ``reset_at`` is when the bucket will be full again; ``retry_after`` (in
    seconds) is only set on denial. ``degraded`` marks a fail-open answer
    produced without consulting the store.
    """
    decision: RateLimitDecision
    remaining: int
    reset_at: datetime
    limit: int
    identifier: str
    retry_after: float | None = None
    degraded: bool = False

    @property
    def allowed(self) -> bool:
        return self.decision == RateLimitDecision.ALLOWED


@dataclasses.dataclass(frozen=True)
class BucketSnapshot:
    """Read-only view of a bucket, refilled to the time it was taken."""
    tokens: int
    reset_at: datetime


class RateLimiter(abc.ABC):
    """Port: admit or reject one unit of work for an identifier."""

    @abc.abstractmethod
    async def check(self, identifier: str, cost: float = 1.0) -> RateLimitResult: ...

    @abc.abstractmethod
    async def reset(self, identifier: str) -> bool: ...


__all__ = ["BucketSnapshot", "RateLimitDecision", "RateLimitResult", "RateLimiter"]
