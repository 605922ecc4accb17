"""Application rate limiting – TokenBucketConfig."""
from __future__ import annotations

import dataclasses
import math

from notify_commons.config.settings import Settings
from notify_commons.config.validation import InvalidSettingValueError


@dataclasses.dataclass(frozen=True)
class BucketPolicy:
    """Refill parameters handed to an :class:`AtomicBucketStore` on every take."""
    capacity: float
    refill_rate: float
    burst_multiplier: float = 1.0

    @property
    def max_tokens(self) -> float:
        return self.capacity * self.burst_multiplier

    @property
    def ttl_seconds(self) -> int:
        """Time to refill an empty bucket completely; idle buckets expire after it."""
        return max(1, math.ceil(self.max_tokens / self.refill_rate))


@dataclasses.dataclass
class TokenBucketConfig(Settings):
    """Token bucket limiter settings, loaded from ``RATE_LIMIT_*`` variables.

    *refill_rate* is in tokens per second; *burst_multiplier* (>= 1) lets a
    rested bucket hold more than *capacity* for short bursts.
    """

    _prefix = "RATE_LIMIT"

    capacity: int = 100
    refill_rate: float = 10.0
    burst_multiplier: float = 1.0
    key_prefix: str = "ratelimit:tokenbucket"
    store_timeout_seconds: float = 0.1

    def _validate(self) -> None:
        self._require_positive("capacity", "refill_rate", "store_timeout_seconds")
        if self.burst_multiplier < 1:
            raise InvalidSettingValueError("burst_multiplier", self.burst_multiplier, "must be >= 1")

    @property
    def policy(self) -> BucketPolicy:
        return BucketPolicy(
            capacity=float(self.capacity),
            refill_rate=self.refill_rate,
            burst_multiplier=self.burst_multiplier,
        )

    def key_for(self, identifier: str) -> str:
        return f"{self.key_prefix}:{identifier}"


__all__ = ["BucketPolicy", "TokenBucketConfig"]
