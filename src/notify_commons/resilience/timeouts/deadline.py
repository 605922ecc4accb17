"""Resilience – Deadline."""
from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, timedelta


@dataclasses.dataclass(frozen=True)
class Deadline:
    """An absolute deadline derived from a timeout."""
    expires_at: datetime

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(expires_at=datetime.now(UTC) + timedelta(seconds=seconds))

    @property
    def remaining_seconds(self) -> float:
        return max(0.0, (self.expires_at - datetime.now(UTC)).total_seconds())

    @property
    def is_expired(self) -> bool:
        return datetime.now(UTC) >= self.expires_at

    def bound(self, timeout: float) -> float:
        """Shrink *timeout* so it never outlives this deadline."""
        return min(timeout, self.remaining_seconds)


__all__ = ["Deadline"]
