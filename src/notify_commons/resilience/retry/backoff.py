"""Resilience – backoff strategies."""
from __future__ import annotations

import abc


class BackoffStrategy(abc.ABC):
    """Compute wait duration (seconds) before the *attempt*-th retry (1-based)."""

    @abc.abstractmethod
    def compute(self, attempt: int) -> float: ...


class ExponentialBackoff(BackoffStrategy):
    """Delay grows exponentially: ``base_delay * 2^(attempt-1)``, capped at *max_delay*.

    Defaults suit store-side contention, where a conflicting writer finishes
    within a few milliseconds.
    """

    def __init__(self, base_delay: float = 0.002, max_delay: float = 0.05) -> None:
        self._base = base_delay
        self._max = max_delay

    def compute(self, attempt: int) -> float:
        return min(self._base * (2 ** max(0, attempt - 1)), self._max)


__all__ = ["BackoffStrategy", "ExponentialBackoff"]
