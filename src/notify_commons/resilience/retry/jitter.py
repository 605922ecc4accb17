"""Resilience – jitter strategies."""
from __future__ import annotations

import abc
import random


class JitterStrategy(abc.ABC):
    """Apply randomness to a backoff delay so retrying instances do not move in lockstep."""

    @abc.abstractmethod
    def apply(self, delay: float) -> float: ...


class NoJitter(JitterStrategy):
    def apply(self, delay: float) -> float:
        return delay


class FullJitter(JitterStrategy):
    """Uniform random in [0, delay]."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def apply(self, delay: float) -> float:
        return self._rng.uniform(0, delay)


__all__ = ["FullJitter", "JitterStrategy", "NoJitter"]
