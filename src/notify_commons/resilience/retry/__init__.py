"""Resilience – backoff and jitter used by compare-and-swap retry loops."""
from notify_commons.resilience.retry.backoff import BackoffStrategy, ExponentialBackoff
from notify_commons.resilience.retry.jitter import FullJitter, JitterStrategy, NoJitter

__all__ = [
    "BackoffStrategy",
    "ExponentialBackoff",
    "FullJitter",
    "JitterStrategy",
    "NoJitter",
]
