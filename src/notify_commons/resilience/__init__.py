"""Resilience – backoff/jitter for CAS loops and caller deadlines."""

from notify_commons.resilience.deadline import DeadlineContext, bounded_timeout, deadline_exceeded
from notify_commons.resilience.retry import BackoffStrategy, ExponentialBackoff, FullJitter, JitterStrategy, NoJitter
from notify_commons.resilience.timeouts import Deadline

__all__ = [
    "BackoffStrategy",
    "Deadline",
    "DeadlineContext",
    "ExponentialBackoff",
    "FullJitter",
    "JitterStrategy",
    "NoJitter",
    "bounded_timeout",
    "deadline_exceeded",
]
