"""Testing support – in-memory fakes for the shared store, metrics and clock.

Typical setup::

    clock = FakeClock()
    store = InMemoryStateStore(clock)
    limiter = TokenBucketLimiter(CasBucketStore(store), TokenBucketConfig(), clock=clock)
"""

from notify_commons.testing.fakes import (
    FakeClock,
    FakeMetricsRegistry,
    FrozenClock,
    InMemoryStateStore,
    InMemorySubscription,
)

__all__ = [
    "FakeClock",
    "FakeMetricsRegistry",
    "FrozenClock",
    "InMemoryStateStore",
    "InMemorySubscription",
]
