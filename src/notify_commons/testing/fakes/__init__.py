"""Testing fakes – in-memory doubles for the store, metrics and clock ports."""
from notify_commons.kernel.time import FrozenClock
from notify_commons.testing.fakes.clock import FakeClock
from notify_commons.testing.fakes.metrics import FakeMetricsRegistry
from notify_commons.testing.fakes.state_store import InMemoryStateStore, InMemorySubscription

__all__ = [
    "FakeClock",
    "FakeMetricsRegistry",
    "FrozenClock",
    "InMemoryStateStore",
    "InMemorySubscription",
]
