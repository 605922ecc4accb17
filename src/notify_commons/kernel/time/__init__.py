"""Kernel time – Clock port + implementations."""
from notify_commons.kernel.time.clock import Clock, FrozenClock, SystemClock, from_timestamp

__all__ = ["Clock", "FrozenClock", "SystemClock", "from_timestamp"]
