"""Resilience – deadlines."""
from notify_commons.resilience.timeouts.deadline import Deadline

__all__ = ["Deadline"]
