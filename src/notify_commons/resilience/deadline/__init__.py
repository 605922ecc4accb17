"""Resilience – Deadline propagation via contextvars."""
from notify_commons.resilience.deadline.context import DeadlineContext, bounded_timeout, deadline_exceeded

__all__ = ["DeadlineContext", "bounded_timeout", "deadline_exceeded"]
