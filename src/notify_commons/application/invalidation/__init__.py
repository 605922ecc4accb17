"""Application invalidation – targeted invalidation, stampede prevention, refresh and scheduling."""
from notify_commons.application.invalidation.events import (
    InvalidationEvent,
    InvalidationKind,
    InvalidationResult,
)
from notify_commons.application.invalidation.lease import DistributedLease
from notify_commons.application.invalidation.manager import InvalidationManager
from notify_commons.application.invalidation.scheduler import InvalidationScheduler

__all__ = [
    "DistributedLease",
    "InvalidationEvent",
    "InvalidationKind",
    "InvalidationManager",
    "InvalidationResult",
    "InvalidationScheduler",
]
