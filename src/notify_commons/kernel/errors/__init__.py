"""Kernel error hierarchy: public re-export surface.

Hierarchy::

    BaseError
    ├── ApplicationError       (application.py)
    │   ├── RateLimitError
    │   └── WriteBufferFullError
    └── InfrastructureError    (infrastructure.py)
        ├── StoreUnavailableError
        │   └── StoreContentionError
        └── SerializationError

Loader and persister exceptions are never wrapped: they reach the caller
unchanged.
"""

from notify_commons.kernel.errors.application import (
    ApplicationError,
    RateLimitError,
    WriteBufferFullError,
)
from notify_commons.kernel.errors.base import BaseError
from notify_commons.kernel.errors.infrastructure import (
    InfrastructureError,
    SerializationError,
    StoreContentionError,
    StoreUnavailableError,
)

__all__ = [
    "ApplicationError",
    "BaseError",
    "InfrastructureError",
    "RateLimitError",
    "SerializationError",
    "StoreContentionError",
    "StoreUnavailableError",
    "WriteBufferFullError",
]
