"""Infrastructure errors – shared state store failures and payload encoding."""

from __future__ import annotations

from typing import Any

from notify_commons.kernel.errors.base import BaseError


class InfrastructureError(BaseError):
    """Infrastructure / I/O failure that is not a business rule violation."""

    default_code = "infrastructure_error"


class StoreUnavailableError(InfrastructureError):
    """The shared state store timed out or could not be reached.

    Always absorbed at the boundary: the limiter fails open and the cache
    falls through to the loader.
    """

    default_code = "store_unavailable"

    def __init__(
        self,
        operation: str,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message or f"Shared state store unavailable during '{operation}'", **kwargs)
        self.operation = operation


class StoreContentionError(StoreUnavailableError):
    """A compare-and-swap loop gave up after its bounded number of attempts."""

    default_code = "store_contention"

    def __init__(self, key: str, attempts: int, **kwargs: Any) -> None:
        super().__init__(
            "compare_and_set",
            f"Gave up updating '{key}' after {attempts} conflicting attempts",
            **kwargs,
        )
        self.key = key
        self.attempts = attempts


class SerializationError(InfrastructureError):
    """Failed to serialize or deserialize a cache payload."""

    default_code = "serialization_error"

    def __init__(
        self,
        message: str,
        *,
        payload_type: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.payload_type = payload_type


__all__ = [
    "InfrastructureError",
    "SerializationError",
    "StoreContentionError",
    "StoreUnavailableError",
]
