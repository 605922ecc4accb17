"""Application-layer errors – admission control and caching outcomes callers must handle."""

from __future__ import annotations

from typing import Any

from notify_commons.kernel.errors.base import BaseError


class ApplicationError(BaseError):
    """Cross-cutting application-layer concern."""

    default_code = "application_error"


class RateLimitError(ApplicationError):
    """Request quota exceeded for an identifier."""

    default_code = "rate_limit_exceeded"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        identifier: str | None = None,
        retry_after_seconds: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.identifier = identifier
        self.retry_after_seconds = retry_after_seconds


class WriteBufferFullError(ApplicationError):
    """The write-behind buffer is at capacity; the write was rejected."""

    default_code = "write_buffer_full"

    def __init__(self, capacity: int, **kwargs: Any) -> None:
        super().__init__(f"Write-behind buffer is full ({capacity} pending entries)", **kwargs)
        self.capacity = capacity


__all__ = [
    "ApplicationError",
    "RateLimitError",
    "WriteBufferFullError",
]
