from __future__ import annotations

import contextlib
from contextvars import ContextVar, Token
from typing import AsyncIterator

from notify_commons.resilience.timeouts.deadline import Deadline

__all__ = [
    "DeadlineContext",
    "bounded_timeout",
    "deadline_exceeded",
]


_DEADLINE_VAR: ContextVar[Deadline | None] = ContextVar("_deadline", default=None)


class DeadlineContext:
    """Context-variable wrapper for propagating a caller's deadline into the core.

    The limiter and the cache read it to decide when to stop waiting on the
    store: an exceeded deadline means fail open / call the loader directly.
    """

    @staticmethod
    def set(deadline: Deadline) -> Token[Deadline | None]:
        return _DEADLINE_VAR.set(deadline)

    @staticmethod
    def get() -> Deadline | None:
        return _DEADLINE_VAR.get()

    @staticmethod
    def reset(token: Token[Deadline | None]) -> None:
        _DEADLINE_VAR.reset(token)

    @staticmethod
    @contextlib.asynccontextmanager
    async def scoped(deadline: Deadline) -> AsyncIterator[Deadline]:
        token = _DEADLINE_VAR.set(deadline)
        try:
            yield deadline
        finally:
            _DEADLINE_VAR.reset(token)


def deadline_exceeded() -> bool:
    dl = _DEADLINE_VAR.get()
    return dl is not None and dl.is_expired


def bounded_timeout(timeout: float) -> float:
    """Return *timeout* shrunk to the active deadline, if any."""
    dl = _DEADLINE_VAR.get()
    return timeout if dl is None else dl.bound(timeout)
