"""Redis adapter – RedisConfig."""
from __future__ import annotations

import dataclasses

from notify_commons.config.settings import Settings


@dataclasses.dataclass
class RedisConfig(Settings):
    """Connection settings for the shared Redis store (``REDIS_*`` variables).

    *operation_timeout* bounds every store call on top of the socket
    timeouts; exceeding it surfaces as ``StoreUnavailableError``.
    """

    _prefix = "REDIS"

    url: str = "redis://localhost:6379/0"
    operation_timeout: float = 0.25
    socket_timeout: float = 0.5
    connect_timeout: float = 1.0
    max_connections: int = 50

    def _validate(self) -> None:
        self._require_positive("operation_timeout", "socket_timeout", "connect_timeout", "max_connections")


__all__ = ["RedisConfig"]
