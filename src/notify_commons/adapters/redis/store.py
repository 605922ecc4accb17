"""Redis adapter – RedisStateStore and RedisSubscription."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Sequence

from notify_commons.adapters.redis.config import RedisConfig
from notify_commons.kernel.errors import StoreUnavailableError
from notify_commons.resilience.deadline import bounded_timeout

logger = logging.getLogger(__name__)


def _require_redis() -> Any:
    try:
        import redis.asyncio as aioredis
        return aioredis
    except ImportError as exc:
        raise ImportError("Install 'notify-commons[redis]' to use the Redis adapter") from exc


def _redis_errors() -> tuple[type[BaseException], ...]:
    try:
        from redis.exceptions import RedisError
    except ImportError as exc:
        raise ImportError("Install 'notify-commons[redis]' to use the Redis adapter") from exc
    return (RedisError, OSError)


_DELETE_IF_EQUALS = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""

# ARGV: expect_absent ("1"/"0"), expected, value, ttl_ms (0 = no expiry)
_COMPARE_AND_SET = """
local current = redis.call("GET", KEYS[1])
if ARGV[1] == "1" then
    if current then return 0 end
elseif current ~= ARGV[2] then
    return 0
end
if tonumber(ARGV[4]) > 0 then
    redis.call("SET", KEYS[1], ARGV[3], "PX", ARGV[4])
else
    redis.call("SET", KEYS[1], ARGV[3])
end
return 1
"""


def _ms(seconds: float) -> int:
    return max(1, int(seconds * 1000))


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisSubscription:
    """Pub/sub subscription yielding raw message payloads."""

    def __init__(self, pubsub: Any, channel: str, errors: tuple[type[BaseException], ...]) -> None:
        self._pubsub = pubsub
        self._channel = channel
        self._errors = errors

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                data = message["data"]
                yield data if isinstance(data, bytes) else str(data).encode()
        except self._errors as exc:
            raise StoreUnavailableError("subscribe", f"Subscription to {self._channel} lost: {exc}", cause=exc) from exc

    async def close(self) -> None:
        try:
            await self._pubsub.unsubscribe(self._channel)
        except self._errors as exc:
            logger.warning("redis.unsubscribe_failed channel=%s error=%r", self._channel, exc)
        await self._pubsub.aclose()


class RedisStateStore:
    """:class:`SharedStateStore` backed by a redis-py asyncio client.

    Every call is bounded by ``min(operation_timeout, caller deadline)``.
    Timeouts, connection failures and Redis errors are re-raised as
    :class:`StoreUnavailableError`.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        client: Any = None,
        operation_timeout: float = 0.25,
        **kwargs: Any,
    ) -> None:
        if client is None:
            if url is None:
                raise ValueError("RedisStateStore needs either a url or a client")
            client = _require_redis().from_url(url, **kwargs)
        self._client = client
        self._timeout = operation_timeout
        self._errors = _redis_errors()

    @classmethod
    def from_config(cls, config: RedisConfig) -> "RedisStateStore":
        return cls(
            config.url,
            operation_timeout=config.operation_timeout,
            socket_timeout=config.socket_timeout,
            socket_connect_timeout=config.connect_timeout,
            max_connections=config.max_connections,
        )

    @property
    def client(self) -> Any:
        return self._client

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=bounded_timeout(self._timeout))
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise StoreUnavailableError(operation, f"Redis {operation} timed out", cause=exc) from exc
        except self._errors as exc:
            raise StoreUnavailableError(operation, f"Redis {operation} failed: {exc}", cause=exc) from exc

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        return await self._call("get", self._client.get(key))

    async def set(self, key: str, value: bytes, ttl: float | None = None) -> None:
        if ttl is None:
            await self._call("set", self._client.set(key, value))
        else:
            await self._call("set", self._client.set(key, value, px=_ms(ttl)))

    async def set_if_absent(self, key: str, value: bytes, ttl: float) -> bool:
        return bool(await self._call("set_if_absent", self._client.set(key, value, nx=True, px=_ms(ttl))))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._call("delete", self._client.delete(*keys)))

    async def delete_if_equals(self, key: str, value: bytes) -> bool:
        return int(await self.eval(_DELETE_IF_EQUALS, [key], [value], operation="delete_if_equals")) == 1

    async def compare_and_set(
        self, key: str, expected: bytes | None, value: bytes, ttl: float | None = None
    ) -> bool:
        args = ["1" if expected is None else "0", expected or b"", value, _ms(ttl) if ttl else 0]
        return int(await self.eval(_COMPARE_AND_SET, [key], args, operation="compare_and_set")) == 1

    async def ttl(self, key: str) -> float | None:
        remaining_ms = int(await self._call("ttl", self._client.pttl(key)))
        return None if remaining_ms < 0 else remaining_ms / 1000.0

    async def scan(self, pattern: str, cursor: int = 0, count: int = 100) -> tuple[int, list[str]]:
        next_cursor, keys = await self._call("scan", self._client.scan(cursor=cursor, match=pattern, count=count))
        return int(next_cursor), [_text(k) for k in keys]

    # ------------------------------------------------------------------
    # Sets, hashes and scripts
    # ------------------------------------------------------------------

    async def set_add(self, key: str, members: list[str], ttl: float | None = None) -> None:
        if not members:
            return

        async def _run() -> None:
            async with self._client.pipeline(transaction=True) as pipe:
                await pipe.sadd(key, *members)
                if ttl is not None:
                    await pipe.pexpire(key, _ms(ttl))
                await pipe.execute()

        await self._call("set_add", _run())

    async def set_members(self, key: str) -> set[str]:
        return {_text(m) for m in await self._call("set_members", self._client.smembers(key))}

    async def hash_get(self, key: str, fields: Sequence[str]) -> list[bytes | None]:
        return list(await self._call("hash_get", self._client.hmget(key, list(fields))))

    async def eval(
        self, script: str, keys: Sequence[str], args: Sequence[Any], *, operation: str = "eval"
    ) -> Any:
        return await self._call(operation, self._client.eval(script, len(keys), *keys, *args))

    # ------------------------------------------------------------------
    # Pub/sub
    # ------------------------------------------------------------------

    async def publish(self, channel: str, payload: bytes) -> int:
        return int(await self._call("publish", self._client.publish(channel, payload)))

    async def subscribe(self, channel: str) -> RedisSubscription:
        pubsub = self._client.pubsub()
        await self._call("subscribe", pubsub.subscribe(channel))
        return RedisSubscription(pubsub, channel, self._errors)

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["RedisStateStore", "RedisSubscription"]
