"""Application cache – WriteBehindStrategy (cache now, persist in batches)."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, ClassVar

from notify_commons.application.cache.backend import CacheBackend
from notify_commons.application.cache.base import BaseCacheStrategy, Loader
from notify_commons.application.cache.config import CacheConfig
from notify_commons.application.cache.entry import CacheOptions
from notify_commons.application.cache.ttl import AdaptiveTtlPolicy
from notify_commons.kernel.errors import StoreUnavailableError, WriteBufferFullError

logger = logging.getLogger(__name__)

BatchPersister = Callable[[dict[str, Any]], Awaitable[Any]]

__all__ = ["BatchPersister", "WriteBehindStrategy"]


class WriteBehindStrategy(BaseCacheStrategy):
    """Write to the cache immediately and persist asynchronously in batches.

    The buffer keeps the latest value per key and is bounded by
    *max_buffer*; a full buffer rejects new keys with
    :class:`WriteBufferFullError` before anything is written. A background
    flusher (started with :meth:`start` or ``async with``) persists every
    *flush_interval* seconds, or as soon as *batch_size* keys are waiting.
    Failed batches are re-queued unless a newer write superseded them.

    Writes buffered but not yet flushed are lost if the process dies; at
    most one flush interval of writes is at risk.
    """

    name: ClassVar[str] = "write_behind"

    def __init__(
        self,
        backend: CacheBackend,
        persister: BatchPersister,
        *,
        batch_size: int = 100,
        flush_interval: float = 5.0,
        max_buffer: int = 10_000,
        ttl_policy: AdaptiveTtlPolicy | None = None,
        default_ttl: float = 3600.0,
    ) -> None:
        super().__init__(backend, ttl_policy=ttl_policy, default_ttl=default_ttl)
        self._persister = persister
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._max_buffer = max_buffer
        self._buffer: dict[str, Any] = {}
        self._inflight: dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls,
        backend: CacheBackend,
        persister: BatchPersister,
        config: CacheConfig,
        *,
        ttl_policy: AdaptiveTtlPolicy | None = None,
    ) -> "WriteBehindStrategy":
        return cls(
            backend,
            persister,
            batch_size=config.write_behind_batch_size,
            flush_interval=config.write_behind_flush_interval,
            max_buffer=config.write_behind_max_buffer,
            ttl_policy=ttl_policy,
            default_ttl=config.default_ttl,
        )

    @property
    def pending(self) -> int:
        return len(self._buffer)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    async def set(self, key: str, value: Any, options: CacheOptions | None = None) -> bool:
        async with self._lock:
            if key not in self._buffer and len(self._buffer) >= self._max_buffer:
                self._metrics.buffer_size(len(self._buffer))
                raise WriteBufferFullError(self._max_buffer)
            self._buffer[key] = value
            size = len(self._buffer)
        self._metrics.buffer_size(size)

        cached = True
        try:
            await self._store(key, value, options)
        except StoreUnavailableError as exc:
            logger.warning("cache.write_behind_cache_failed key=%s error=%r", key, exc)
            cached = False

        if size >= self._batch_size:
            await self._request_flush()
        return cached

    async def get(self, key: str, loader: Loader, options: CacheOptions | None = None) -> Any:
        try:
            entry = await self._lookup(key)
        except StoreUnavailableError as exc:
            logger.warning("cache.read_degraded strategy=%s key=%s error=%r", self.name, key, exc)
            entry = None
        if entry is not None:
            return entry.value
        if key in self._buffer:
            return self._buffer[key]
        if key in self._inflight:
            return self._inflight[key]
        value = await loader()
        await super().set(key, value, options)
        return value

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    async def _request_flush(self) -> None:
        if self.running:
            self._wakeup.set()
        else:
            await self.flush()

    async def flush(self) -> int:
        """Persist everything currently buffered; returns the number of keys persisted."""
        async with self._flush_lock:
            async with self._lock:
                pending, self._buffer = self._buffer, {}
            if not pending:
                return 0
            self._inflight = pending
            try:
                return await self._persist(pending)
            finally:
                self._inflight = {}

    async def _persist(self, pending: dict[str, Any]) -> int:
        flushed = 0
        items = list(pending.items())
        for start in range(0, len(items), self._batch_size):
            batch = dict(items[start:start + self._batch_size])
            try:
                await self._persister(batch)
            except asyncio.CancelledError:
                await self._requeue(dict(items[start:]))
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error("write_behind.flush_failed keys=%d error=%r", len(batch), exc)
                self._metrics.flush_failed()
                await self._requeue(batch)
                continue
            flushed += len(batch)
            self._metrics.flushed(len(batch))

        self._metrics.buffer_size(len(self._buffer))
        if flushed:
            logger.debug("write_behind.flushed keys=%d", flushed)
        return flushed

    async def _requeue(self, batch: dict[str, Any]) -> None:
        dropped = 0
        async with self._lock:
            for key, value in batch.items():
                if key in self._buffer:
                    continue  # superseded by a newer write
                if len(self._buffer) >= self._max_buffer:
                    dropped += 1
                    continue
                self._buffer[key] = value
        if dropped:
            logger.error("write_behind.requeue_dropped keys=%d", dropped)

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._flush_interval)
            except (asyncio.TimeoutError, TimeoutError):
                pass
            self._wakeup.clear()
            try:
                await self.flush()
            except Exception as exc:  # noqa: BLE001
                logger.exception("write_behind.flusher_error error=%r", exc)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the flusher and persist whatever is still buffered."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.flush()

    async def __aenter__(self) -> "WriteBehindStrategy":
        self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.stop()
