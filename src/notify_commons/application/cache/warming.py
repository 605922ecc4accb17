"""Application cache – CacheWarmer."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Awaitable, Callable, Iterable

from notify_commons.application.cache.backend import CacheBackend

logger = logging.getLogger(__name__)

__all__ = ["CacheWarmer", "WarmupEntry", "WarmupReport"]


@dataclasses.dataclass(frozen=True)
class WarmupEntry:
    key: str
    loader: Callable[[], Awaitable[Any]]
    ttl: float | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.ttl is not None and self.ttl <= 0:
            raise ValueError(f"Warm-up TTL for {self.key!r} must be positive, got {self.ttl!r}")


@dataclasses.dataclass(frozen=True)
class WarmupReport:
    loaded: int
    failed: int
    failures: dict[str, BaseException] = dataclasses.field(default_factory=dict)


class CacheWarmer:
    """Pre-populates cache entries, each one independently.

    A failing loader (or cache write) is logged and counted; it never
    aborts the rest of the warm-up.
    """

    def __init__(self, backend: CacheBackend, *, concurrency: int = 10, default_ttl: float = 3600.0) -> None:
        self._backend = backend
        self._concurrency = concurrency
        self._default_ttl = default_ttl
        self._registered: dict[str, WarmupEntry] = {}

    def register(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        *,
        ttl: float | None = None,
        tags: tuple[str, ...] = (),
    ) -> None:
        self._registered[key] = WarmupEntry(key, loader, ttl, tags)

    def _ttl_for(self, entry: WarmupEntry) -> float:
        return self._default_ttl if entry.ttl is None else entry.ttl

    @property
    def registered(self) -> list[str]:
        return list(self._registered)

    async def warm_registered(self, concurrency: int | None = None) -> WarmupReport:
        return await self.warm(list(self._registered.values()), concurrency)

    async def warm_key(self, key: str) -> Any:
        """Warm one registered key and return the loaded value; errors propagate."""
        if key not in self._registered:
            raise KeyError(f"No loader registered for key: {key!r}")
        entry = self._registered[key]
        value = await entry.loader()
        await self._backend.write(key, value, ttl=self._ttl_for(entry), tags=entry.tags)
        return value

    async def warm(self, entries: Iterable[WarmupEntry], concurrency: int | None = None) -> WarmupReport:
        semaphore = asyncio.Semaphore(concurrency or self._concurrency)
        metrics = self._backend.metrics

        async def _one(entry: WarmupEntry) -> tuple[str, BaseException | None]:
            async with semaphore:
                try:
                    value = await entry.loader()
                    await self._backend.write(
                        entry.key, value, ttl=self._ttl_for(entry), tags=entry.tags
                    )
                except Exception as exc:  # noqa: BLE001
                    logger.warning("cache.warm_entry_failed key=%s error=%r", entry.key, exc)
                    metrics.warmed("failed")
                    return entry.key, exc
                metrics.warmed("loaded")
                return entry.key, None

        results = await asyncio.gather(*(_one(entry) for entry in entries))
        failures = {key: exc for key, exc in results if exc is not None}
        report = WarmupReport(loaded=len(results) - len(failures), failed=len(failures), failures=failures)
        logger.info("cache.warmed loaded=%d failed=%d", report.loaded, report.failed)
        return report
