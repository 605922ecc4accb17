"""Application cache – CacheEntry envelope, CacheOptions and serializers."""
from __future__ import annotations

import dataclasses
import json
from typing import Any, Protocol, runtime_checkable

from notify_commons.kernel.errors import SerializationError

__all__ = [
    "CacheEntry",
    "CacheOptions",
    "CacheSerializer",
    "JsonSerializer",
]


@dataclasses.dataclass(frozen=True)
class CacheOptions:
    """Per-call cache options.

    *ttl* wins over *category*; with neither, the strategy default applies.
    *refresh_threshold* enables proactive refresh on cache-aside hits.
    """
    ttl: float | None = None
    tags: tuple[str, ...] = ()
    category: str | None = None
    version: str | int | None = None
    refresh_threshold: float | None = None


@dataclasses.dataclass(frozen=True)
class CacheEntry:
    """One cached value plus the metadata stored alongside it.

    The whole envelope is written with a single ``SET`` and only ever
    replaced, so readers see either the previous value or the new one.
    """
    key: str
    value: Any
    ttl: float
    tags: tuple[str, ...] = ()
    version: str | int | None = None
    stored_at: float = 0.0

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl

    def remaining(self, now: float) -> float:
        return max(0.0, self.expires_at - now)

    def to_payload(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "ttl": self.ttl,
            "tags": list(self.tags),
            "version": self.version,
            "stored_at": self.stored_at,
        }

    @classmethod
    def from_payload(cls, key: str, payload: dict[str, Any]) -> "CacheEntry":
        return cls(
            key=key,
            value=payload["value"],
            ttl=float(payload["ttl"]),
            tags=tuple(payload.get("tags") or ()),
            version=payload.get("version"),
            stored_at=float(payload.get("stored_at", 0.0)),
        )


@runtime_checkable
class CacheSerializer(Protocol):
    def dumps(self, payload: dict[str, Any]) -> bytes: ...
    def loads(self, raw: bytes) -> dict[str, Any]: ...


class JsonSerializer:
    """JSON envelope serializer.

    Round-trips JSON-native values exactly (tuples come back as lists).
    Anything else is rejected with :class:`SerializationError` rather than
    being stringified.
    """

    def dumps(self, payload: dict[str, Any]) -> bytes:
        try:
            return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode()
        except (TypeError, ValueError) as exc:
            raise SerializationError(
                f"Cannot serialize cache value: {exc}",
                payload_type=type(payload.get("value")).__name__,
                cause=exc,
            ) from exc

    def loads(self, raw: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Corrupt cache payload: {exc}", cause=exc) from exc
        if not isinstance(payload, dict) or "value" not in payload:
            raise SerializationError("Cache payload is not an entry envelope")
        return payload
