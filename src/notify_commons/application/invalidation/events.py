"""Application invalidation – InvalidationEvent and InvalidationResult."""
from __future__ import annotations

import dataclasses
import json
from enum import Enum

__all__ = ["InvalidationEvent", "InvalidationKind", "InvalidationResult"]


class InvalidationKind(str, Enum):
    KEY = "key"
    PATTERN = "pattern"
    TAG = "tag"


@dataclasses.dataclass(frozen=True)
class InvalidationEvent:
    """Broadcast on ``invalidation:{ns}`` after every invalidation.

    *target* is the caller-level key, pattern or tag (without the namespace
    prefix); receivers re-apply their own key space.
    """
    kind: InvalidationKind
    target: str
    origin_instance: str
    timestamp: float

    def to_json(self) -> bytes:
        return json.dumps(
            {
                "kind": self.kind.value,
                "target": self.target,
                "origin_instance": self.origin_instance,
                "timestamp": self.timestamp,
            },
            separators=(",", ":"),
        ).encode()

    @classmethod
    def from_json(cls, raw: bytes | str) -> "InvalidationEvent":
        data = json.loads(raw)
        return cls(
            kind=InvalidationKind(data["kind"]),
            target=str(data["target"]),
            origin_instance=str(data["origin_instance"]),
            timestamp=float(data["timestamp"]),
        )


@dataclasses.dataclass(frozen=True)
class InvalidationResult:
    """Outcome of one invalidation; ``complete=False`` means some keys may survive."""
    kind: InvalidationKind
    target: str
    removed: int
    complete: bool = True
    error: str | None = None
