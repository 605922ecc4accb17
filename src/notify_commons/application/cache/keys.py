"""Application cache – CacheKey builder and KeySpace."""
from __future__ import annotations

import dataclasses
import hashlib
import json

__all__ = ["CacheKey", "KeySpace"]


class CacheKey:
    """Factory for deterministic cache key strings."""

    @staticmethod
    def for_resource(resource_type: str, resource_id: str | int) -> str:
        return f"{resource_type}:{resource_id}"

    @staticmethod
    def for_query(query_type: str, **kwargs: object) -> str:
        # sort kwargs, JSON-encode, keep 16 hex chars of the SHA-256
        canonical = json.dumps(kwargs, sort_keys=True, default=str)
        digest = hashlib.sha256(canonical.encode()).hexdigest()[:16]
        return f"query:{query_type}:{digest}"


@dataclasses.dataclass(frozen=True)
class KeySpace:
    """Store key layout for one cache namespace.

    Entries live under ``{ns}:``; tag indexes and leases use their own
    prefixes so that a pattern invalidation such as ``{ns}:*`` can never
    delete them.
    """

    namespace: str = "cache"

    def entry(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def pattern(self, pattern: str) -> str:
        return f"{self.namespace}:{pattern}"

    def tag(self, tag: str) -> str:
        return f"tag:{self.namespace}:{tag}"

    def lease(self, key: str) -> str:
        return f"lease:{self.namespace}:{key}"

    @property
    def channel(self) -> str:
        return f"invalidation:{self.namespace}"
