"""Application cache – CacheConfig."""
from __future__ import annotations

import dataclasses

from notify_commons.config.settings import Settings
from notify_commons.config.validation import InvalidSettingValueError


@dataclasses.dataclass
class CacheConfig(Settings):
    """Cache, stampede-prevention and write-behind settings (``CACHE_*`` variables).

    ``local_tier_size = 0`` disables the process-local L1 tier, leaving the
    shared store as the only cache tier.
    """

    _prefix = "CACHE"

    namespace: str = "cache"
    default_ttl: float = 3600.0
    lease_timeout: float = 10.0
    lease_poll_interval: float = 0.05
    lease_max_wait: float = 2.0
    refresh_threshold: float = 0.2
    scan_batch_size: int = 100
    tag_index_ttl: float = 86400.0
    write_behind_batch_size: int = 100
    write_behind_flush_interval: float = 5.0
    write_behind_max_buffer: int = 10_000
    warm_concurrency: int = 10
    local_tier_size: int = 0
    local_tier_ttl: float = 5.0

    def _validate(self) -> None:
        self._require_positive(
            "default_ttl",
            "lease_timeout",
            "lease_poll_interval",
            "lease_max_wait",
            "scan_batch_size",
            "tag_index_ttl",
            "write_behind_batch_size",
            "write_behind_flush_interval",
            "warm_concurrency",
            "local_tier_ttl",
        )
        self._require_fraction("refresh_threshold")
        if self.write_behind_max_buffer < self.write_behind_batch_size:
            raise InvalidSettingValueError(
                "write_behind_max_buffer",
                self.write_behind_max_buffer,
                "must be at least write_behind_batch_size",
            )
        if self.local_tier_size < 0:
            raise InvalidSettingValueError("local_tier_size", self.local_tier_size, "must not be negative")


__all__ = ["CacheConfig"]
