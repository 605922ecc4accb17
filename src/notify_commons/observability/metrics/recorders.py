"""Observability – rate-limit and cache metric recorders.

Both recorders wrap the :class:`Metrics` port so the limiter, the cache
strategies and the invalidation manager never name an instrument directly.
Instrument names match the dashboards of the notification gateway:

* ``rate_limit_requests_total{allowed, identifier_type}``
* ``rate_limit_tokens_remaining{identifier_type}``
* ``rate_limit_check_duration`` (ms)
* ``rate_limit_degraded_total{identifier_type, reason}``
* ``cache_{hits,misses,sets,deletes}_total{strategy, namespace}``
* ``cache_evictions_total{namespace, reason}``
* ``cache_stampedes_prevented_total`` / ``cache_stampede_degraded_total``
* ``cache_invalidations_total{kind}`` / ``cache_invalidation_failures_total{kind}``
* ``cache_warming_entries_total{status}``
* ``write_behind_buffer_size`` / ``write_behind_flushed_total`` /
  ``write_behind_flush_failures_total``
"""
from __future__ import annotations

from notify_commons.observability.metrics.noop import NoopMetrics
from notify_commons.observability.metrics.ports import LATENCY_BOUNDARIES_MS, Metrics


def identifier_class(identifier: str) -> str:
    """Low-cardinality label for an identifier: ``"user:42"`` -> ``"user"``."""
    head, sep, _ = identifier.partition(":")
    return head if sep and head else "other"


class RateLimitMetrics:
    """Records allow/deny counts, remaining tokens and fail-open degradations."""

    def __init__(self, metrics: Metrics | None = None) -> None:
        m = metrics or NoopMetrics()
        self._requests = m.counter("rate_limit_requests_total", "Rate limit checks by outcome")
        self._remaining = m.gauge("rate_limit_tokens_remaining", "Tokens left after the last check")
        self._duration = m.histogram(
            "rate_limit_check_duration", "Rate limit check latency", unit="ms", boundaries=LATENCY_BOUNDARIES_MS
        )
        self._degraded = m.counter("rate_limit_degraded_total", "Checks answered by the fail-open path")

    def record_check(self, identifier: str, *, allowed: bool, remaining: int, duration_ms: float) -> None:
        kind = identifier_class(identifier)
        self._requests.add(1, labels={"allowed": "true" if allowed else "false", "identifier_type": kind})
        self._remaining.set(float(remaining), labels={"identifier_type": kind})
        self._duration.record(duration_ms, labels={"identifier_type": kind})

    def record_degraded(self, identifier: str, reason: str) -> None:
        self._degraded.add(1, labels={"identifier_type": identifier_class(identifier), "reason": reason})


class CacheMetrics:
    """Records cache traffic, stampede prevention, invalidation and write-behind activity."""

    def __init__(self, metrics: Metrics | None = None, namespace: str = "cache") -> None:
        m = metrics or NoopMetrics()
        self.namespace = namespace
        self._hits = m.counter("cache_hits_total", "Cache hits")
        self._misses = m.counter("cache_misses_total", "Cache misses")
        self._sets = m.counter("cache_sets_total", "Cache writes")
        self._deletes = m.counter("cache_deletes_total", "Cache deletes")
        self._evictions = m.counter("cache_evictions_total", "Entries evicted by invalidation")
        self._stampedes = m.counter("cache_stampedes_prevented_total", "Misses that waited for a peer load")
        self._stampede_degraded = m.counter("cache_stampede_degraded_total", "Loads performed without a lease")
        self._invalidations = m.counter("cache_invalidations_total", "Invalidation requests")
        self._invalidation_failures = m.counter("cache_invalidation_failures_total", "Incomplete invalidations")
        self._warming = m.counter("cache_warming_entries_total", "Cache warming entries by outcome")
        self._buffer = m.gauge("write_behind_buffer_size", "Entries waiting for a write-behind flush")
        self._flushed = m.counter("write_behind_flushed_total", "Entries persisted by write-behind flushes")
        self._flush_failures = m.counter("write_behind_flush_failures_total", "Failed write-behind batches")

    def _labels(self, strategy: str) -> dict[str, str]:
        return {"strategy": strategy, "namespace": self.namespace}

    def hit(self, strategy: str) -> None:
        self._hits.add(1, labels=self._labels(strategy))

    def miss(self, strategy: str) -> None:
        self._misses.add(1, labels=self._labels(strategy))

    def stored(self, strategy: str) -> None:
        self._sets.add(1, labels=self._labels(strategy))

    def deleted(self, strategy: str) -> None:
        self._deletes.add(1, labels=self._labels(strategy))

    def evicted(self, count: int, reason: str) -> None:
        if count:
            self._evictions.add(count, labels={"namespace": self.namespace, "reason": reason})

    def stampede_prevented(self) -> None:
        self._stampedes.add(1, labels={"namespace": self.namespace})

    def stampede_degraded(self, reason: str) -> None:
        self._stampede_degraded.add(1, labels={"namespace": self.namespace, "reason": reason})

    def invalidation(self, kind: str, *, complete: bool) -> None:
        labels = {"namespace": self.namespace, "kind": kind}
        self._invalidations.add(1, labels=labels)
        if not complete:
            self._invalidation_failures.add(1, labels=labels)

    def warmed(self, status: str) -> None:
        self._warming.add(1, labels={"namespace": self.namespace, "status": status})

    def buffer_size(self, size: int) -> None:
        self._buffer.set(float(size), labels={"namespace": self.namespace})

    def flushed(self, count: int) -> None:
        self._flushed.add(count, labels={"namespace": self.namespace})

    def flush_failed(self) -> None:
        self._flush_failures.add(1, labels={"namespace": self.namespace})


__all__ = ["CacheMetrics", "RateLimitMetrics", "identifier_class"]
