"""Observability – NoopMetrics."""
from __future__ import annotations

from collections.abc import Sequence

from notify_commons.observability.metrics.ports import Counter, Gauge, Histogram, Labels, Metrics


class _Discard(Counter, Histogram):
    def add(self, value: float = 1.0, labels: Labels = None) -> None:
        return None

    def record(self, value: float, labels: Labels = None) -> None:
        return None


class _DiscardGauge(Gauge):
    def _emit(self, value: float, labels: Labels) -> None:
        return None


_DISCARD = _Discard()


class NoopMetrics(Metrics):
    """Default for a limiter or cache built without a metrics backend.

    Counters and histograms share one stateless instrument; gauges still
    track their level so ``inc``/``dec`` behave the same as with a backend.
    """

    def counter(self, name: str, description: str = "", unit: str = "") -> Counter:
        return _DISCARD

    def histogram(
        self,
        name: str,
        description: str = "",
        unit: str = "ms",
        boundaries: Sequence[float] | None = None,
    ) -> Histogram:
        return _DISCARD

    def gauge(self, name: str, description: str = "", unit: str = "") -> Gauge:
        return _DiscardGauge()


__all__ = ["NoopMetrics"]
