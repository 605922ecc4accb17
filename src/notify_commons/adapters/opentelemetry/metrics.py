"""OpenTelemetry adapter – OtelMetrics."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from notify_commons.observability.metrics import Counter, Gauge, Histogram, Labels, Metrics


def _require_otel() -> None:
    try:
        import opentelemetry  # noqa: F401
    except ImportError as exc:
        raise ImportError("Install 'notify-commons[otel]' to use the OpenTelemetry adapter") from exc


class _OtelCounter(Counter):
    def __init__(self, counter: Any) -> None:
        self._c = counter

    def add(self, value: float = 1.0, labels: Labels = None) -> None:
        self._c.add(value, attributes=labels)


class _OtelHistogram(Histogram):
    def __init__(self, hist: Any) -> None:
        self._h = hist

    def record(self, value: float, labels: Labels = None) -> None:
        self._h.record(value, attributes=labels)


class _OtelGauge(Gauge):
    def __init__(self, gauge: Any) -> None:
        super().__init__()
        self._g = gauge

    def _emit(self, value: float, labels: Labels) -> None:
        self._g.set(value, attributes=labels)


class OtelMetrics(Metrics):
    """OpenTelemetry metrics adapter (needs ``opentelemetry-api`` >= 1.23 for synchronous gauges and bucket advisories)."""

    def __init__(self, meter_name: str = "notify_commons") -> None:
        _require_otel()
        from opentelemetry import metrics  # type: ignore[import-untyped]
        self._meter = metrics.get_meter(meter_name)

    def counter(self, name: str, description: str = "", unit: str = "") -> Counter:
        return _OtelCounter(self._meter.create_counter(name, description=description, unit=unit))

    def histogram(
        self,
        name: str,
        description: str = "",
        unit: str = "ms",
        boundaries: Sequence[float] | None = None,
    ) -> Histogram:
        if boundaries is None:
            return _OtelHistogram(self._meter.create_histogram(name, description=description, unit=unit))
        return _OtelHistogram(
            self._meter.create_histogram(
                name,
                description=description,
                unit=unit,
                explicit_bucket_boundaries_advisory=list(boundaries),
            )
        )

    def gauge(self, name: str, description: str = "", unit: str = "") -> Gauge:
        return _OtelGauge(self._meter.create_gauge(name, description=description, unit=unit))


__all__ = ["OtelMetrics"]
