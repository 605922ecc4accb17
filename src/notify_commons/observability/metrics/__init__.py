"""Observability – metrics ports and recorders."""
from notify_commons.observability.metrics.ports import (
    LATENCY_BOUNDARIES_MS,
    Counter,
    Gauge,
    Histogram,
    Labels,
    Metrics,
    label_key,
)
from notify_commons.observability.metrics.noop import NoopMetrics
from notify_commons.observability.metrics.recorders import CacheMetrics, RateLimitMetrics, identifier_class

__all__ = [
    "CacheMetrics",
    "Counter",
    "Gauge",
    "Histogram",
    "LATENCY_BOUNDARIES_MS",
    "Labels",
    "Metrics",
    "NoopMetrics",
    "RateLimitMetrics",
    "identifier_class",
    "label_key",
]
