"""Observability – logging setup and metrics recorders."""
from notify_commons.observability.logging import JsonLoggerFactory
from notify_commons.observability.metrics import CacheMetrics, Metrics, NoopMetrics, RateLimitMetrics

__all__ = ["CacheMetrics", "JsonLoggerFactory", "Metrics", "NoopMetrics", "RateLimitMetrics"]
