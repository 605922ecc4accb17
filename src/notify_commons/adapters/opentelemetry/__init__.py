"""OpenTelemetry adapter – metrics."""
from notify_commons.adapters.opentelemetry.metrics import OtelMetrics

__all__ = ["OtelMetrics"]
