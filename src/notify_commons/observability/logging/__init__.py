"""Observability – structured logging setup."""
from notify_commons.observability.logging.factory import JsonLoggerFactory

__all__ = ["JsonLoggerFactory"]
