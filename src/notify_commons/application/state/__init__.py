"""Application state – the shared state store port."""
from notify_commons.application.state.ports import SharedStateStore, Subscription

__all__ = ["SharedStateStore", "Subscription"]
