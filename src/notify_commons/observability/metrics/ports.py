"""Observability – metric instrument ports.

Label values must stay low-cardinality (``identifier_type``, ``strategy``,
``namespace``, ``reason``, ``kind``). Raw identifiers and cache keys never
go into labels.
"""
from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence

Labels = Mapping[str, str] | None
LabelKey = tuple[tuple[str, str], ...]

# store round trips are sub-millisecond on a healthy Redis; the tail is what matters
LATENCY_BOUNDARIES_MS: tuple[float, ...] = (0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, 250.0)


def label_key(labels: Labels) -> LabelKey:
    """Hashable, order-independent form of a label set."""
    return tuple(sorted((labels or {}).items()))


class Counter(abc.ABC):
    """Monotonically increasing counter."""

    @abc.abstractmethod
    def add(self, value: float = 1.0, labels: Labels = None) -> None: ...


class Histogram(abc.ABC):
    """Latency / size distribution."""

    @abc.abstractmethod
    def record(self, value: float, labels: Labels = None) -> None: ...


class Gauge(abc.ABC):
    """Last-value gauge, one level per label set.

    :meth:`inc` and :meth:`dec` move the level last set for the same
    labels, so a buffer-size gauge per namespace stays consistent. Backends
    only implement :meth:`_emit`.
    """

    def __init__(self) -> None:
        self._levels: dict[LabelKey, float] = {}

    @property
    def levels(self) -> dict[LabelKey, float]:
        return dict(self._levels)

    def level(self, labels: Labels = None) -> float:
        return self._levels.get(label_key(labels), 0.0)

    def set(self, value: float, labels: Labels = None) -> None:
        self._levels[label_key(labels)] = value
        self._emit(value, labels)

    def inc(self, labels: Labels = None) -> None:
        self.set(self.level(labels) + 1.0, labels)

    def dec(self, labels: Labels = None) -> None:
        self.set(self.level(labels) - 1.0, labels)

    @abc.abstractmethod
    def _emit(self, value: float, labels: Labels) -> None: ...


class Metrics(abc.ABC):
    """Port: factory for metric instruments."""

    @abc.abstractmethod
    def counter(self, name: str, description: str = "", unit: str = "") -> Counter: ...

    @abc.abstractmethod
    def histogram(
        self,
        name: str,
        description: str = "",
        unit: str = "ms",
        boundaries: Sequence[float] | None = None,
    ) -> Histogram: ...

    @abc.abstractmethod
    def gauge(self, name: str, description: str = "", unit: str = "") -> Gauge: ...


__all__ = [
    "Counter",
    "Gauge",
    "Histogram",
    "LATENCY_BOUNDARIES_MS",
    "LabelKey",
    "Labels",
    "Metrics",
    "label_key",
]
