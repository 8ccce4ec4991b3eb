"""
Metric Registry

Named collection of metric instances shared by the application and the
reporters that publish it.
"""

import threading
from typing import Callable, Dict, List, Optional, Type, TypeVar

from kafka_reporter.metrics.instruments import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    Metric,
    SettableGauge,
    Timer,
)
from kafka_reporter.metrics.time_units import Clock, default_clock

M = TypeVar("M", bound=Metric)


class MetricFilter:
    """Predicate deciding whether a metric is included in a report."""

    ALL: "MetricFilter"

    def __init__(self, predicate: Callable[[str, Metric], bool]):
        self._predicate = predicate

    def matches(self, name: str, metric: Metric) -> bool:
        return bool(self._predicate(name, metric))

    def __call__(self, name: str, metric: Metric) -> bool:
        return self.matches(name, metric)

    @classmethod
    def prefix(cls, prefix: str) -> "MetricFilter":
        """Match metrics whose name starts with ``prefix``."""
        return cls(lambda name, metric: name.startswith(prefix))

    @classmethod
    def contains(cls, text: str) -> "MetricFilter":
        """Match metrics whose name contains ``text``."""
        return cls(lambda name, metric: text in name)


MetricFilter.ALL = MetricFilter(lambda name, metric: True)

FilterType = Callable[[str, Metric], bool]


class MetricRegistry:
    """
    Registry of named metrics.

    Names are unique across all kinds. The registry can be mutated from
    any thread; readers get a point-in-time copy of the name map and
    read each metric without further locking.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._metrics: Dict[str, Metric] = {}
        self._clock = clock or default_clock()
        self._lock = threading.Lock()

    @staticmethod
    def name(*parts: Optional[str]) -> str:
        """Join non-empty name parts with dots."""
        return ".".join(p for p in parts if p)

    def register(self, name: str, metric: M) -> M:
        """
        Register a metric under a name.

        Raises:
            ValueError: If the name is already taken
        """
        if not isinstance(metric, Metric):
            raise TypeError(f"Not a metric: {metric!r}")
        with self._lock:
            if name in self._metrics:
                raise ValueError(f"A metric named {name} already exists")
            self._metrics[name] = metric
        return metric

    def remove(self, name: str) -> bool:
        """Remove a metric. Returns True if it existed."""
        with self._lock:
            return self._metrics.pop(name, None) is not None

    def get(self, name: str) -> Optional[Metric]:
        return self._metrics.get(name)

    def names(self) -> List[str]:
        """Sorted names of all registered metrics."""
        with self._lock:
            return sorted(self._metrics)

    def __contains__(self, name: str) -> bool:
        return name in self._metrics

    def __len__(self) -> int:
        return len(self._metrics)

    # ========== Get-or-create ==========

    def _get_or_add(self, name: str, kind: Type[M], factory: Callable[[], M]) -> M:
        with self._lock:
            existing = self._metrics.get(name)
            if existing is None:
                metric = factory()
                self._metrics[name] = metric
                return metric
        if not isinstance(existing, kind):
            raise ValueError(f"{name} is already used for a different type of metric")
        return existing

    def gauge(self, name: str, fn: Optional[Callable] = None) -> Gauge:
        """Get or create a gauge. Without ``fn`` a settable gauge is created."""
        if fn is None:
            return self._get_or_add(name, Gauge, SettableGauge)
        return self._get_or_add(name, Gauge, lambda: Gauge(fn))

    def counter(self, name: str) -> Counter:
        return self._get_or_add(name, Counter, Counter)

    def histogram(self, name: str) -> Histogram:
        return self._get_or_add(name, Histogram, Histogram)

    def meter(self, name: str) -> Meter:
        return self._get_or_add(name, Meter, lambda: Meter(self._clock))

    def timer(self, name: str) -> Timer:
        return self._get_or_add(name, Timer, lambda: Timer(self._clock))

    # ========== Filtered views ==========

    def get_metrics(self, filter: Optional[FilterType] = None) -> Dict[str, Metric]:
        """All metrics accepted by ``filter``, sorted by name."""
        with self._lock:
            items = list(self._metrics.items())
        accept = filter or MetricFilter.ALL
        return {name: metric for name, metric in sorted(items, key=lambda kv: kv[0])
                if accept(name, metric)}

    def _of_kind(self, kind: Type[M], filter: Optional[FilterType]) -> Dict[str, M]:
        return {name: metric for name, metric in self.get_metrics(filter).items()
                if isinstance(metric, kind)}

    def get_gauges(self, filter: Optional[FilterType] = None) -> Dict[str, Gauge]:
        return self._of_kind(Gauge, filter)

    def get_counters(self, filter: Optional[FilterType] = None) -> Dict[str, Counter]:
        return self._of_kind(Counter, filter)

    def get_histograms(self, filter: Optional[FilterType] = None) -> Dict[str, Histogram]:
        return self._of_kind(Histogram, filter)

    def get_meters(self, filter: Optional[FilterType] = None) -> Dict[str, Meter]:
        return self._of_kind(Meter, filter)

    def get_timers(self, filter: Optional[FilterType] = None) -> Dict[str, Timer]:
        return self._of_kind(Timer, filter)
