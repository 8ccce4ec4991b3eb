"""
Metrics module: instruments, registry and time units.
"""

from kafka_reporter.metrics.instruments import (
    Metric,
    Gauge,
    SettableGauge,
    Counter,
    Histogram,
    Meter,
    Timer,
    Snapshot,
)
from kafka_reporter.metrics.registry import MetricFilter, MetricRegistry
from kafka_reporter.metrics.time_units import Clock, TimeUnit, default_clock

__all__ = [
    "Metric",
    "Gauge",
    "SettableGauge",
    "Counter",
    "Histogram",
    "Meter",
    "Timer",
    "Snapshot",
    "MetricFilter",
    "MetricRegistry",
    "Clock",
    "TimeUnit",
    "default_clock",
]
