"""
Registry Serialization

Converts a metric registry into the JSON report published by reporters.

Report layout, keyed by metric name:

    gauge      {"value"}
    counter    {"count"}
    histogram  {"count", "max", "mean", "min", "p50", "p75", "p95",
                "p98", "p99", "p999", "stddev"}
    meter      {"count", "m15_rate", "m1_rate", "m5_rate", "mean_rate",
                "units"}
    timer      histogram fields in the duration unit, meter rate fields
               in the rate unit, "duration_units" and "rate_units"
"""

import io
import json
import math
from typing import Any, Dict, Optional, TextIO

import numpy as np

from kafka_reporter.exceptions import SerializationError
from kafka_reporter.metrics.instruments import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    Metric,
    Snapshot,
    Timer,
)
from kafka_reporter.metrics.registry import FilterType, MetricRegistry
from kafka_reporter.metrics.time_units import TimeUnit


def _json_value(value: Any) -> Any:
    """Non-finite floats become the tokens "NaN", "Infinity" and "-Infinity"."""
    if isinstance(value, (float, np.floating)) and not math.isfinite(value):
        if math.isnan(value):
            return "NaN"
        return "Infinity" if value > 0 else "-Infinity"
    return value


def _default(obj: Any) -> Any:
    """JSON fallback for numpy scalars."""
    if hasattr(obj, "item"):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class MetricsSerializer:
    """
    JSON serializer for one reporter.

    Rates are converted from events per second to events per
    ``rate_unit``; durations from nanoseconds to ``duration_unit``.
    """

    def __init__(
        self,
        rate_unit: TimeUnit = TimeUnit.SECONDS,
        duration_unit: TimeUnit = TimeUnit.SECONDS,
    ):
        self.rate_unit = rate_unit
        self.duration_unit = duration_unit
        self.rate_factor = rate_unit.seconds
        self.duration_factor = 1.0 / duration_unit.nanos

    # ========== Per-kind layouts ==========

    def gauge(self, gauge: Gauge) -> Dict[str, Any]:
        try:
            value = gauge.value
        except Exception as e:
            return {"error": str(e)}
        return {"value": _json_value(value)}

    def counter(self, counter: Counter) -> Dict[str, Any]:
        return {"count": counter.count}

    def _snapshot_fields(self, snapshot: Snapshot) -> Dict[str, Any]:
        return {
            "max": snapshot.max,
            "mean": snapshot.mean,
            "min": snapshot.min,
            "p50": snapshot.median,
            "p75": snapshot.p75,
            "p95": snapshot.p95,
            "p98": snapshot.p98,
            "p99": snapshot.p99,
            "p999": snapshot.p999,
            "stddev": snapshot.stddev,
        }

    def _rate_fields(self, metered) -> Dict[str, Any]:
        return {
            "m15_rate": metered.fifteen_minute_rate * self.rate_factor,
            "m1_rate": metered.one_minute_rate * self.rate_factor,
            "m5_rate": metered.five_minute_rate * self.rate_factor,
            "mean_rate": metered.mean_rate * self.rate_factor,
        }

    def histogram(self, histogram: Histogram) -> Dict[str, Any]:
        fields = {"count": histogram.count}
        fields.update(self._snapshot_fields(histogram.snapshot()))
        return fields

    def meter(self, meter: Meter) -> Dict[str, Any]:
        fields = {"count": meter.count}
        fields.update(self._rate_fields(meter))
        fields["units"] = f"events/{self.rate_unit.singular}"
        return fields

    def timer(self, timer: Timer) -> Dict[str, Any]:
        fields = {"count": timer.count}
        fields.update(self._snapshot_fields(timer.snapshot().scaled(self.duration_factor)))
        fields.update(self._rate_fields(timer))
        fields["duration_units"] = self.duration_unit.plural
        fields["rate_units"] = f"calls/{self.rate_unit.singular}"
        return fields

    def metric(self, metric: Metric) -> Dict[str, Any]:
        """Serialize any metric by kind."""
        if isinstance(metric, Gauge):
            return self.gauge(metric)
        if isinstance(metric, Counter):
            return self.counter(metric)
        if isinstance(metric, Timer):
            return self.timer(metric)
        if isinstance(metric, Histogram):
            return self.histogram(metric)
        if isinstance(metric, Meter):
            return self.meter(metric)
        raise SerializationError(f"Unsupported metric type: {type(metric).__name__}")

    # ========== Whole registry ==========

    def to_dict(
        self,
        registry: MetricRegistry,
        filter: Optional[FilterType] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Build the report object for the registry's current state."""
        return {
            name: self.metric(metric)
            for name, metric in registry.get_metrics(filter).items()
        }

    def write(
        self,
        registry: MetricRegistry,
        stream: TextIO,
        filter: Optional[FilterType] = None,
    ) -> None:
        """
        Write the report as JSON to a text stream.

        Raises:
            SerializationError: If the report cannot be encoded or written
        """
        try:
            json.dump(
                self.to_dict(registry, filter),
                stream,
                sort_keys=True,
                separators=(",", ":"),
                allow_nan=False,
                default=_default,
            )
        except SerializationError:
            raise
        except (OSError, TypeError, ValueError) as e:
            raise SerializationError(f"Failed to serialize metrics: {e}") from e

    def dumps(
        self,
        registry: MetricRegistry,
        filter: Optional[FilterType] = None,
    ) -> str:
        """Serialize the registry to a JSON string."""
        buffer = io.StringIO()
        self.write(registry, buffer, filter)
        return buffer.getvalue()
