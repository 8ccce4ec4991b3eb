"""
Tests for registry serialization.
"""

import io
import json

import numpy as np
import pytest

from kafka_reporter.exceptions import SerializationError
from kafka_reporter.metrics import MetricFilter, TimeUnit
from kafka_reporter.reporting.serialization import MetricsSerializer

HISTOGRAM_FIELDS = {
    "count", "max", "mean", "min", "p50", "p75", "p95", "p98", "p99", "p999", "stddev",
}
RATE_FIELDS = {"m15_rate", "m1_rate", "m5_rate", "mean_rate"}


class FailingStream(io.StringIO):
    """Text stream whose writes always fail."""

    def write(self, s):
        raise OSError("disk full")


@pytest.fixture
def serializer():
    return MetricsSerializer(TimeUnit.SECONDS, TimeUnit.SECONDS)


class TestLayouts:
    """Per-kind JSON layouts."""

    def test_counter(self, registry, serializer):
        registry.counter("jobs").inc(7)
        assert serializer.to_dict(registry) == {"jobs": {"count": 7}}

    def test_gauge(self, registry, serializer):
        registry.gauge("heap.used", lambda: 1024)
        report = json.loads(serializer.dumps(registry))
        assert report["heap.used"] == {"value": 1024}

    def test_failing_gauge(self, registry, serializer):
        def boom():
            raise RuntimeError("boom")

        registry.gauge("broken", boom)
        assert serializer.to_dict(registry) == {"broken": {"error": "boom"}}

    def test_numpy_gauge(self, registry, serializer):
        registry.gauge("rows", lambda: np.int64(12))
        assert json.loads(serializer.dumps(registry)) == {"rows": {"value": 12}}

    def test_histogram(self, registry, serializer):
        histogram = registry.histogram("sizes")
        for v in [10, 20, 30]:
            histogram.update(v)

        fields = serializer.to_dict(registry)["sizes"]

        assert set(fields) == HISTOGRAM_FIELDS
        assert fields["count"] == 3
        assert fields["min"] == 10.0
        assert fields["max"] == 30.0
        assert fields["p50"] == 20.0

    def test_meter(self, registry, serializer, clock):
        registry.meter("events").mark(3)
        clock.advance(3)

        fields = serializer.to_dict(registry)["events"]

        assert set(fields) == {"count", "units"} | RATE_FIELDS
        assert fields["count"] == 3
        assert fields["mean_rate"] == pytest.approx(1.0)
        assert fields["units"] == "events/second"

    def test_timer(self, registry, clock):
        serializer = MetricsSerializer(TimeUnit.SECONDS, TimeUnit.MILLISECONDS)
        timer = registry.timer("requests")
        timer.update(0.25)
        timer.update(0.75)

        fields = serializer.to_dict(registry)["requests"]

        assert set(fields) == HISTOGRAM_FIELDS | RATE_FIELDS | {"duration_units", "rate_units"}
        assert fields["count"] == 2
        assert fields["min"] == pytest.approx(250.0)
        assert fields["max"] == pytest.approx(750.0)
        assert fields["duration_units"] == "milliseconds"
        assert fields["rate_units"] == "calls/second"


class TestUnits:
    """Rate and duration normalisation."""

    def test_rate_unit_minutes_scales_by_sixty(self, registry, clock):
        registry.meter("events").mark(30)
        timer = registry.timer("calls")
        for _ in range(6):
            timer.update(1)
        clock.advance(6)

        per_second = MetricsSerializer(TimeUnit.SECONDS).to_dict(registry)
        per_minute = MetricsSerializer(TimeUnit.MINUTES).to_dict(registry)

        for name in ("events", "calls"):
            assert per_minute[name]["count"] == per_second[name]["count"]
            for field in RATE_FIELDS:
                assert per_minute[name][field] == pytest.approx(per_second[name][field] * 60)
            assert per_minute[name]["mean_rate"] > 0

        assert per_minute["events"]["units"] == "events/minute"
        assert per_minute["calls"]["rate_units"] == "calls/minute"

    def test_duration_unit_does_not_touch_counts(self, registry):
        registry.timer("calls").update(2)

        seconds = MetricsSerializer(duration_unit=TimeUnit.SECONDS).to_dict(registry)
        micros = MetricsSerializer(duration_unit=TimeUnit.MICROSECONDS).to_dict(registry)

        assert seconds["calls"]["max"] == pytest.approx(2.0)
        assert micros["calls"]["max"] == pytest.approx(2_000_000.0)
        assert micros["calls"]["count"] == seconds["calls"]["count"] == 1


class TestDocument:
    """Whole-registry output."""

    def test_static_registry_is_byte_identical(self, registry, serializer):
        registry.counter("b.count").inc(2)
        registry.gauge("a.gauge", lambda: 1.5)
        registry.histogram("c.hist").update(4)
        registry.meter("d.meter").mark()
        registry.timer("e.timer").update(0.1)

        assert serializer.dumps(registry) == serializer.dumps(registry)

    def test_keys_sorted(self, registry, serializer):
        registry.counter("zeta")
        registry.counter("alpha")
        assert serializer.dumps(registry) == '{"alpha":{"count":0},"zeta":{"count":0}}'

    def test_filter(self, registry, serializer):
        registry.counter("app.hits")
        registry.counter("jvm.gc")
        report = serializer.to_dict(registry, MetricFilter.prefix("app."))
        assert list(report) == ["app.hits"]

    def test_empty_registry(self, registry, serializer):
        assert serializer.dumps(registry) == "{}"


class TestFailures:
    """Serialization failures."""

    def test_unencodable_value(self, registry, serializer):
        registry.gauge("obj", lambda: object())
        with pytest.raises(SerializationError) as exc_info:
            serializer.dumps(registry)
        assert isinstance(exc_info.value.__cause__, TypeError)

    def test_non_finite_gauges_do_not_fail(self, registry, serializer):
        registry.counter("jobs").inc(5)
        registry.gauge("ratio", lambda: float("nan"))
        registry.gauge("ceiling", lambda: float("inf"))
        registry.gauge("floor", lambda: np.float32("-inf"))

        report = json.loads(serializer.dumps(registry))

        assert report == {
            "ceiling": {"value": "Infinity"},
            "floor": {"value": "-Infinity"},
            "jobs": {"count": 5},
            "ratio": {"value": "NaN"},
        }

    def test_stream_failure(self, registry, serializer):
        registry.counter("jobs")
        with pytest.raises(SerializationError) as exc_info:
            serializer.write(registry, FailingStream())
        assert isinstance(exc_info.value.__cause__, OSError)
