"""
Example: Basic Usage of the Kafka Metrics Reporter

Registers a few metrics, builds a reporter and publishes to a local broker.
"""

import random
import time

from kafka_reporter import KafkaReporter, MetricRegistry, TimeUnit
from kafka_reporter.telemetry import configure_logging


def main():
    """Run basic reporter example."""
    configure_logging("DEBUG")

    # 1. Register metrics
    registry = MetricRegistry()
    requests = registry.meter("http.requests")
    latency = registry.timer("http.latency")
    queue = registry.gauge("queue.depth")
    errors = registry.counter("http.errors")

    # 2. Build the reporter
    reporter = (
        KafkaReporter.builder(registry, "localhost:9092", "metrics")
        .name("example-reporter")
        .rate_unit(TimeUnit.MINUTES)
        .duration_unit(TimeUnit.MILLISECONDS)
        .batch_size(50)
        .build()
    )

    # 3. Report every 5 seconds while generating traffic
    reporter.start(5)
    try:
        for _ in range(100):
            with latency.time():
                time.sleep(random.uniform(0.01, 0.1))
            requests.mark()
            queue.set(random.randint(0, 20))
            if random.random() < 0.05:
                errors.inc()
    finally:
        reporter.stop()


if __name__ == "__main__":
    main()
