"""
Kafka Metrics Reporter

Publishes JSON snapshots of an in-process metric registry to a Kafka
topic on a fixed schedule:
- Gauges, counters, histograms, meters and timers in a shared registry
- Rates and durations normalised to configurable units
- Sync or async delivery with compression, batching and bounded retries
"""

__version__ = "1.0.0"

from kafka_reporter.exceptions import (
    KafkaReporterError,
    ConfigurationError,
    ProducerInitializationError,
    SerializationError,
    PublishError,
)

# Metrics
from kafka_reporter.metrics import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    MetricFilter,
    MetricRegistry,
    SettableGauge,
    TimeUnit,
    Timer,
)

# Producer
from kafka_reporter.producer import KafkaMessageProducer, ProducerConfig

# Reporting
from kafka_reporter.reporting import (
    KafkaReporter,
    KafkaReporterBuilder,
    KafkaReporterConfig,
    MetricsSerializer,
    ScheduledReporter,
)

__all__ = [
    # Version
    "__version__",

    # Errors
    "KafkaReporterError",
    "ConfigurationError",
    "ProducerInitializationError",
    "SerializationError",
    "PublishError",

    # Metrics
    "Counter",
    "Gauge",
    "Histogram",
    "Meter",
    "MetricFilter",
    "MetricRegistry",
    "SettableGauge",
    "TimeUnit",
    "Timer",

    # Producer
    "KafkaMessageProducer",
    "ProducerConfig",

    # Reporting
    "KafkaReporter",
    "KafkaReporterBuilder",
    "KafkaReporterConfig",
    "MetricsSerializer",
    "ScheduledReporter",
]
