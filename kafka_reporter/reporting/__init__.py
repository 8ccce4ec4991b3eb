"""
Reporters that publish metric registries.
"""

from kafka_reporter.reporting.scheduled import ScheduledReporter
from kafka_reporter.reporting.serialization import MetricsSerializer
from kafka_reporter.reporting.kafka import (
    KafkaReporter,
    KafkaReporterBuilder,
    KafkaReporterConfig,
)

__all__ = [
    "ScheduledReporter",
    "MetricsSerializer",
    "KafkaReporter",
    "KafkaReporterBuilder",
    "KafkaReporterConfig",
]
