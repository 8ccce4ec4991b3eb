"""
Message producers that deliver reports to Kafka.
"""

from kafka_reporter.producer.config import ProducerConfig, parse_broker_list
from kafka_reporter.producer.client import (
    COMPRESSION_CODECS,
    KafkaMessageProducer,
    MessageProducer,
    compression_type,
)

__all__ = [
    "ProducerConfig",
    "parse_broker_list",
    "COMPRESSION_CODECS",
    "KafkaMessageProducer",
    "MessageProducer",
    "compression_type",
]
