"""
Producer Configuration

Settings for the message producer that delivers reports, and the
parsing of broker lists.
"""

from dataclasses import dataclass
from typing import Dict, List

from kafka_reporter.exceptions import ProducerInitializationError

STRING_ENCODER = "kafka.serializer.StringEncoder"


def parse_broker_list(broker_list: str) -> List[str]:
    """
    Split a comma-separated ``host:port`` list.

    Raises:
        ProducerInitializationError: If the list is empty or an entry is malformed
    """
    brokers = [b.strip() for b in (broker_list or "").split(",") if b.strip()]
    if not brokers:
        raise ProducerInitializationError("Broker list is empty")

    for broker in brokers:
        host, sep, port = broker.rpartition(":")
        if not sep or not host:
            raise ProducerInitializationError(f"Malformed broker address: {broker!r}")
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ProducerInitializationError(f"Invalid port in broker address: {broker!r}")

    return brokers


@dataclass(frozen=True)
class ProducerConfig:
    """Immutable producer settings assembled by the reporter builder."""
    bootstrap_servers: str
    synchronous: bool = False
    compression_codec: int = 0
    batch_size: int = 200
    message_send_max_retries: int = 3
    client_id: str = "kafka-metrics-reporter"
    request_timeout_ms: int = 40000
    retry_backoff_ms: int = 100

    @property
    def producer_type(self) -> str:
        return "sync" if self.synchronous else "async"

    @property
    def brokers(self) -> List[str]:
        return parse_broker_list(self.bootstrap_servers)

    def to_properties(self) -> Dict[str, str]:
        """Classic producer property map, every value a string."""
        return {
            "metadata.broker.list": self.bootstrap_servers,
            "serializer.class": STRING_ENCODER,
            "producer.type": self.producer_type,
            "compression.codec": str(self.compression_codec),
            "batch.num.messages": str(self.batch_size),
            "message.send.max.retries": str(self.message_send_max_retries),
        }
