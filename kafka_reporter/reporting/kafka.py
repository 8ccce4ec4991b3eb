"""
Kafka Reporter

Publishes a JSON snapshot of a metric registry to a Kafka topic on every
report cycle.

Usage:
    reporter = (
        KafkaReporter.builder(registry, "localhost:9092", "metrics")
        .rate_unit(TimeUnit.MINUTES)
        .synchronously(True)
        .build()
    )
    reporter.start(30)
"""

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Union

from kafka_reporter.exceptions import ConfigurationError, ProducerInitializationError
from kafka_reporter.metrics.instruments import Counter, Gauge, Histogram, Meter, Timer
from kafka_reporter.metrics.registry import FilterType, MetricFilter, MetricRegistry
from kafka_reporter.metrics.time_units import TimeUnit
from kafka_reporter.producer.client import KafkaMessageProducer, MessageProducer
from kafka_reporter.producer.config import ProducerConfig, parse_broker_list
from kafka_reporter.reporting.scheduled import ScheduledReporter
from kafka_reporter.reporting.serialization import MetricsSerializer

if TYPE_CHECKING:
    from kafka_reporter.config.config_manager import KafkaReporterSettings

ProducerFactory = Callable[[ProducerConfig], MessageProducer]


@dataclass(frozen=True)
class KafkaReporterConfig:
    """Everything a reporter is built from. Fixed for the reporter's lifetime."""
    topic: str
    producer: ProducerConfig
    name: str = "KafkaReporter"
    filter: FilterType = MetricFilter.ALL
    rate_unit: TimeUnit = TimeUnit.SECONDS
    duration_unit: TimeUnit = TimeUnit.SECONDS


class KafkaReporterBuilder:
    """
    Fluent builder for :class:`KafkaReporter`.

    Every setter returns the builder. Nothing is checked until ``build()``,
    which validates all options together.
    """

    def __init__(
        self,
        registry: Optional[MetricRegistry],
        broker_list: Optional[str],
        topic: Optional[str],
    ):
        self._registry = registry
        self._broker_list = broker_list
        self._topic = topic

        self._synchronously = False
        self._compression_codec = 0
        self._batch_size = 200
        self._message_send_max_retries = 3

        self._name = "KafkaReporter"
        self._filter: FilterType = MetricFilter.ALL
        self._rate_unit = TimeUnit.SECONDS
        self._duration_unit = TimeUnit.SECONDS

        self._logger: Optional[logging.Logger] = None
        self._producer_factory: ProducerFactory = KafkaMessageProducer

    # ========== Setters ==========

    def registry(self, registry: MetricRegistry) -> "KafkaReporterBuilder":
        self._registry = registry
        return self

    def broker_list(self, broker_list: str) -> "KafkaReporterBuilder":
        self._broker_list = broker_list
        return self

    def topic(self, topic: str) -> "KafkaReporterBuilder":
        self._topic = topic
        return self

    def synchronously(self, synchronously: bool = True) -> "KafkaReporterBuilder":
        self._synchronously = synchronously
        return self

    def compression_codec(self, codec: int) -> "KafkaReporterBuilder":
        self._compression_codec = codec
        return self

    def batch_size(self, batch_size: int) -> "KafkaReporterBuilder":
        self._batch_size = batch_size
        return self

    def message_send_max_retries(self, retries: int) -> "KafkaReporterBuilder":
        self._message_send_max_retries = retries
        return self

    def name(self, name: str) -> "KafkaReporterBuilder":
        self._name = name
        return self

    def filter(self, filter: FilterType) -> "KafkaReporterBuilder":
        self._filter = filter
        return self

    def rate_unit(self, unit: Union[TimeUnit, str]) -> "KafkaReporterBuilder":
        self._rate_unit = unit
        return self

    def duration_unit(self, unit: Union[TimeUnit, str]) -> "KafkaReporterBuilder":
        self._duration_unit = unit
        return self

    def logger(self, logger: logging.Logger) -> "KafkaReporterBuilder":
        self._logger = logger
        return self

    def producer_factory(self, factory: ProducerFactory) -> "KafkaReporterBuilder":
        """Replace the function that creates the producer from its config."""
        self._producer_factory = factory
        return self

    # ========== Build ==========

    def _validate(self) -> List[str]:
        errors = []
        if self._registry is None:
            errors.append("A metric registry is required")
        if not isinstance(self._topic, str) or not self._topic.strip():
            errors.append("A Kafka topic is required")
        if not isinstance(self._broker_list, str) or not self._broker_list.strip():
            errors.append("A broker list is required")
        if not self._name:
            errors.append("Reporter name must not be empty")
        if not callable(self._filter):
            errors.append("Filter must be callable")
        if isinstance(self._compression_codec, bool) or not isinstance(self._compression_codec, int):
            errors.append("Compression codec must be an integer")
        if isinstance(self._batch_size, bool) or not isinstance(self._batch_size, int) \
                or self._batch_size <= 0:
            errors.append("Batch size must be a positive integer")
        if isinstance(self._message_send_max_retries, bool) \
                or not isinstance(self._message_send_max_retries, int) \
                or self._message_send_max_retries < 0:
            errors.append("Max send retries must be a non-negative integer")
        for label, unit in (("rate unit", self._rate_unit), ("duration unit", self._duration_unit)):
            try:
                TimeUnit.parse(unit)
            except ConfigurationError:
                errors.append(f"Unknown {label}: {unit!r}")
        return errors

    def build_config(self) -> KafkaReporterConfig:
        """
        Validate the options and freeze them.

        Raises:
            ConfigurationError: Listing every invalid option
        """
        errors = self._validate()
        if errors:
            raise ConfigurationError(
                "Invalid Kafka reporter configuration: " + "; ".join(errors),
                errors=errors,
            )

        producer = ProducerConfig(
            bootstrap_servers=self._broker_list,
            synchronous=bool(self._synchronously),
            compression_codec=self._compression_codec,
            batch_size=self._batch_size,
            message_send_max_retries=self._message_send_max_retries,
        )
        return KafkaReporterConfig(
            topic=self._topic,
            producer=producer,
            name=self._name,
            filter=self._filter,
            rate_unit=TimeUnit.parse(self._rate_unit),
            duration_unit=TimeUnit.parse(self._duration_unit),
        )

    def build(self) -> "KafkaReporter":
        """
        Create the producer and the reporter.

        Raises:
            ConfigurationError: If required options are missing or invalid
            ProducerInitializationError: If the producer cannot be created
        """
        config = self.build_config()
        parse_broker_list(config.producer.bootstrap_servers)
        try:
            producer = self._producer_factory(config.producer)
        except ProducerInitializationError:
            raise
        except Exception as e:
            raise ProducerInitializationError(f"Failed to create producer: {e}") from e

        return KafkaReporter(self._registry, config, producer, logger=self._logger)


class KafkaReporter(ScheduledReporter):
    """
    Reporter that sends each registry snapshot as one Kafka message.

    Report cycles of one reporter never overlap: ``report()`` holds a
    per-instance lock for the whole serialize-and-send sequence.
    """

    Builder = KafkaReporterBuilder

    def __init__(
        self,
        registry: MetricRegistry,
        config: KafkaReporterConfig,
        producer: MessageProducer,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(
            registry,
            config.name,
            config.filter,
            config.rate_unit,
            config.duration_unit,
        )
        self.config = config
        self.producer = producer
        self.serializer = MetricsSerializer(config.rate_unit, config.duration_unit)
        self.logger = logger or logging.getLogger(__name__)
        self._report_lock = threading.Lock()

    @staticmethod
    def builder(
        registry: Optional[MetricRegistry],
        broker_list: Optional[str],
        topic: Optional[str],
    ) -> KafkaReporterBuilder:
        """Start building a reporter."""
        return KafkaReporterBuilder(registry, broker_list, topic)

    @classmethod
    def from_config(
        cls,
        registry: MetricRegistry,
        settings: "KafkaReporterSettings",
        filter: Optional[FilterType] = None,
        logger: Optional[logging.Logger] = None,
        producer_factory: Optional[ProducerFactory] = None,
    ) -> "KafkaReporter":
        """Build a reporter from loaded configuration settings."""
        builder = (
            cls.builder(registry, settings.kafka.broker_list, settings.kafka.topic)
            .synchronously(settings.kafka.synchronous)
            .compression_codec(settings.kafka.compression_codec)
            .batch_size(settings.kafka.batch_size)
            .message_send_max_retries(settings.kafka.message_send_max_retries)
            .name(settings.reporter.name)
            .rate_unit(settings.reporter.rate_unit)
            .duration_unit(settings.reporter.duration_unit)
        )
        if filter is not None:
            builder.filter(filter)
        if logger is not None:
            builder.logger(logger)
        if producer_factory is not None:
            builder.producer_factory(producer_factory)
        return builder.build()

    @property
    def topic(self) -> str:
        return self.config.topic

    def report(
        self,
        gauges: Optional[Dict[str, Gauge]] = None,
        counters: Optional[Dict[str, Counter]] = None,
        histograms: Optional[Dict[str, Histogram]] = None,
        meters: Optional[Dict[str, Meter]] = None,
        timers: Optional[Dict[str, Timer]] = None,
    ) -> None:
        """
        Serialize the registry and send it to the topic.

        The payload is the whole registry, read at call time. The filter and
        the kind maps only shape what the scheduler passes in.

        Raises:
            SerializationError: If the registry cannot be serialized
            PublishError: If the producer fails to deliver the report
        """
        with self._report_lock:
            self.logger.info(f"Trying to report metrics to Kafka topic {self.topic}")
            report = self.serializer.dumps(self.registry)
            self.logger.debug(f"Created metrics report: {report}")
            self.producer.send(self.topic, report, None)
            self.logger.info(f"Metrics were successfully reported to Kafka topic {self.topic}")

    def close(self) -> None:
        """Flush and close the producer."""
        with self._report_lock:
            if self._closed:
                return
            self._closed = True
            self.producer.close()
