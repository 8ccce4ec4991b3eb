"""
Tests for the Kafka message producer.

The aiokafka client is replaced by an in-memory fake so no broker is needed.
"""

import time

import pytest
from aiokafka.errors import KafkaConnectionError

from kafka_reporter.exceptions import ProducerInitializationError, PublishError
from kafka_reporter.producer import (
    COMPRESSION_CODECS,
    KafkaMessageProducer,
    ProducerConfig,
    compression_type,
    parse_broker_list,
)


@pytest.fixture
def make_producer(fake_kafka):
    """Create producers and close them after the test."""
    created = []

    def make(**overrides):
        settings = {"bootstrap_servers": "localhost:9092"}
        settings.update(overrides)
        producer = KafkaMessageProducer(ProducerConfig(**settings))
        created.append(producer)
        return producer

    yield make

    for producer in created:
        try:
            producer.close()
        except PublishError:
            pass


class TestBrokerList:
    """Tests for broker list parsing."""

    def test_parse(self):
        assert parse_broker_list("a:9092, b:9093") == ["a:9092", "b:9093"]

    def test_ipv6(self):
        assert parse_broker_list("[::1]:9092") == ["[::1]:9092"]

    @pytest.mark.parametrize("broker_list", ["", " , ", "localhost", "host:abc", ":9092", "h:70000"])
    def test_malformed(self, broker_list):
        with pytest.raises(ProducerInitializationError):
            parse_broker_list(broker_list)


class TestProducerConfig:
    """Tests for ProducerConfig."""

    def test_properties(self):
        config = ProducerConfig(
            bootstrap_servers="k1:9092,k2:9092",
            synchronous=True,
            compression_codec=1,
            batch_size=50,
            message_send_max_retries=5,
        )

        assert config.to_properties() == {
            "metadata.broker.list": "k1:9092,k2:9092",
            "serializer.class": "kafka.serializer.StringEncoder",
            "producer.type": "sync",
            "compression.codec": "1",
            "batch.num.messages": "50",
            "message.send.max.retries": "5",
        }

    def test_defaults(self):
        config = ProducerConfig(bootstrap_servers="k:9092")
        assert config.producer_type == "async"
        assert config.batch_size == 200
        assert config.message_send_max_retries == 3
        assert config.compression_codec == 0
        assert config.brokers == ["k:9092"]

    def test_immutable(self):
        config = ProducerConfig(bootstrap_servers="k:9092")
        with pytest.raises(Exception):
            config.batch_size = 10


class TestCompression:
    """Tests for codec id mapping."""

    def test_known_codecs(self):
        assert compression_type(0) is None
        assert compression_type(1) == "gzip"
        assert compression_type(2) == "snappy"
        assert set(COMPRESSION_CODECS) == {0, 1, 2, 3, 4}

    def test_unknown_codec(self):
        with pytest.raises(ProducerInitializationError):
            compression_type(9)


class TestInitialization:
    """Tests for starting the client."""

    def test_client_settings(self, make_producer, fake_kafka):
        make_producer(bootstrap_servers="a:9092,b:9092", compression_codec=1, synchronous=True)

        client = fake_kafka.instances[0]

        assert client.started
        assert client.kwargs["bootstrap_servers"] == ["a:9092", "b:9092"]
        assert client.kwargs["compression_type"] == "gzip"
        assert client.kwargs["linger_ms"] == 0

    def test_start_failure(self, fake_kafka):
        fake_kafka.start_error = KafkaConnectionError("no brokers")
        with pytest.raises(ProducerInitializationError) as exc_info:
            KafkaMessageProducer(ProducerConfig(bootstrap_servers="localhost:9092"))
        assert isinstance(exc_info.value.__cause__, KafkaConnectionError)

    def test_invalid_codec_fails_before_start(self, fake_kafka):
        with pytest.raises(ProducerInitializationError):
            KafkaMessageProducer(ProducerConfig(bootstrap_servers="k:9092", compression_codec=7))
        assert fake_kafka.instances == []

    def test_malformed_brokers(self, fake_kafka):
        with pytest.raises(ProducerInitializationError):
            KafkaMessageProducer(ProducerConfig(bootstrap_servers="not-a-broker"))

    def test_invalid_batch_size(self, fake_kafka):
        with pytest.raises(ProducerInitializationError):
            KafkaMessageProducer(ProducerConfig(bootstrap_servers="k:9092", batch_size=0))


class TestSyncDelivery:
    """Tests for synchronous sends."""

    def test_send(self, make_producer, fake_kafka):
        producer = make_producer(synchronous=True)
        producer.send("metrics", '{"a":1}')

        client = fake_kafka.instances[0]
        assert client.sent == [("metrics", b'{"a":1}', None)]

    def test_key_encoded(self, make_producer, fake_kafka):
        producer = make_producer(synchronous=True)
        producer.send("metrics", "v", key="host-1")
        assert fake_kafka.instances[0].sent == [("metrics", b"v", b"host-1")]

    def test_retries_then_succeeds(self, make_producer, fake_kafka):
        producer = make_producer(synchronous=True, message_send_max_retries=3)
        fake_kafka.sync_failures = 2

        producer.send("metrics", "v")

        client = fake_kafka.instances[0]
        assert client.attempts == 3
        assert len(client.sent) == 1

    def test_retries_exhausted(self, make_producer, fake_kafka):
        producer = make_producer(synchronous=True, message_send_max_retries=2)
        fake_kafka.sync_failures = 10

        with pytest.raises(PublishError) as exc_info:
            producer.send("metrics", "v")

        assert exc_info.value.topic == "metrics"
        assert fake_kafka.instances[0].attempts == 3

    def test_no_retries(self, make_producer, fake_kafka):
        producer = make_producer(synchronous=True, message_send_max_retries=0)
        fake_kafka.sync_failures = 1

        with pytest.raises(PublishError):
            producer.send("metrics", "v")
        assert fake_kafka.instances[0].attempts == 1


class TestAsyncDelivery:
    """Tests for asynchronous sends."""

    def test_send_does_not_wait_for_ack(self, make_producer, fake_kafka):
        fake_kafka.ack_immediately = False
        producer = make_producer(batch_size=50)

        producer.send("metrics", "v")

        assert producer.pending == 1
        assert fake_kafka.instances[0].flush_calls == 0

    def test_batch_size_forces_flush(self, make_producer, fake_kafka):
        fake_kafka.ack_immediately = False
        producer = make_producer(batch_size=3)

        producer.send("metrics", "1")
        producer.send("metrics", "2")
        assert producer.pending == 2
        assert fake_kafka.instances[0].flush_calls == 0

        producer.send("metrics", "3")
        assert fake_kafka.instances[0].flush_calls == 1
        assert producer.pending == 0

    def test_failure_raised_after_retries(self, make_producer, fake_kafka):
        producer = make_producer(message_send_max_retries=1)
        fake_kafka.async_failures = 2

        producer.send("metrics", "v")

        deadline = time.time() + 2
        with pytest.raises(PublishError):
            while time.time() < deadline:
                producer.flush()
                time.sleep(0.01)
        assert fake_kafka.instances[0].attempts == 2

    def test_retry_recovers(self, make_producer, fake_kafka):
        producer = make_producer(message_send_max_retries=2)
        fake_kafka.async_failures = 1

        producer.send("metrics", "v")

        deadline = time.time() + 2
        while not fake_kafka.instances[0].sent and time.time() < deadline:
            time.sleep(0.01)
        producer.flush()
        assert fake_kafka.instances[0].sent == [("metrics", b"v", None)]


    def test_flush_waits_for_retries(self, make_producer, fake_kafka):
        fake_kafka.ack_immediately = False
        producer = make_producer(message_send_max_retries=2)
        fake_kafka.async_failures = 1

        producer.send("metrics", "v")
        producer.flush()

        client = fake_kafka.instances[0]
        assert client.sent == [("metrics", b"v", None)]
        assert client.attempts == 2
        assert producer.pending == 0

    def test_close_delivers_retried_message(self, fake_kafka):
        fake_kafka.ack_immediately = False
        fake_kafka.async_failures = 1
        producer = KafkaMessageProducer(ProducerConfig(bootstrap_servers="k:9092"))

        producer.send("metrics", "v")
        producer.close()

        client = fake_kafka.instances[0]
        assert client.sent == [("metrics", b"v", None)]
        assert client.stopped


class TestLifecycle:
    """Tests for closing the producer."""

    def test_close_flushes_and_stops(self, fake_kafka):
        fake_kafka.ack_immediately = False
        producer = KafkaMessageProducer(ProducerConfig(bootstrap_servers="k:9092"))
        producer.send("metrics", "v")

        producer.close()

        client = fake_kafka.instances[0]
        assert client.flush_calls == 1
        assert client.stopped

    def test_close_twice(self, fake_kafka):
        producer = KafkaMessageProducer(ProducerConfig(bootstrap_servers="k:9092"))
        producer.close()
        producer.close()
        assert fake_kafka.instances[0].stopped

    def test_send_after_close(self, fake_kafka):
        producer = KafkaMessageProducer(ProducerConfig(bootstrap_servers="k:9092"))
        producer.close()
        with pytest.raises(PublishError):
            producer.send("metrics", "v")
