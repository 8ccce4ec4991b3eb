"""
Kafka Message Producer

Synchronous facade over aiokafka's ``AIOKafkaProducer``. The async client
runs on a private event loop in a daemon thread, so reporters can publish
from plain threads.

Compression codec ids:
    0 none, 1 gzip, 2 snappy, 3 lz4, 4 zstd
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Optional, Protocol, Set

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from kafka_reporter.exceptions import ProducerInitializationError, PublishError
from kafka_reporter.producer.config import ProducerConfig, parse_broker_list

logger = logging.getLogger(__name__)

COMPRESSION_CODECS = {
    0: None,
    1: "gzip",
    2: "snappy",
    3: "lz4",
    4: "zstd",
}


def compression_type(codec: int) -> Optional[str]:
    """
    Map a codec id to the client's compression name.

    Raises:
        ProducerInitializationError: If the id is unknown
    """
    try:
        return COMPRESSION_CODECS[codec]
    except (KeyError, TypeError):
        raise ProducerInitializationError(f"Unknown compression codec: {codec!r}") from None


class MessageProducer(Protocol):
    """What a reporter needs from a producer."""

    def send(self, topic: str, value: str, key: Optional[str] = None) -> None: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


class KafkaMessageProducer:
    """
    Delivers string messages to Kafka.

    In sync mode ``send`` waits for the broker's acknowledgement and retries
    up to ``message_send_max_retries`` times. In async mode ``send`` returns
    once the message is buffered; a flush is forced when ``batch_size``
    messages are pending, and a delivery that still fails after the retries
    is raised from the next ``send``, ``flush`` or ``close``.
    """

    def __init__(self, config: ProducerConfig):
        """
        Start the client.

        Args:
            config: Producer settings

        Raises:
            ProducerInitializationError: If the settings are invalid or the
                client cannot connect
        """
        self.config = config
        self._brokers = parse_broker_list(config.bootstrap_servers)
        self._compression = compression_type(config.compression_codec)
        if config.batch_size <= 0:
            raise ProducerInitializationError("Batch size must be positive")
        if config.message_send_max_retries < 0:
            raise ProducerInitializationError("Max send retries must not be negative")

        self._pending = 0
        self._failure: Optional[PublishError] = None
        self._retries: Set["asyncio.Task"] = set()
        self._state_lock = threading.Lock()
        self._closed = False

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="kafka-producer",
            daemon=True,
        )
        self._thread.start()

        try:
            self._producer = self._call(self._start())
        except Exception as e:
            self._stop_loop()
            raise ProducerInitializationError(
                f"Failed to start Kafka producer for {config.bootstrap_servers}: {e}"
            ) from e

        logger.info(
            f"Kafka producer started ({config.producer_type}, "
            f"brokers={','.join(self._brokers)}, compression={self._compression})"
        )

    async def _start(self) -> AIOKafkaProducer:
        producer = AIOKafkaProducer(
            bootstrap_servers=self._brokers,
            client_id=self.config.client_id,
            compression_type=self._compression,
            request_timeout_ms=self.config.request_timeout_ms,
            retry_backoff_ms=self.config.retry_backoff_ms,
            linger_ms=0 if self.config.synchronous else 100,
        )
        try:
            await producer.start()
        except Exception:
            await producer.stop()
            raise
        return producer

    def _call(self, coro: Awaitable[Any]) -> Any:
        """Run a coroutine on the producer loop and wait for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()

    # ========== Sending ==========

    def send(self, topic: str, value: str, key: Optional[str] = None) -> None:
        """
        Send one message.

        Raises:
            PublishError: If delivery failed after all retries
        """
        if self._closed:
            raise PublishError(topic, "Producer is closed")
        self._raise_failure()

        value_bytes = value.encode("utf-8")
        key_bytes = key.encode("utf-8") if key is not None else None

        if self.config.synchronous:
            self._send_sync(topic, value_bytes, key_bytes)
            return

        self._call(self._enqueue(topic, value_bytes, key_bytes, 0))
        with self._state_lock:
            pending = self._pending
        if pending >= self.config.batch_size:
            self.flush()

    def _send_sync(self, topic: str, value: bytes, key: Optional[bytes]) -> None:
        attempts = self.config.message_send_max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                self._call(self._producer.send_and_wait(topic, value=value, key=key))
                return
            except KafkaError as e:
                last_error = e
                logger.warning(f"Send to {topic} failed (attempt {attempt}/{attempts}): {e}")
        raise PublishError(topic, str(last_error)) from last_error

    async def _enqueue(
        self, topic: str, value: bytes, key: Optional[bytes], attempt: int
    ) -> None:
        try:
            delivery = await self._producer.send(topic, value=value, key=key)
        except KafkaError as e:
            self._delivery_failed(topic, value, key, attempt, e)
            return

        with self._state_lock:
            self._pending += 1
        delivery.add_done_callback(
            lambda fut: self._on_delivery(fut, topic, value, key, attempt)
        )

    def _on_delivery(
        self,
        fut: "asyncio.Future",
        topic: str,
        value: bytes,
        key: Optional[bytes],
        attempt: int,
    ) -> None:
        with self._state_lock:
            self._pending -= 1
        if fut.cancelled():
            self._delivery_failed(topic, value, key, attempt, None)
            return
        error = fut.exception()
        if error is not None:
            self._delivery_failed(topic, value, key, attempt, error)

    def _delivery_failed(
        self,
        topic: str,
        value: bytes,
        key: Optional[bytes],
        attempt: int,
        error: Optional[BaseException],
    ) -> None:
        reason = str(error) if error is not None else "delivery cancelled"
        if attempt < self.config.message_send_max_retries and not self._closed:
            logger.warning(f"Async send to {topic} failed, retrying ({attempt + 1}): {reason}")
            task = self._loop.create_task(self._enqueue(topic, value, key, attempt + 1))
            self._retries.add(task)
            task.add_done_callback(self._retries.discard)
            return
        logger.error(f"Async send to {topic} failed after {attempt + 1} attempts: {reason}")
        with self._state_lock:
            self._failure = PublishError(topic, reason)

    def _raise_failure(self) -> None:
        with self._state_lock:
            failure, self._failure = self._failure, None
        if failure is not None:
            raise failure

    async def _drain(self) -> None:
        # Retries may be scheduled by delivery callbacks run during a flush
        while True:
            if self._retries:
                await asyncio.gather(*list(self._retries))
                continue
            await self._producer.flush()
            await asyncio.sleep(0)
            if not self._retries:
                return

    @property
    def pending(self) -> int:
        """Async messages handed to the client and not yet acknowledged."""
        return self._pending

    # ========== Lifecycle ==========

    def flush(self) -> None:
        """Wait until buffered messages are delivered."""
        if not self._closed:
            self._call(self._drain())
        self._raise_failure()

    def close(self) -> None:
        """Flush, stop the client and its event loop."""
        if self._closed:
            return
        try:
            self._call(self._drain())
        finally:
            self._closed = True
            try:
                self._call(self._producer.stop())
            finally:
                self._stop_loop()
                logger.info("Kafka producer closed")
        self._raise_failure()
