"""
Kafka metrics reporter test suite configuration.
"""

import asyncio
import threading
import time
from typing import List, Optional, Tuple

import pytest
from aiokafka.errors import KafkaError

from kafka_reporter.metrics import Clock, MetricRegistry, TimeUnit


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start_seconds: float = 1000.0):
        self.nanos = int(start_seconds * TimeUnit.SECONDS.nanos)

    def tick(self) -> int:
        return self.nanos

    def time(self) -> float:
        return self.nanos / TimeUnit.SECONDS.nanos

    def advance(self, seconds: float) -> None:
        self.nanos += int(seconds * TimeUnit.SECONDS.nanos)


class RecordingProducer:
    """Producer stub that records every message it is given."""

    def __init__(self, config=None, delay: float = 0.0, error: Optional[Exception] = None):
        self.config = config
        self.delay = delay
        self.error = error
        self.sent: List[Tuple[str, str, Optional[str]]] = []
        self.closed = False
        self.close_calls = 0
        self.flush_calls = 0
        self.in_send = False
        self.max_concurrent = 0
        self._active = 0
        self._lock = threading.Lock()

    def send(self, topic: str, value: str, key: Optional[str] = None) -> None:
        with self._lock:
            self._active += 1
            self.max_concurrent = max(self.max_concurrent, self._active)
            self.in_send = True
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            self.sent.append((topic, value, key))
        finally:
            with self._lock:
                self._active -= 1
                self.in_send = self._active > 0

    def flush(self) -> None:
        self.flush_calls += 1

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeAIOKafkaProducer:
    """Stands in for aiokafka's AIOKafkaProducer."""

    instances = []
    start_error = None
    sync_failures = 0
    async_failures = 0
    ack_immediately = True

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.sent = []
        self.attempts = 0
        self.flush_calls = 0
        self.started = False
        self.stopped = False
        self._unacked = []
        FakeAIOKafkaProducer.instances.append(self)

    async def start(self):
        if FakeAIOKafkaProducer.start_error is not None:
            raise FakeAIOKafkaProducer.start_error
        self.started = True

    async def stop(self):
        self.stopped = True

    async def send_and_wait(self, topic, value=None, key=None):
        self.attempts += 1
        if FakeAIOKafkaProducer.sync_failures > 0:
            FakeAIOKafkaProducer.sync_failures -= 1
            raise KafkaError("broker unavailable")
        self.sent.append((topic, value, key))

    async def send(self, topic, value=None, key=None):
        self.attempts += 1
        fut = asyncio.get_running_loop().create_future()
        if FakeAIOKafkaProducer.async_failures > 0:
            FakeAIOKafkaProducer.async_failures -= 1
            fut.set_exception(KafkaError("delivery failed"))
            return fut
        self.sent.append((topic, value, key))
        if FakeAIOKafkaProducer.ack_immediately:
            fut.set_result(None)
        else:
            self._unacked.append(fut)
        return fut

    async def flush(self):
        self.flush_calls += 1
        for fut in self._unacked:
            if not fut.done():
                fut.set_result(None)
        self._unacked.clear()
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    """Manually advanced clock."""
    return ManualClock()


@pytest.fixture
def registry(clock):
    """Empty registry driven by the manual clock."""
    return MetricRegistry(clock=clock)


@pytest.fixture
def producer():
    """Recording producer stub."""
    return RecordingProducer()


@pytest.fixture
def producer_factory(producer):
    """Producer factory that hands out the recording stub."""
    def factory(config):
        producer.config = config
        return producer
    return factory


@pytest.fixture
def fake_kafka(monkeypatch):
    """Patch the aiokafka client with the in-memory fake and reset its behaviour."""
    FakeAIOKafkaProducer.instances = []
    FakeAIOKafkaProducer.start_error = None
    FakeAIOKafkaProducer.sync_failures = 0
    FakeAIOKafkaProducer.async_failures = 0
    FakeAIOKafkaProducer.ack_immediately = True
    monkeypatch.setattr(
        "kafka_reporter.producer.client.AIOKafkaProducer", FakeAIOKafkaProducer
    )
    return FakeAIOKafkaProducer
