"""
Metric Instruments

The five metric kinds held by a registry: gauges, counters, histograms,
meters and timers. All instruments may be updated from any thread.
"""

import math
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Tuple

import numpy as np

from kafka_reporter.metrics.time_units import Clock, TimeUnit, default_clock


class Metric:
    """Marker base class for everything a registry can hold."""
    pass


# ========== Gauges and Counters ==========

class Gauge(Metric):
    """Reports an instantaneous value read from a callable."""

    def __init__(self, fn: Callable[[], Any]):
        self._fn = fn

    @property
    def value(self) -> Any:
        """Read the current value."""
        return self._fn()


class SettableGauge(Gauge):
    """Gauge whose value is pushed by the application."""

    def __init__(self, value: Any = None):
        self._value = value
        super().__init__(lambda: self._value)

    def set(self, value: Any) -> None:
        """Set the gauge value."""
        self._value = value


class Counter(Metric):
    """Incrementing and decrementing count."""

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        """Increment the counter."""
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        """Decrement the counter."""
        with self._lock:
            self._count -= n

    @property
    def count(self) -> int:
        return self._count


# ========== Distributions ==========

@dataclass(frozen=True)
class Snapshot:
    """Statistical summary of a histogram at one point in time."""
    size: int
    min: float
    max: float
    mean: float
    stddev: float
    median: float
    p75: float
    p95: float
    p98: float
    p99: float
    p999: float
    values: Tuple[float, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def of(cls, values: Iterable[float]) -> "Snapshot":
        """Compute a snapshot from raw values."""
        data = np.asarray(list(values), dtype=float)
        if data.size == 0:
            return cls(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

        quantiles = np.percentile(data, [50, 75, 95, 98, 99, 99.9])
        return cls(
            size=int(data.size),
            min=float(np.min(data)),
            max=float(np.max(data)),
            mean=float(np.mean(data)),
            stddev=float(np.std(data, ddof=1)) if data.size > 1 else 0.0,
            median=float(quantiles[0]),
            p75=float(quantiles[1]),
            p95=float(quantiles[2]),
            p98=float(quantiles[3]),
            p99=float(quantiles[4]),
            p999=float(quantiles[5]),
            values=tuple(float(v) for v in np.sort(data)),
        )

    def scaled(self, factor: float) -> "Snapshot":
        """Return a copy with every value multiplied by ``factor``."""
        return Snapshot(
            size=self.size,
            min=self.min * factor,
            max=self.max * factor,
            mean=self.mean * factor,
            stddev=self.stddev * factor,
            median=self.median * factor,
            p75=self.p75 * factor,
            p95=self.p95 * factor,
            p98=self.p98 * factor,
            p99=self.p99 * factor,
            p999=self.p999 * factor,
            values=tuple(v * factor for v in self.values),
        )

    def get_value(self, quantile: float) -> float:
        """
        Value at an arbitrary quantile.

        Args:
            quantile: Between 0.0 and 1.0 inclusive

        Raises:
            ValueError: If the quantile is out of range
        """
        if not 0.0 <= quantile <= 1.0 or math.isnan(quantile):
            raise ValueError(f"Quantile must be in [0, 1], got {quantile}")
        if not self.values:
            return 0.0
        return float(np.quantile(self.values, quantile))


class Histogram(Metric):
    """
    Distribution of observed values.

    Keeps the most recent ``reservoir_size`` values in a sliding window
    and summarises them on demand.
    """

    DEFAULT_RESERVOIR_SIZE = 1028

    def __init__(self, reservoir_size: int = DEFAULT_RESERVOIR_SIZE):
        self.reservoir_size = reservoir_size
        self._values: deque = deque(maxlen=reservoir_size)
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: float) -> None:
        """Record a value."""
        with self._lock:
            self._values.append(value)
            self._count += 1

    @property
    def count(self) -> int:
        """Number of values ever recorded, not just those retained."""
        return self._count

    def snapshot(self) -> Snapshot:
        with self._lock:
            values = list(self._values)
        return Snapshot.of(values)


# ========== Rates ==========

class EWMA:
    """
    Exponentially weighted moving average of an event rate.

    Ticked every ``TICK_INTERVAL`` seconds; rates are per second.
    """

    TICK_INTERVAL = 5.0

    def __init__(self, alpha: float):
        self.alpha = alpha
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    @classmethod
    def over_minutes(cls, minutes: int) -> "EWMA":
        """Create an average with an N minute window."""
        return cls(1 - math.exp(-cls.TICK_INTERVAL / 60.0 / minutes))

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        """Fold the events of one interval into the average."""
        count, self._uncounted = self._uncounted, 0
        instant_rate = count / self.TICK_INTERVAL
        if self._initialized:
            self._rate += self.alpha * (instant_rate - self._rate)
        else:
            self._rate = instant_rate
            self._initialized = True

    @property
    def rate(self) -> float:
        return self._rate


class Meter(Metric):
    """Event count with mean and 1/5/15 minute moving-average rates."""

    _TICK_NANOS = int(EWMA.TICK_INTERVAL * TimeUnit.SECONDS.nanos)

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or default_clock()
        self._m1 = EWMA.over_minutes(1)
        self._m5 = EWMA.over_minutes(5)
        self._m15 = EWMA.over_minutes(15)
        self._count = 0
        self._start_time = self._clock.tick()
        self._last_tick = self._start_time
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        """Record ``n`` events."""
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def _tick_if_necessary(self) -> None:
        now = self._clock.tick()
        age = now - self._last_tick
        if age > self._TICK_NANOS:
            self._last_tick = now - age % self._TICK_NANOS
            for _ in range(age // self._TICK_NANOS):
                self._m1.tick()
                self._m5.tick()
                self._m15.tick()

    @property
    def count(self) -> int:
        return self._count

    @property
    def mean_rate(self) -> float:
        """Events per second since the meter was created."""
        if self._count == 0:
            return 0.0
        elapsed = (self._clock.tick() - self._start_time) / TimeUnit.SECONDS.nanos
        if elapsed <= 0:
            return 0.0
        return self._count / elapsed

    @property
    def one_minute_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
            return self._m1.rate

    @property
    def five_minute_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
            return self._m5.rate

    @property
    def fifteen_minute_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
            return self._m15.rate


class Timer(Metric):
    """
    Histogram of durations combined with a meter of call rate.

    Durations are stored in nanoseconds.

    Usage:
        with timer.time():
            handle_request()
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        reservoir_size: int = Histogram.DEFAULT_RESERVOIR_SIZE,
    ):
        self._clock = clock or default_clock()
        self._histogram = Histogram(reservoir_size)
        self._meter = Meter(self._clock)

    def update(self, duration: float, unit: TimeUnit = TimeUnit.SECONDS) -> None:
        """Record a duration measured in ``unit``."""
        if duration < 0:
            return
        self._histogram.update(int(round(unit.to_nanos(duration))))
        self._meter.mark()

    def time(self) -> "TimerContext":
        """Start timing; stop with ``stop()`` or by leaving the ``with`` block."""
        return TimerContext(self, self._clock)

    @property
    def count(self) -> int:
        return self._histogram.count

    def snapshot(self) -> Snapshot:
        return self._histogram.snapshot()

    @property
    def mean_rate(self) -> float:
        return self._meter.mean_rate

    @property
    def one_minute_rate(self) -> float:
        return self._meter.one_minute_rate

    @property
    def five_minute_rate(self) -> float:
        return self._meter.five_minute_rate

    @property
    def fifteen_minute_rate(self) -> float:
        return self._meter.fifteen_minute_rate


class TimerContext:
    """A running measurement for a :class:`Timer`."""

    def __init__(self, timer: Timer, clock: Clock):
        self._timer = timer
        self._clock = clock
        self._start = clock.tick()
        self._stopped = False

    def stop(self) -> int:
        """Record the elapsed time and return it in nanoseconds."""
        elapsed = self._clock.tick() - self._start
        if not self._stopped:
            self._stopped = True
            self._timer.update(elapsed, TimeUnit.NANOSECONDS)
        return elapsed

    def __enter__(self) -> "TimerContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
