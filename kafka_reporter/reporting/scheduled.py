"""
Scheduled Reporter

Base class for reporters that publish a registry on a fixed schedule.
Subclasses implement ``report()``; this class reads the registry through
the reporter's filter and drives the cycles from a background thread.
"""

import logging
import threading
import time
from typing import Dict, Optional

from kafka_reporter.metrics.instruments import Counter, Gauge, Histogram, Meter, Timer
from kafka_reporter.metrics.registry import FilterType, MetricFilter, MetricRegistry
from kafka_reporter.metrics.time_units import TimeUnit

logger = logging.getLogger(__name__)


class ScheduledReporter:
    """
    Reports the contents of a registry at a fixed rate.

    Lifecycle:
        reporter = SomeReporter(registry, "name")
        reporter.start(10)      # report every 10 seconds
        ...
        reporter.stop()         # cancel the schedule and close
    """

    def __init__(
        self,
        registry: MetricRegistry,
        name: str,
        filter: Optional[FilterType] = None,
        rate_unit: TimeUnit = TimeUnit.SECONDS,
        duration_unit: TimeUnit = TimeUnit.SECONDS,
    ):
        self.registry = registry
        self.name = name
        self.filter = filter or MetricFilter.ALL
        self.rate_unit = rate_unit
        self.duration_unit = duration_unit

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._period: Optional[float] = None
        self._closed = False

    # ========== Report cycle ==========

    def report(
        self,
        gauges: Optional[Dict[str, Gauge]] = None,
        counters: Optional[Dict[str, Counter]] = None,
        histograms: Optional[Dict[str, Histogram]] = None,
        meters: Optional[Dict[str, Meter]] = None,
        timers: Optional[Dict[str, Timer]] = None,
    ) -> None:
        """Publish one report. Implemented by subclasses."""
        raise NotImplementedError

    def report_now(self) -> None:
        """Run one report cycle with the registry's current contents."""
        self.report(
            self.registry.get_gauges(self.filter),
            self.registry.get_counters(self.filter),
            self.registry.get_histograms(self.filter),
            self.registry.get_meters(self.filter),
            self.registry.get_timers(self.filter),
        )

    # ========== Scheduling ==========

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(
        self,
        period: float,
        unit: TimeUnit = TimeUnit.SECONDS,
        initial_delay: Optional[float] = None,
    ) -> None:
        """
        Start reporting every ``period`` units.

        Args:
            period: Interval between cycle starts
            unit: Unit of ``period`` and ``initial_delay``
            initial_delay: Delay before the first cycle (defaults to ``period``)
        """
        if period <= 0:
            raise ValueError("Reporting period must be positive")
        if self._closed:
            raise RuntimeError(f"Reporter {self.name} is closed")
        if self._thread is not None:
            raise RuntimeError(f"Reporter {self.name} already started")

        self._period = period * unit.seconds
        delay = self._period if initial_delay is None else initial_delay * unit.seconds
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(delay,),
            name=f"{self.name}-reporter",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Reporter {self.name} started with period {self._period}s")

    def _run(self, delay: float) -> None:
        # Fixed rate: the next cycle is due one period after the previous was due.
        # A long cycle delays the next one instead of overlapping it.
        if self._stop_event.wait(delay):
            return
        while True:
            started = time.monotonic()
            try:
                self.report_now()
            except Exception:
                logger.exception(f"Reporter {self.name} failed to report")
            elapsed = time.monotonic() - started
            if self._stop_event.wait(max(0.0, self._period - elapsed)):
                return

    def stop(self) -> None:
        """Stop scheduling, wait for a running cycle and close the reporter."""
        thread = self._thread
        if thread is not None:
            self._stop_event.set()
            if thread is not threading.current_thread():
                thread.join()
            self._thread = None
            logger.info(f"Reporter {self.name} stopped")
        self.close()

    def close(self) -> None:
        """Release resources held by the reporter."""
        self._closed = True

    def __enter__(self) -> "ScheduledReporter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ========== Unit helpers ==========

    @property
    def rate_unit_label(self) -> str:
        return self.rate_unit.singular

    @property
    def duration_unit_label(self) -> str:
        return self.duration_unit.plural

    def convert_rate(self, rate: float) -> float:
        """Convert a per-second rate to the reporter's rate unit."""
        return rate * self.rate_unit.seconds

    def convert_duration(self, nanos: float) -> float:
        """Convert nanoseconds to the reporter's duration unit."""
        return nanos / self.duration_unit.nanos
