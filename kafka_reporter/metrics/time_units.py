"""
Time Units and Clocks

Units used to normalize rates and durations in reports, and the clock
abstraction that meters and timers read time from.
"""

import time
from enum import Enum
from typing import Union

from kafka_reporter.exceptions import ConfigurationError


class TimeUnit(Enum):
    """Time units, valued by their length in nanoseconds."""
    NANOSECONDS = 1
    MICROSECONDS = 1_000
    MILLISECONDS = 1_000_000
    SECONDS = 1_000_000_000
    MINUTES = 60 * 1_000_000_000
    HOURS = 3600 * 1_000_000_000
    DAYS = 86400 * 1_000_000_000

    @property
    def nanos(self) -> int:
        """Length of one unit in nanoseconds."""
        return self.value

    @property
    def seconds(self) -> float:
        """Length of one unit in seconds."""
        return self.value / TimeUnit.SECONDS.value

    @property
    def plural(self) -> str:
        """Lowercase plural label, e.g. ``"seconds"``."""
        return self.name.lower()

    @property
    def singular(self) -> str:
        """Lowercase singular label, e.g. ``"second"``."""
        return self.plural[:-1]

    def to_nanos(self, duration: float) -> float:
        """Convert a duration in this unit to nanoseconds."""
        return duration * self.value

    @classmethod
    def parse(cls, value: Union["TimeUnit", str]) -> "TimeUnit":
        """
        Resolve a unit from a member or a name.

        Accepts member names in any case ("seconds", "MINUTES") and the
        short forms ns, us, ms, s, m/min, h, d.

        Raises:
            ConfigurationError: If the unit is not recognised
        """
        if isinstance(value, cls):
            return value

        key = str(value).strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]

        for unit in cls:
            if unit.plural == key or unit.singular == key:
                return unit

        raise ConfigurationError(f"Unknown time unit: {value!r}")


_ALIASES = {
    "ns": TimeUnit.NANOSECONDS,
    "us": TimeUnit.MICROSECONDS,
    "ms": TimeUnit.MILLISECONDS,
    "s": TimeUnit.SECONDS,
    "sec": TimeUnit.SECONDS,
    "m": TimeUnit.MINUTES,
    "min": TimeUnit.MINUTES,
    "h": TimeUnit.HOURS,
    "d": TimeUnit.DAYS,
}


class Clock:
    """Source of time for meters and timers."""

    def tick(self) -> int:
        """Monotonic time in nanoseconds."""
        return time.monotonic_ns()

    def time(self) -> float:
        """Wall-clock time in seconds since the epoch."""
        return time.time()


_default_clock = Clock()


def default_clock() -> Clock:
    """Get the shared system clock."""
    return _default_clock
