"""
Telemetry module: logging setup for the reporter.
"""

from kafka_reporter.telemetry.logging import (
    JsonFormatter,
    LogLevel,
    configure_logging,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "configure_logging",
]
