"""
Logging Setup

Installs handlers on the package logger. Library modules only ever call
``logging.getLogger(__name__)``; applications decide where output goes.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from enum import Enum
from typing import Optional, Union

ROOT_LOGGER = "kafka_reporter"
PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LogLevel(Enum):
    """Log levels."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Union["LogLevel", str, int]) -> "LogLevel":
        """Resolve a level from a member, a name or a numeric level."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        return cls[str(value).strip().upper()]


class JsonFormatter(logging.Formatter):
    """One JSON object per log record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict)


def configure_logging(
    level: Union[LogLevel, str, int] = LogLevel.INFO,
    json_format: bool = False,
    log_file: Optional[str] = None,
    max_size: int = 10485760,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the package logger.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Minimum log level
        json_format: Whether to output JSON
        log_file: Optional path for a rotating log file
        max_size: Rotate the file after this many bytes
        backup_count: Rotated files to keep

    Returns:
        The configured ``kafka_reporter`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(LogLevel.parse(level).value)

    for handler in list(logger.handlers):
        if getattr(handler, "_kafka_reporter", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = JsonFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_size, backupCount=backup_count
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._kafka_reporter = True
        logger.addHandler(handler)

    return logger
