"""
Configuration loading for the Kafka metrics reporter.
"""

from kafka_reporter.config.config_manager import (
    KafkaConfig,
    ReporterSettings,
    LoggingConfig,
    KafkaReporterSettings,
    ConfigManager,
    get_config,
    reset_config,
)

__all__ = [
    "KafkaConfig",
    "ReporterSettings",
    "LoggingConfig",
    "KafkaReporterSettings",
    "ConfigManager",
    "get_config",
    "reset_config",
]
