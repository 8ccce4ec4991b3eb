"""
Configuration Management

Handles loading and managing Kafka reporter configuration.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from kafka_reporter.exceptions import ConfigurationError


@dataclass
class KafkaConfig:
    """Producer connection and delivery settings."""
    broker_list: str = "localhost:9092"
    topic: str = "metrics"
    synchronous: bool = False
    compression_codec: int = 0
    batch_size: int = 200
    message_send_max_retries: int = 3


@dataclass
class ReporterSettings:
    """Reporter naming, units and schedule."""
    name: str = "KafkaReporter"
    rate_unit: str = "seconds"
    duration_unit: str = "seconds"
    period: float = 60.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    json: bool = False
    file: Optional[str] = None
    max_size: int = 10485760
    backup_count: int = 5


@dataclass
class KafkaReporterSettings:
    """Complete reporter configuration."""
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    reporter: ReporterSettings = field(default_factory=ReporterSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


class ConfigManager:
    """
    Manages reporter configuration.

    Supports:
    - Loading from YAML files
    - Environment variable overrides
    - Programmatic configuration
    """

    DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"

    ENV_OVERRIDES: Dict[str, tuple] = {
        "KR_BROKER_LIST": ("kafka", "broker_list", str),
        "KR_TOPIC": ("kafka", "topic", str),
        "KR_SYNCHRONOUS": ("kafka", "synchronous", _to_bool),
        "KR_COMPRESSION_CODEC": ("kafka", "compression_codec", int),
        "KR_BATCH_SIZE": ("kafka", "batch_size", int),
        "KR_MAX_RETRIES": ("kafka", "message_send_max_retries", int),
        "KR_PERIOD": ("reporter", "period", float),
        "KR_LOG_LEVEL": ("logging", "level", str),
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the config manager.

        Args:
            config_path: Path to a user config file (optional)
        """
        self.config_path = config_path
        self._config: Optional[KafkaReporterSettings] = None

    def load(self) -> KafkaReporterSettings:
        """
        Load configuration.

        Defaults, then the packaged default file, then the user file,
        then environment overrides.

        Raises:
            ConfigurationError: If a file or override cannot be parsed
        """
        self._config = KafkaReporterSettings()

        if os.path.exists(self.DEFAULT_CONFIG_PATH):
            self._load_from_file(str(self.DEFAULT_CONFIG_PATH))

        if self.config_path:
            if not os.path.exists(self.config_path):
                raise ConfigurationError(f"Config file not found: {self.config_path}")
            self._load_from_file(self.config_path)

        self._apply_env_overrides()

        return self._config

    def _load_from_file(self, path: str) -> None:
        """Load configuration from file."""
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if data:
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {path} must contain a mapping")
            self._apply_dict(data)

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary to configuration."""
        for section_name in ("kafka", "reporter", "logging"):
            values = data.get(section_name)
            if not values:
                continue
            section = getattr(self._config, section_name)
            for key, value in values.items():
                if not hasattr(section, key):
                    raise ConfigurationError(f"Unknown option {section_name}.{key}")
                setattr(section, key, value)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        for env_var, (section, attr, convert) in self.ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                try:
                    converted = convert(value)
                except ValueError as e:
                    raise ConfigurationError(f"Invalid value for {env_var}: {value!r}") from e
                setattr(getattr(self._config, section), attr, converted)

    def get(self) -> KafkaReporterSettings:
        """Get current configuration."""
        if self._config is None:
            return self.load()
        return self._config

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration to dictionary."""
        config = self.get()

        return {
            "kafka": {
                "broker_list": config.kafka.broker_list,
                "topic": config.kafka.topic,
                "synchronous": config.kafka.synchronous,
                "compression_codec": config.kafka.compression_codec,
                "batch_size": config.kafka.batch_size,
                "message_send_max_retries": config.kafka.message_send_max_retries,
            },
            "reporter": {
                "name": config.reporter.name,
                "rate_unit": config.reporter.rate_unit,
                "duration_unit": config.reporter.duration_unit,
                "period": config.reporter.period,
            },
            "logging": {
                "level": config.logging.level,
                "json": config.logging.json,
                "file": config.logging.file,
            },
        }


# Global config instance
_config_manager: Optional[ConfigManager] = None


def get_config(config_path: Optional[str] = None) -> KafkaReporterSettings:
    """Get global configuration."""
    global _config_manager

    if _config_manager is None:
        _config_manager = ConfigManager(config_path)

    return _config_manager.get()


def reset_config() -> None:
    """Reset global configuration."""
    global _config_manager
    _config_manager = None
