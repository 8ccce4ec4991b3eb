"""
Exceptions raised by the Kafka metrics reporter.

Every failure is raised to the caller of ``build()`` or ``report()``;
nothing in the library drops a report silently.
"""

from typing import List, Optional


class KafkaReporterError(Exception):
    """Base exception for reporter errors."""
    pass


class ConfigurationError(KafkaReporterError):
    """Reporter or producer configuration is missing or invalid."""
    
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class ProducerInitializationError(KafkaReporterError):
    """The message producer could not be created from its configuration."""
    pass


class SerializationError(KafkaReporterError):
    """The registry could not be converted to a JSON report."""
    pass


class PublishError(KafkaReporterError):
    """The producer gave up delivering a report."""
    
    def __init__(self, topic: str, reason: str):
        self.topic = topic
        self.reason = reason
        super().__init__(f"Failed to publish to {topic}: {reason}")
