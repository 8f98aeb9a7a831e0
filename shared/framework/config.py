"""
Configuration management for directory services.

Provides typed configuration classes with environment variable
injection and validation.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Any

from shared.utils.errors import ConfigurationError

VALID_ENVIRONMENTS = ("local", "dev", "staging", "prod")


@dataclass
class ObservabilityConfig:
    """Observability configuration."""
    log_level: str = field(default_factory=lambda: os.getenv("DIRECTORY_LOG_LEVEL", "info"))
    log_format: str = field(default_factory=lambda: os.getenv("DIRECTORY_LOG_FORMAT", "json"))
    trace_enabled: bool = field(default_factory=lambda: os.getenv("DIRECTORY_TRACE_ENABLED", "true").lower() == "true")
    health_port: int = field(default_factory=lambda: int(os.getenv("DIRECTORY_HTTP_PORT", "8080")))


@dataclass
class ServiceConfig:
    """Base service configuration."""
    service_name: str
    environment: str = field(default_factory=lambda: os.getenv("DIRECTORY_ENV", "local"))
    version: str = field(default_factory=lambda: os.getenv("DIRECTORY_VERSION", "1.0.0"))

    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.service_name:
            raise ConfigurationError("service_name is required", config_key="service_name")

        if self.environment not in VALID_ENVIRONMENTS:
            raise ConfigurationError(
                f"Invalid environment: {self.environment}",
                config_key="environment",
                config_value=self.environment,
            )

        if self.observability.log_format not in ("json", "console"):
            raise ConfigurationError(
                f"Invalid log format: {self.observability.log_format}",
                config_key="log_format",
                config_value=self.observability.log_format,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "service_name": self.service_name,
            "environment": self.environment,
            "version": self.version,
            "observability": {
                "log_level": self.observability.log_level,
                "log_format": self.observability.log_format,
                "trace_enabled": self.observability.trace_enabled,
                "health_port": self.observability.health_port,
            },
        }
