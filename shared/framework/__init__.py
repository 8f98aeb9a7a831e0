"""
Core framework components for async directory services.

Provides base classes and abstractions for building observable
HTTP services with background refresh loops.
"""

from .service import AsyncService
from .config import ServiceConfig, ObservabilityConfig
from .health import HealthChecker, HealthCheck
from .metrics import MetricsCollector

__all__ = [
    "AsyncService",
    "ServiceConfig",
    "ObservabilityConfig",
    "HealthChecker",
    "HealthCheck",
    "MetricsCollector",
]
