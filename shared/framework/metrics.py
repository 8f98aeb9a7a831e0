"""Prometheus metrics collection for directory services."""

from typing import Dict, Any, Optional

import structlog
from prometheus_client import (
    Counter, Histogram, Gauge, Info,
    CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
)

logger = structlog.get_logger(__name__)

DEFAULT_DURATION_BUCKETS = [0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]


class MetricsCollector:
    """Centralized metrics collection for a service.

    Each collector owns its registry so several services (or tests) can
    live in one process without duplicate-timeseries errors.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name.replace("-", "_")
        self.registry = registry or CollectorRegistry()
        self.metrics: Dict[str, Any] = {}

        self._init_common_metrics()

    def _init_common_metrics(self):
        """Initialize common metrics for all services."""
        self.info = Info(
            f"{self.service_name}_info",
            f"Information about {self.service_name}",
            registry=self.registry
        )

        self.request_count = Counter(
            f"{self.service_name}_requests_total",
            f"Total number of requests served by {self.service_name}",
            ["method", "endpoint", "status"],
            registry=self.registry
        )

        self.errors_total = Counter(
            f"{self.service_name}_errors_total",
            f"Total number of errors in {self.service_name}",
            ["error_type", "component"],
            registry=self.registry
        )

        self.health_status = Gauge(
            f"{self.service_name}_health_status",
            f"Health status of {self.service_name} (1=healthy, 0=unhealthy)",
            registry=self.registry
        )

        self.memory_usage = Gauge(
            f"{self.service_name}_memory_usage_bytes",
            f"Memory usage in bytes for {self.service_name}",
            registry=self.registry
        )

    def create_counter(self, name: str, description: str, labels: Optional[list] = None) -> Counter:
        """Create a custom counter metric."""
        full_name = f"{self.service_name}_{name}"
        counter = Counter(full_name, description, labels or [], registry=self.registry)
        self.metrics[name] = counter
        return counter

    def create_histogram(self, name: str, description: str, labels: Optional[list] = None,
                         buckets: Optional[list] = None) -> Histogram:
        """Create a custom histogram metric."""
        full_name = f"{self.service_name}_{name}"
        histogram = Histogram(
            full_name, description, labels or [],
            buckets=buckets or DEFAULT_DURATION_BUCKETS,
            registry=self.registry
        )
        self.metrics[name] = histogram
        return histogram

    def create_gauge(self, name: str, description: str, labels: Optional[list] = None) -> Gauge:
        """Create a custom gauge metric."""
        full_name = f"{self.service_name}_{name}"
        gauge = Gauge(full_name, description, labels or [], registry=self.registry)
        self.metrics[name] = gauge
        return gauge

    def record_request(self, method: str, endpoint: str, status: str):
        """Record a served request."""
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()

    def record_error(self, error_type: str, component: str):
        """Record an error metric."""
        self.errors_total.labels(error_type=error_type, component=component).inc()

    def set_health_status(self, healthy: bool):
        """Set the health status metric."""
        self.health_status.set(1 if healthy else 0)

    def set_memory_usage(self, bytes_used: int):
        """Set the memory usage metric."""
        self.memory_usage.set(bytes_used)

    def update_service_info(self, version: str, environment: str, **kwargs):
        """Update service information."""
        self.info.info({"version": version, "environment": environment, **kwargs})

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics."""
        return CONTENT_TYPE_LATEST
