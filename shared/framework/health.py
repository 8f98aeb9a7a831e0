"""
Health check system for directory services.

Aggregates liveness-style checks into a health status and
derives readiness from checks that gate incoming traffic.
"""

import asyncio
import inspect
from typing import Dict, Any, List, Optional, Callable, Awaitable, Union
from dataclasses import dataclass
from enum import Enum
import time

import structlog

from .config import VALID_ENVIRONMENTS


logger = structlog.get_logger()

CheckFunc = Callable[[], Union[bool, Awaitable[bool]]]


class HealthStatus(Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class HealthCheck:
    """Individual health check definition.

    ``critical`` failures make the service unhealthy; non-critical ones
    only degrade it. ``gates_readiness`` checks must pass before the
    service reports ready, whatever their criticality.
    """
    name: str
    check_func: CheckFunc
    timeout: float = 5.0
    critical: bool = True
    gates_readiness: bool = False
    description: Optional[str] = None


class HealthChecker:
    """Runs registered checks and aggregates their results."""

    def __init__(self, config):
        self.config = config
        self.logger = structlog.get_logger("health-checker")
        self.checks: List[HealthCheck] = []
        self.last_check_time: Optional[float] = None

        self.add_check(
            HealthCheck(
                name="config",
                check_func=self._check_config,
                description="Service configuration validation"
            )
        )

    def add_check(self, check: HealthCheck) -> None:
        """Add a health check."""
        self.checks.append(check)
        self.logger.debug("Added health check", name=check.name)

    async def check_health(self) -> Dict[str, Any]:
        """Perform all health checks and return aggregated status."""
        results = {}
        overall_status = HealthStatus.HEALTHY
        critical_failures = 0

        for check in self.checks:
            started = time.monotonic()
            error: Optional[str] = None
            try:
                passed = await asyncio.wait_for(self._run_check(check), timeout=check.timeout)
            except asyncio.TimeoutError:
                self.logger.warning("Health check timeout", name=check.name, timeout=check.timeout)
                passed = False
                error = "timeout"

            results[check.name] = {
                "status": "healthy" if passed else "unhealthy",
                "description": check.description,
                "critical": check.critical,
                "gates_readiness": check.gates_readiness,
                "duration_ms": (time.monotonic() - started) * 1000,
            }
            if error:
                results[check.name]["error"] = error

            if not passed:
                if check.critical:
                    critical_failures += 1
                    overall_status = HealthStatus.UNHEALTHY
                elif overall_status == HealthStatus.HEALTHY:
                    overall_status = HealthStatus.DEGRADED

        self.last_check_time = time.time()

        return {
            "healthy": overall_status != HealthStatus.UNHEALTHY,
            "status": overall_status.value,
            "checks": results,
            "critical_failures": critical_failures,
            "total_checks": len(self.checks),
            "timestamp": self.last_check_time,
        }

    async def check_readiness(self) -> Dict[str, Any]:
        """Check if service is ready to accept traffic."""
        health_result = await self.check_health()

        gating_failures = [
            name for name, result in health_result["checks"].items()
            if result["gates_readiness"] and result["status"] != "healthy"
        ]
        ready = health_result["critical_failures"] == 0 and not gating_failures

        return {
            "ready": ready,
            "status": "ready" if ready else "not_ready",
            "waiting_on": gating_failures,
            "health": health_result,
            "timestamp": time.time(),
        }

    async def _run_check(self, check: HealthCheck) -> bool:
        """Run a single health check, treating exceptions as failures."""
        try:
            result = check.check_func()
            if inspect.isawaitable(result):
                result = await result
            return bool(result)
        except Exception as e:
            self.logger.error(
                "Health check execution error",
                name=check.name,
                error=str(e),
                exc_info=True
            )
            return False

    def _check_config(self) -> bool:
        """Check service configuration."""
        return bool(self.config.service_name) and self.config.environment in VALID_ENVIRONMENTS

