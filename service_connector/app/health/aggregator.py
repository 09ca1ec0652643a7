"""
Composite health status built from named checks.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

import psutil

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.turso_client import TursoClient


class HealthState(str, Enum):
    """Health of a single check or of the whole service."""
    HEALTHY = "Healthy"
    UNHEALTHY = "Unhealthy"


@dataclass
class CheckResult:
    """Outcome of one named check."""
    status: HealthState
    detail: str

    @classmethod
    def healthy(cls, detail: str) -> "CheckResult":
        return cls(HealthState.HEALTHY, detail)

    @classmethod
    def unhealthy(cls, detail: str) -> "CheckResult":
        return cls(HealthState.UNHEALTHY, detail)


@dataclass
class HealthStatus:
    """Aggregate of all checks; Healthy only when every check is."""
    overall: HealthState
    checks: Dict[str, CheckResult] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.value,
            "checks": {
                name: {"status": result.status.value, "detail": result.detail}
                for name, result in self.checks.items()
            },
        }


HealthCheck = Callable[[], Awaitable[CheckResult]]


def database_check(client: "TursoClient") -> HealthCheck:
    """Check backed by the client's SELECT 1 probe."""
    async def check() -> CheckResult:
        if await client.test_connection():
            return CheckResult.healthy("Database connection is healthy")
        return CheckResult.unhealthy("Database connection failed")

    return check


def process_memory_mb() -> float:
    """Resident memory of this process in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


def memory_check(threshold_mb: int, read_memory_mb: Callable[[], float] = process_memory_mb) -> HealthCheck:
    """Check that process memory stays at or below ``threshold_mb``."""
    async def check() -> CheckResult:
        usage = read_memory_mb()
        if usage > threshold_mb:
            return CheckResult.unhealthy(f"Memory usage too high: {usage:.0f}MB")
        return CheckResult.healthy(f"Memory usage normal: {usage:.0f}MB")

    return check


class HealthAggregator:
    """Runs registered checks and folds them into one HealthStatus."""

    def __init__(self,
                 checks: Optional[Dict[str, HealthCheck]] = None,
                 *,
                 timeout: float = 10.0,
                 metrics: Optional["MetricsCollector"] = None):
        self.checks: Dict[str, HealthCheck] = dict(checks or {})
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("connector.health")

    async def _run_check(self, name: str, check: HealthCheck) -> CheckResult:
        try:
            return await asyncio.wait_for(check(), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.error("Health check timed out", check=name, timeout=self.timeout)
            return CheckResult.unhealthy(f"Check timed out after {self.timeout}s")
        except Exception as exc:
            self.logger.error("Health check failed with exception", check=name, error=str(exc))
            return CheckResult.unhealthy(str(exc))

    async def check_health(self) -> HealthStatus:
        """Evaluate every check concurrently."""
        names = list(self.checks)
        results = await asyncio.gather(*(self._run_check(name, self.checks[name]) for name in names))
        checks = dict(zip(names, results))

        overall = (
            HealthState.HEALTHY
            if all(result.status == HealthState.HEALTHY for result in results)
            else HealthState.UNHEALTHY
        )
        if self.metrics is not None:
            self.metrics.record_health_check(overall.value)

        return HealthStatus(overall=overall, checks=checks)
