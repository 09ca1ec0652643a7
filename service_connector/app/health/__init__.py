"""
Health package: named checks and their aggregation.
"""

from .aggregator import (
    CheckResult,
    HealthAggregator,
    HealthState,
    HealthStatus,
    database_check,
    memory_check,
)

__all__ = [
    "CheckResult",
    "HealthAggregator",
    "HealthState",
    "HealthStatus",
    "database_check",
    "memory_check",
]
