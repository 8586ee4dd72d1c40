"""
Health and Metrics for fulfillment-mcp.

Provides:
- HealthStatus / CheckStatus: status enums
- HealthCheck / HealthReport: the result of one health check
- OperationMetrics: per-operation counters and durations
- HealthMonitor: process-lifetime metrics snapshot and system health
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

MAX_HISTORY = 1000
ERROR_RATE_DEGRADED = 0.10
SLOW_OPERATION_MS = 1000.0


class HealthStatus(str, Enum):
    """Overall health of a component."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class CheckStatus(str, Enum):
    """Status of a single named sub-check."""

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


@dataclass
class HealthCheck:
    """A named sub-check within a health report."""

    name: str
    status: CheckStatus
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.message is not None:
            result["message"] = self.message
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class HealthReport:
    """Result of a health check. Produced fresh on every check."""

    status: HealthStatus
    checks: list[HealthCheck] = field(default_factory=list)
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    @classmethod
    def unhealthy(cls, message: str, **details: Any) -> HealthReport:
        return cls(status=HealthStatus.UNHEALTHY, message=message, details=details)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthReport:
        """Build a report from the plain-dict shape some adapters return."""
        checks = [
            HealthCheck(
                name=c.get("name", "check"),
                status=CheckStatus(c.get("status", "warn")),
                message=c.get("message"),
                details=c.get("details") or {},
            )
            for c in data.get("checks", [])
        ]
        return cls(
            status=HealthStatus(data.get("status", HealthStatus.UNKNOWN.value)),
            checks=checks,
            message=data.get("message"),
            details=data.get("details") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "checks": [c.to_dict() for c in self.checks],
        }
        if self.message is not None:
            result["message"] = self.message
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class OperationMetrics:
    """Counters for one operation of one component."""

    component: str
    operation: str
    invocation_count: int = 0
    failure_count: int = 0
    backend_failure_count: int = 0
    total_duration_ms: float = 0.0
    last_duration_ms: float | None = None
    last_invoked_at: datetime | None = None
    last_error: str | None = None

    @property
    def avg_duration_ms(self) -> float:
        if self.invocation_count == 0:
            return 0.0
        return self.total_duration_ms / self.invocation_count

    @property
    def success_rate(self) -> float:
        if self.invocation_count == 0:
            return 1.0
        return (self.invocation_count - self.failure_count) / self.invocation_count

    def record(
        self,
        duration_ms: float,
        success: bool,
        error: str | None = None,
        backend_failure: bool | None = None,
    ) -> None:
        self.invocation_count += 1
        self.total_duration_ms += duration_ms
        self.last_duration_ms = duration_ms
        self.last_invoked_at = datetime.now(timezone.utc)
        if not success:
            self.failure_count += 1
            self.last_error = error
            if backend_failure is not False:
                self.backend_failure_count += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "operation": self.operation,
            "invocation_count": self.invocation_count,
            "failure_count": self.failure_count,
            "backend_failure_count": self.backend_failure_count,
            "total_duration_ms": self.total_duration_ms,
            "last_duration_ms": self.last_duration_ms,
            "avg_duration_ms": self.avg_duration_ms,
            "success_rate": self.success_rate,
            "last_invoked_at": self.last_invoked_at.isoformat() if self.last_invoked_at else None,
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class OperationRecord:
    """One entry of the bounded performance history."""

    component: str
    operation: str
    duration_ms: float
    success: bool
    timestamp: datetime


def _percentile(data: list[float], p: float) -> float | None:
    if not data:
        return None
    sorted_data = sorted(data)
    k = (len(sorted_data) - 1) * p
    f = int(k)
    c = f + 1 if f + 1 < len(sorted_data) else f
    return sorted_data[f] + (k - f) * (sorted_data[c] - sorted_data[f])


class HealthMonitor:
    """
    Owner of the process-lifetime metrics snapshot.

    Counters accumulate monotonically for the life of the process. The
    performance history is bounded to the most recent MAX_HISTORY calls.
    """

    def __init__(self, max_history: int = MAX_HISTORY):
        self._metrics: dict[str, OperationMetrics] = {}
        self._history: deque[OperationRecord] = deque(maxlen=max_history)
        self._components: dict[str, HealthReport] = {}
        self._started_at = datetime.now(timezone.utc)

    # ==================== Recording ====================

    def record_operation(
        self,
        component: str,
        operation: str,
        duration_ms: float,
        success: bool,
        error: str | None = None,
        backend_failure: bool | None = None,
    ) -> None:
        """
        Record one finished operation.

        ``backend_failure`` marks whether a failure reflects on the backend;
        None counts every failure. Only backend failures feed the error rate.
        """
        key = f"{component}:{operation}"
        metrics = self._metrics.get(key)
        if metrics is None:
            metrics = OperationMetrics(component=component, operation=operation)
            self._metrics[key] = metrics
        metrics.record(duration_ms, success, error, backend_failure)
        self._history.append(
            OperationRecord(
                component=component,
                operation=operation,
                duration_ms=duration_ms,
                success=success,
                timestamp=datetime.now(timezone.utc),
            )
        )

    def record_health_check(self, component: str, report: HealthReport) -> None:
        self._components[component] = report
        if report.status != HealthStatus.HEALTHY:
            logger.warning(f"[health] {component} reported {report.status.value}: {report.message}")

    # ==================== Queries ====================

    def get_metrics(self, component: str, operation: str) -> OperationMetrics | None:
        return self._metrics.get(f"{component}:{operation}")

    def get_all_metrics(self) -> list[OperationMetrics]:
        return list(self._metrics.values())

    @property
    def total_invocations(self) -> int:
        return sum(m.invocation_count for m in self._metrics.values())

    @property
    def total_failures(self) -> int:
        return sum(m.failure_count for m in self._metrics.values())

    @property
    def total_backend_failures(self) -> int:
        return sum(m.backend_failure_count for m in self._metrics.values())

    @property
    def error_rate(self) -> float:
        """Share of invocations that failed because of the backend."""
        total = self.total_invocations
        return self.total_backend_failures / total if total else 0.0

    def get_system_health(self) -> HealthReport:
        """
        Aggregate component health.

        Unhealthy if any component is unhealthy; degraded if any component
        is degraded or the backend error rate exceeds 10%.
        """
        statuses = [r.status for r in self._components.values()]
        error_rate = self.error_rate

        if HealthStatus.UNHEALTHY in statuses:
            status = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses or error_rate > ERROR_RATE_DEGRADED:
            status = HealthStatus.DEGRADED
        elif statuses:
            status = HealthStatus.HEALTHY
        else:
            status = HealthStatus.UNKNOWN

        checks = [
            HealthCheck(
                name=name,
                status=CheckStatus.PASS
                if report.status == HealthStatus.HEALTHY
                else CheckStatus.WARN
                if report.status == HealthStatus.DEGRADED
                else CheckStatus.FAIL,
                message=report.message,
            )
            for name, report in self._components.items()
        ]
        return HealthReport(
            status=status,
            checks=checks,
            details={
                "error_rate": error_rate,
                "total_invocations": self.total_invocations,
                "uptime_seconds": (datetime.now(timezone.utc) - self._started_at).total_seconds(),
            },
        )

    def get_performance_stats(self) -> dict[str, Any]:
        durations = [r.duration_ms for r in self._history]
        return {
            "samples": len(durations),
            "avg_ms": sum(durations) / len(durations) if durations else None,
            "p50": _percentile(durations, 0.5),
            "p95": _percentile(durations, 0.95),
            "p99": _percentile(durations, 0.99),
        }

    def get_slow_operations(self, threshold_ms: float = SLOW_OPERATION_MS) -> list[OperationRecord]:
        return [r for r in self._history if r.duration_ms > threshold_ms]

    def get_failed_operations(self) -> list[OperationRecord]:
        return [r for r in self._history if not r.success]

    def export_metrics(self) -> dict[str, Any]:
        return {
            "system": self.get_system_health().to_dict(),
            "components": {name: r.to_dict() for name, r in self._components.items()},
            "operations": {key: m.to_dict() for key, m in self._metrics.items()},
            "performance": self.get_performance_stats(),
        }


__all__ = [
    "CheckStatus",
    "HealthCheck",
    "HealthMonitor",
    "HealthReport",
    "HealthStatus",
    "OperationMetrics",
    "OperationRecord",
]
