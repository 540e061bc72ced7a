"""Rolling per-service metrics and the aggregate health classification."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Mapping

from pydantic import BaseModel, Field

from questops.models import (
    AlertThresholds,
    DeploymentHealth,
    HealthSummary,
    OverallStatus,
    ServiceHealthStatus,
)

MAX_RESPONSE_SAMPLES = 100


class ServiceMetrics(BaseModel):
    """
    Metrics for one monitored service, updated once per polling round.

    Every poll counts as a request; failures also count as errors, so
    availability is (requests - errors) / requests, or 1.0 before the first poll.
    Response times are kept for successful polls only, newest last, capped at
    MAX_RESPONSE_SAMPLES.
    """

    status: ServiceHealthStatus = ServiceHealthStatus.UNKNOWN
    response_times: list[int] = Field(default_factory=list)
    availability: float = 1.0
    error_count: int = 0
    total_requests: int = 0
    consecutive_failures: int = 0
    deployment_health: DeploymentHealth = DeploymentHealth.UNKNOWN
    last_check: datetime | None = None

    def record_response_time(self, response_ms: int) -> None:
        self.response_times.append(response_ms)
        if len(self.response_times) > MAX_RESPONSE_SAMPLES:
            del self.response_times[0 : len(self.response_times) - MAX_RESPONSE_SAMPLES]

    def record_success(self, response_ms: int) -> None:
        self.total_requests += 1
        self.record_response_time(response_ms)
        self.consecutive_failures = 0
        self.status = ServiceHealthStatus.HEALTHY

    def record_failure(self) -> None:
        self.total_requests += 1
        self.error_count += 1
        self.consecutive_failures += 1
        self.status = ServiceHealthStatus.UNHEALTHY

    def finish_check(self, checked_at: datetime) -> None:
        """Stamp the poll time and recompute availability (runs after every poll)."""
        self.last_check = checked_at
        self.availability = self.calculate_availability()

    def calculate_availability(self) -> float:
        if self.total_requests == 0:
            return 1.0
        return (self.total_requests - self.error_count) / self.total_requests

    def error_rate(self) -> float:
        return self.error_count / max(self.total_requests, 1)

    def average_response_time(self) -> int:
        if not self.response_times:
            return 0
        return round(sum(self.response_times) / len(self.response_times))

    def p95_response_time(self) -> int:
        if not self.response_times:
            return 0
        ordered = sorted(self.response_times)
        return ordered[math.floor(len(ordered) * 0.95)]


def calculate_overall_health(
    metrics: Mapping[str, ServiceMetrics],
    thresholds: AlertThresholds,
) -> HealthSummary:
    """
    Ordinal classification of the whole system.

    critical: fewer than half the services healthy.
    degraded: any service not healthy, or overall error rate above the threshold.
    healthy: otherwise.
    """
    count = len(metrics)
    online = sum(1 for m in metrics.values() if m.status == ServiceHealthStatus.HEALTHY)
    total_requests = sum(m.total_requests for m in metrics.values())
    total_errors = sum(m.error_count for m in metrics.values())
    avg_availability = (sum(m.availability for m in metrics.values()) / count * 100) if count else 100.0
    overall_error_rate = total_errors / total_requests if total_requests else 0.0

    if online < count * 0.5:
        status = OverallStatus.CRITICAL
    elif online < count or overall_error_rate > thresholds.error_rate:
        status = OverallStatus.DEGRADED
    else:
        status = OverallStatus.HEALTHY

    return HealthSummary(
        status=status,
        services_online=online,
        service_count=count,
        avg_availability=avg_availability,
        total_requests=total_requests,
        total_errors=total_errors,
    )
