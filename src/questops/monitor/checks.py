"""Per-service health checks for one polling round."""

from __future__ import annotations

import logging
import time

import httpx

from questops.models import AlertSeverity, AlertThresholds, DeploymentHealth, MonitoredService, ServiceType
from questops.monitor.alerts import AlertManager, Clock, utc_now
from questops.monitor.metrics import ServiceMetrics

logger = logging.getLogger(__name__)

CONNECTIVITY_TIMEOUT = 10.0
DEEP_HEALTH_TIMEOUT = 5.0
CONSECUTIVE_FAILURE_THRESHOLD = 3
HEAP_USED_LIMIT_MB = 100


def log_service_error(service_name: str, message: str) -> None:
    logger.error("ERROR %s: %s", service_name, message, extra={"service": service_name})


async def check_service_health(
    client: httpx.AsyncClient,
    service: MonitoredService,
    metrics: ServiceMetrics,
    alerts: AlertManager,
    thresholds: AlertThresholds,
    clock: Clock = utc_now,
) -> None:
    """
    Connectivity check against the service's base URL.

    Writes only this service's metrics. Reachability (status) and the API's own
    report (deployment_health) are tracked separately: a failing deep check
    leaves status healthy.
    """
    start = time.monotonic()
    try:
        response = await client.get(service.url, timeout=CONNECTIVITY_TIMEOUT)
        if not response.is_success:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code}", request=response.request, response=response
            )
        metrics.record_success(int((time.monotonic() - start) * 1000))
        if service.type == ServiceType.API:
            await check_api_health(client, service, metrics, alerts, thresholds)
    except Exception as e:
        metrics.record_failure()
        log_service_error(service.name, str(e) or type(e).__name__)
        if metrics.consecutive_failures >= CONSECUTIVE_FAILURE_THRESHOLD:
            await alerts.create(
                AlertSeverity.CRITICAL,
                service.name,
                f"Service has failed {metrics.consecutive_failures} consecutive health checks",
            )
    metrics.finish_check(clock())


async def check_api_health(
    client: httpx.AsyncClient,
    service: MonitoredService,
    metrics: ServiceMetrics,
    alerts: AlertManager,
    thresholds: AlertThresholds,
) -> None:
    """Deep check of GET {url}/health; problems here only touch deployment_health and alerts."""
    try:
        response = await client.get(f"{service.url.rstrip('/')}/health", timeout=DEEP_HEALTH_TIMEOUT)
        if not response.is_success:
            raise ValueError(f"Health endpoint returned {response.status_code}")
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Health endpoint did not return a JSON object")

        status = data.get("status")
        if status == "healthy":
            metrics.deployment_health = DeploymentHealth.HEALTHY
        else:
            metrics.deployment_health = DeploymentHealth.DEGRADED
            await alerts.create(AlertSeverity.WARNING, service.name, f"API reports degraded health: {status}")

        performance = data.get("performance")
        if isinstance(performance, dict):
            avg_ms = performance.get("avg_response_time_ms")
            if isinstance(avg_ms, (int, float)) and avg_ms > thresholds.response_time_ms:
                await alerts.create(AlertSeverity.WARNING, service.name, f"High average response time: {avg_ms}ms")

            memory = performance.get("memory_usage") or {}
            heap_mb = memory.get("heap_used_mb") if isinstance(memory, dict) else None
            if isinstance(heap_mb, (int, float)) and heap_mb > HEAP_USED_LIMIT_MB:
                await alerts.create(AlertSeverity.WARNING, service.name, f"High memory usage: {heap_mb}MB")
    except Exception as e:
        metrics.deployment_health = DeploymentHealth.UNHEALTHY
        log_service_error(service.name, f"Health check failed: {e}")
