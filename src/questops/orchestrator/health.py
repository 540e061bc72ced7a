"""Post-deployment verification: per-service health checks with retries, and smoke tests."""

from __future__ import annotations

import asyncio
import logging

import httpx

from questops.errors import DeploymentError
from questops.models import LogLevel, ServiceConfig, ServiceType
from questops.orchestrator.context import PipelineContext

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 10.0
SMOKE_TEST_TIMEOUT = 15.0


async def health_check_service(ctx: PipelineContext, service_name: str, service: ServiceConfig) -> None:
    """
    One health-check attempt: GET {url}{healthCheckPath}.

    Raises DeploymentError on a non-2xx status. API services must also answer
    with a JSON body whose status is "healthy".
    """
    endpoint = f"{ctx.service_url(service_name)}{service.health_check_path}"
    ctx.run.log(LogLevel.DEBUG, f"Checking health: {endpoint}")

    async with ctx.http_client(timeout=HEALTH_CHECK_TIMEOUT) as client:
        try:
            response = await client.get(endpoint)
        except httpx.HTTPError as e:
            raise DeploymentError(f"Health check request failed: {e}") from e

    if not response.is_success:
        raise DeploymentError(f"Health check returned {response.status_code}")

    if service.type == ServiceType.API:
        try:
            data = response.json()
        except ValueError as e:
            raise DeploymentError("Health endpoint did not return JSON") from e
        status = data.get("status") if isinstance(data, dict) else None
        if status != "healthy":
            raise DeploymentError(f"Backend reports unhealthy status: {status}")


async def run_health_checks(ctx: PipelineContext) -> None:
    """Health-check every service recorded in the deploy phase, retrying with a fixed delay."""
    run = ctx.run
    run.log(LogLevel.INFO, "Running health checks")
    max_attempts = ctx.config.deployment.health_check_retries
    interval = ctx.config.deployment.health_check_interval_seconds

    for service_name in list(run.services):
        service = ctx.config.services.get(service_name)
        if service is None or not service.enabled:
            continue

        run.log(LogLevel.INFO, f"Health checking service: {service_name}")
        for attempt in range(1, max_attempts + 1):
            try:
                await health_check_service(ctx, service_name, service)
                run.log(LogLevel.SUCCESS, f"Health check passed for {service_name}")
                break
            except DeploymentError as e:
                run.log(
                    LogLevel.WARN,
                    f"Health check attempt {attempt}/{max_attempts} failed for {service_name}: {e}",
                )
                if attempt == max_attempts:
                    raise DeploymentError(
                        f"Health check failed for {service_name} after {max_attempts} attempts"
                    ) from e
                await asyncio.sleep(interval)

    run.log(LogLevel.SUCCESS, "All health checks passed")


def _smoke_endpoints(ctx: PipelineContext) -> list[str]:
    """Critical API paths of every API service, then the base URL of every web service."""
    api_key = ctx.settings.api_key
    endpoints: list[str] = []
    for name, service in ctx.enabled_services():
        if service.type == ServiceType.API:
            base = ctx.service_url(name)
            endpoints.append(f"{base}/api/status")
            endpoints.append(f"{base}/api/quests?api_key={api_key}")
    for name, service in ctx.enabled_services():
        if service.type == ServiceType.WEB:
            endpoints.append(ctx.service_url(name))
    return endpoints


async def run_smoke_tests(ctx: PipelineContext) -> None:
    run = ctx.run
    run.log(LogLevel.INFO, "Running smoke tests")
    async with ctx.http_client(timeout=SMOKE_TEST_TIMEOUT) as client:
        for endpoint in _smoke_endpoints(ctx):
            try:
                response = await client.get(endpoint)
            except httpx.HTTPError as e:
                raise DeploymentError(f"Smoke test failed for {endpoint}: {e}") from e
            if not response.is_success:
                raise DeploymentError(
                    f"Smoke test failed for {endpoint}: Endpoint returned {response.status_code}"
                )
            run.log(LogLevel.SUCCESS, f"Smoke test passed: {endpoint}")
    run.log(LogLevel.SUCCESS, "Smoke tests passed")
