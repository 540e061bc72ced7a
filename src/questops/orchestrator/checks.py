"""Environment validation and pre-deployment checks."""

from __future__ import annotations

import asyncio
import json
import logging
import time

import httpx

from questops.errors import CommandError, DeploymentError
from questops.models import LogLevel, ServiceType
from questops.orchestrator.context import PipelineContext
from questops.orchestrator.shell import stop_process

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("node", "npm", "git")
# Known-malicious or broken packages; their presence blocks any deployment.
DENYLISTED_PACKAGES = ("left-pad", "event-stream")

SLOW_RESPONSE_MS = 1000
CONCURRENT_REQUESTS = 10
PERF_REQUEST_TIMEOUT = 10.0


async def validate_environment(ctx: PipelineContext) -> None:
    run = ctx.run
    run.log(LogLevel.INFO, "Validating deployment environment")

    for tool in REQUIRED_TOOLS:
        try:
            await asyncio.to_thread(ctx.runner.run, f"{tool} --version")
        except CommandError as e:
            raise DeploymentError(f"Required tool '{tool}' is not available") from e
        run.log(LogLevel.SUCCESS, f"{tool} is available")

    required_files = ["package.json"] + [f"{name}/package.json" for name, _ in ctx.enabled_services()]
    for rel in required_files:
        if not (ctx.project_root / rel).is_file():
            raise DeploymentError(f"Required file '{rel}' not found")

    try:
        status = await asyncio.to_thread(ctx.runner.run, "git status --porcelain", cwd=ctx.project_root)
        if status.strip() and run.is_production:
            run.log(LogLevel.WARN, "Uncommitted changes detected in production deployment")
    except CommandError:
        run.log(LogLevel.WARN, "Could not check git status")

    run.log(LogLevel.SUCCESS, "Environment validation completed")


async def run_pre_deployment_checks(ctx: PipelineContext) -> None:
    ctx.run.log(LogLevel.INFO, "Running pre-deployment checks")
    await run_security_audit(ctx)
    await analyze_dependencies(ctx)
    await run_performance_tests(ctx)
    await run_database_migrations(ctx)
    ctx.run.log(LogLevel.SUCCESS, "Pre-deployment checks completed")


async def run_security_audit(ctx: PipelineContext) -> None:
    """npm audit per service: fatal in production, a warning on staging."""
    run = ctx.run
    run.log(LogLevel.INFO, "Running security audit")
    try:
        for name, _ in ctx.enabled_services():
            run.log(LogLevel.INFO, f"Auditing {name} dependencies")
            await asyncio.to_thread(ctx.runner.run, "npm audit --audit-level=high", cwd=ctx.project_root / name)
    except CommandError as e:
        if run.is_production:
            raise DeploymentError("Security vulnerabilities found - cannot deploy to production") from e
        run.log(LogLevel.WARN, "Security audit found issues, but continuing with staging deployment")
        return
    run.log(LogLevel.SUCCESS, "Security audit passed")


def _read_dependencies(ctx: PipelineContext, service_name: str) -> list[str]:
    path = ctx.project_root / service_name / "package.json"
    try:
        package = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise DeploymentError(f"Could not read {service_name}/package.json: {e}") from e
    return list((package.get("dependencies") or {}).keys())


async def analyze_dependencies(ctx: PipelineContext) -> None:
    """Count dependencies per service and refuse any denylisted package, in every environment."""
    run = ctx.run
    run.log(LogLevel.INFO, "Analyzing dependencies")
    all_deps: set[str] = set()
    for name, _ in ctx.enabled_services():
        deps = _read_dependencies(ctx, name)
        run.log(LogLevel.INFO, f"{name} dependencies: {len(deps)}")
        all_deps.update(deps)

    for pkg in DENYLISTED_PACKAGES:
        if pkg in all_deps:
            raise DeploymentError(f"Problematic package detected: {pkg}")
    run.log(LogLevel.SUCCESS, "Dependency analysis completed")


async def run_performance_tests(ctx: PipelineContext) -> None:
    """
    Start the API service on a scratch port and load-test it.

    A single /health request slower than 1 s is only a warning; ten concurrent
    requests against the quest list must all succeed.
    """
    run = ctx.run
    settings = ctx.settings
    api_services = [name for name, svc in ctx.enabled_services() if svc.type == ServiceType.API]
    if not api_services:
        run.log(LogLevel.INFO, "No API service enabled; skipping performance tests")
        return

    run.log(LogLevel.INFO, "Running performance tests")
    port = settings.perf_test_port
    base_url = f"http://localhost:{port}"
    process = ctx.runner.start(
        settings.backend_start_command,
        cwd=ctx.project_root,
        env={"NODE_ENV": "test", "PORT": str(port)},
    )
    try:
        await asyncio.sleep(settings.perf_test_startup_seconds)
        async with ctx.http_client(timeout=PERF_REQUEST_TIMEOUT) as client:
            start = time.monotonic()
            try:
                response = await client.get(f"{base_url}/health")
            except httpx.HTTPError as e:
                raise DeploymentError(f"Health check failed: {e}") from e
            response_ms = int((time.monotonic() - start) * 1000)
            if not response.is_success:
                raise DeploymentError("Health check failed")
            if response_ms > SLOW_RESPONSE_MS:
                run.log(LogLevel.WARN, f"Slow response time: {response_ms}ms")
            else:
                run.log(LogLevel.SUCCESS, f"Response time: {response_ms}ms")

            sample_url = f"{base_url}/api/quests?api_key={settings.api_key}"
            results = await asyncio.gather(
                *(client.get(sample_url) for _ in range(CONCURRENT_REQUESTS)),
                return_exceptions=True,
            )
            if not all(isinstance(r, httpx.Response) and r.is_success for r in results):
                raise DeploymentError("Concurrent request test failed")
        run.log(LogLevel.SUCCESS, "Performance tests passed")
    finally:
        await asyncio.to_thread(stop_process, process)


async def run_database_migrations(ctx: PipelineContext) -> None:
    """Placeholder: the Quest Tracker keeps its data in memory, so there is nothing to migrate."""
    run = ctx.run
    run.log(LogLevel.INFO, "Checking database migrations")
    if run.is_production:
        run.log(LogLevel.INFO, "Production database migration check required")
    run.log(LogLevel.SUCCESS, "Database migrations completed")
