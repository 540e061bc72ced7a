"""
The seven deployment phases, in order.

Each phase is an async function of the PipelineContext that returns normally or
raises. Whether a failure triggers rollback depends only on the phase's position.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Mapping

from questops.errors import DeploymentError
from questops.models import DeploymentStrategy, LogLevel
from questops.orchestrator.checks import run_pre_deployment_checks, validate_environment
from questops.orchestrator.context import PipelineContext
from questops.orchestrator.health import run_health_checks, run_smoke_tests

logger = logging.getLogger(__name__)

PhaseHandler = Callable[[PipelineContext], Awaitable[None]]


class Phase(str, Enum):
    VALIDATE_ENVIRONMENT = "validate-environment"
    PRE_DEPLOYMENT_CHECKS = "pre-deployment-checks"
    DEPLOY_SERVICES = "deploy-services"
    HEALTH_CHECKS = "health-checks"
    SMOKE_TESTS = "smoke-tests"
    TRAFFIC_ROUTING_UPDATE = "traffic-routing-update"
    POST_DEPLOYMENT_TASKS = "post-deployment-tasks"

    @property
    def position(self) -> int:
        """1-based position in the pipeline."""
        return PIPELINE.index(self) + 1

    @property
    def rolls_back_on_failure(self) -> bool:
        """Only phases from deploy-services onward have anything to roll back."""
        return self.position >= Phase.DEPLOY_SERVICES.position


PIPELINE: tuple[Phase, ...] = tuple(Phase)


async def deploy_services(ctx: PipelineContext) -> None:
    """Deploy enabled services in declaration order, recording each outcome for rollback."""
    run = ctx.run
    run.log(LogLevel.INFO, "Deploying services")
    for service_name, service in ctx.config.services.items():
        if not service.enabled:
            run.log(LogLevel.INFO, f"Skipping disabled service: {service_name}")
            continue

        run.log(LogLevel.INFO, f"Deploying service: {service_name}")
        try:
            await asyncio.to_thread(ctx.deployer.deploy, service_name, service, run)
        except Exception as e:
            run.mark_failed(service_name, str(e))
            raise DeploymentError(f"Failed to deploy {service_name}: {e}") from e
        run.mark_deployed(service_name, ctx.deployer.resolve_version(service_name))
        run.log(LogLevel.SUCCESS, f"Service {service_name} deployed successfully")
    run.log(LogLevel.SUCCESS, "All services deployed")


async def update_traffic_routing(ctx: PipelineContext) -> None:
    run = ctx.run
    run.log(LogLevel.INFO, "Updating traffic routing")
    strategy = ctx.config.deployment.strategy
    if strategy == DeploymentStrategy.BLUE_GREEN:
        ctx.router.switch(run)
    else:
        run.log(LogLevel.INFO, f"Using {strategy.value} deployment - traffic routing handled automatically")
    run.log(LogLevel.SUCCESS, "Traffic routing updated")


def clear_caches(ctx: PipelineContext) -> None:
    ctx.run.log(LogLevel.INFO, "Clearing caches")
    ctx.run.log(LogLevel.SUCCESS, "Caches cleared")


def notify_monitoring(ctx: PipelineContext) -> None:
    ctx.run.log(LogLevel.INFO, "Notifying monitoring systems")
    ctx.run.log(LogLevel.SUCCESS, "Monitoring systems notified")


def send_deployment_notifications(ctx: PipelineContext) -> None:
    run = ctx.run
    run.log(LogLevel.INFO, "Sending deployment notifications")
    summary = run.summary(status="success")
    for notifier in ctx.notifiers:
        channel = type(notifier).__name__
        try:
            delivered = notifier.notify_deployment(summary)
        except Exception as e:
            logger.warning("Notifier %s failed: %s", channel, e, exc_info=True)
            delivered = False
        run.log(LogLevel.INFO, f"{channel} notification {'sent' if delivered else 'not delivered'}")
    run.log(LogLevel.SUCCESS, "Deployment notifications sent")


def create_deployment_record(ctx: PipelineContext) -> None:
    run = ctx.run
    run.log(LogLevel.INFO, "Creating deployment record")
    path = ctx.record_store.save(run.to_record(status="success"))
    run.log(LogLevel.SUCCESS, f"Deployment record saved: {path}")


POST_DEPLOYMENT_TASKS: tuple[Callable[[PipelineContext], None], ...] = (
    clear_caches,
    notify_monitoring,
    send_deployment_notifications,
    create_deployment_record,
)


async def run_post_deployment_tasks(ctx: PipelineContext) -> None:
    """Best-effort tasks: a failing task is logged and the rest still run."""
    run = ctx.run
    run.log(LogLevel.INFO, "Running post-deployment tasks")
    for task in POST_DEPLOYMENT_TASKS:
        try:
            task(ctx)
        except Exception as e:
            logger.warning("Post-deployment task %s failed: %s", task.__name__, e, exc_info=True)
            run.log(LogLevel.WARN, f"Post-deployment task {task.__name__} failed: {e}")
    run.log(LogLevel.SUCCESS, "Post-deployment tasks completed")


PHASE_HANDLERS: Mapping[Phase, PhaseHandler] = {
    Phase.VALIDATE_ENVIRONMENT: validate_environment,
    Phase.PRE_DEPLOYMENT_CHECKS: run_pre_deployment_checks,
    Phase.DEPLOY_SERVICES: deploy_services,
    Phase.HEALTH_CHECKS: run_health_checks,
    Phase.SMOKE_TESTS: run_smoke_tests,
    Phase.TRAFFIC_ROUTING_UPDATE: update_traffic_routing,
    Phase.POST_DEPLOYMENT_TASKS: run_post_deployment_tasks,
}
