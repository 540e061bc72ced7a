"""
Deployment pipeline driver.

  validate → pre-checks → deploy services → health checks → smoke tests
    → traffic routing → post-deployment tasks

A failure at or after deploy-services rolls back the services deployed so far,
in reverse order. Every run ends with a persisted deployment record.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from pathlib import Path
from typing import Mapping

import httpx
from rich.console import Console
from rich.panel import Panel

from questops.config import Settings, get_settings, load_deploy_config, resolve_path
from questops.errors import RollbackError
from questops.models import DeployConfig, Environment, LogLevel, ServiceDeployStatus
from questops.notifications import Notifier, build_notifiers
from questops.orchestrator.context import PipelineContext
from questops.orchestrator.deployers import (
    CliPlatformDeployer,
    PlatformDeployer,
    SimulatedTrafficRouter,
    TrafficRouter,
)
from questops.orchestrator.phases import PHASE_HANDLERS, PIPELINE, Phase, PhaseHandler
from questops.orchestrator.run import DeploymentRun
from questops.orchestrator.shell import CommandRunner, LocalCommandRunner
from questops.orchestrator.urls import ServiceUrlResolver, StaticServiceUrlResolver
from questops.storage import DeploymentRecordStore

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    """
    Runs the seven-phase pipeline for one environment.

    All collaborators are optional: by default the project described by Settings
    is deployed with the local shell, the platform CLIs and the static URL table.
    """

    def __init__(
        self,
        environment: Environment,
        settings: Settings | None = None,
        config: DeployConfig | None = None,
        runner: CommandRunner | None = None,
        deployer: PlatformDeployer | None = None,
        resolver: ServiceUrlResolver | None = None,
        router: TrafficRouter | None = None,
        notifiers: list[Notifier] | None = None,
        record_store: DeploymentRecordStore | None = None,
        handlers: Mapping[Phase, PhaseHandler] | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        console: Console | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.run = DeploymentRun(environment)
        self.console = console or Console()
        if config is None:
            config = load_deploy_config(environment, resolve_path(self.settings, self.settings.config_dir))
        runner = runner or LocalCommandRunner(self.settings.project_root)
        self.ctx = PipelineContext(
            run=self.run,
            config=config,
            settings=self.settings,
            runner=runner,
            deployer=deployer or CliPlatformDeployer(runner, self.settings.project_root),
            resolver=resolver or StaticServiceUrlResolver(),
            router=router or SimulatedTrafficRouter(),
            record_store=record_store
            or DeploymentRecordStore(resolve_path(self.settings, self.settings.deployments_dir)),
            notifiers=notifiers if notifiers is not None else build_notifiers(self.settings, config.notifications),
            http_transport=http_transport,
        )
        self._handlers = dict(handlers) if handlers is not None else dict(PHASE_HANDLERS)

        self.console.print(f"[bold blue]Deployment Orchestrator[/]  id={self.run.id}  environment={environment.value}")

    @property
    def environment(self) -> Environment:
        return self.run.environment

    async def deploy(self) -> None:
        """Run the pipeline; on failure, record it and re-raise."""
        run = self.run
        try:
            run.phase = "started"
            run.log(LogLevel.INFO, f"Starting deployment to {run.environment.value}")
            run.total_steps = len(PIPELINE)

            for phase in PIPELINE:
                run.current_step = phase.position
                run.phase = phase.value
                run.log(LogLevel.INFO, f"Step {phase.position}/{run.total_steps}: {phase.value}")
                try:
                    await self._handlers[phase](self.ctx)
                except Exception as e:
                    run.log(LogLevel.ERROR, f"Step {phase.position} failed: {e}")
                    await self._handle_failure(e, phase)
                    raise
                run.log(LogLevel.SUCCESS, f"Step {phase.position} completed successfully")

            run.phase = "completed"
            self._deployment_success()
        except Exception as e:
            self._deployment_failure(e)
            raise

    async def _handle_failure(self, error: Exception, phase: Phase) -> None:
        if phase.rolls_back_on_failure:
            await self.rollback()

    async def rollback(self) -> None:
        """
        Roll back deployed services in reverse deployment order.

        Services whose deploy failed are skipped. If a rollback step raises, the
        run needs a human: RollbackError is raised and nothing further is attempted.
        """
        run = self.run
        run.log(LogLevel.WARN, "Initiating rollback procedure")
        try:
            for service_name in reversed(list(run.services)):
                record = run.services[service_name]
                if record.status != ServiceDeployStatus.DEPLOYED:
                    continue
                run.log(LogLevel.INFO, f"Rolling back service: {service_name}")
                await asyncio.to_thread(self.ctx.deployer.rollback, service_name, record, run)
        except Exception as e:
            run.log(LogLevel.ERROR, f"Rollback failed: {e}")
            run.log(LogLevel.ERROR, "Manual intervention required")
            raise RollbackError() from e
        run.log(LogLevel.SUCCESS, "Rollback completed successfully")

    def _deployment_success(self) -> None:
        run = self.run
        duration_s = round(run.duration_ms() / 1000)
        run.log(LogLevel.SUCCESS, "Deployment completed successfully!")
        run.log(LogLevel.INFO, f"Total duration: {duration_s}s")

        lines = [
            f"Deployment ID: {run.id}",
            f"Environment: {run.environment.value}",
            f"Duration: {duration_s}s",
            "",
            "Service URLs:",
        ]
        lines += [f"  {name}: {self.ctx.service_url(name)}" for name in run.services]
        lines += [
            "",
            "Next steps:",
            "  • Monitor application performance",
            "  • Run integration tests",
            "  • Update documentation",
        ]
        self.console.print(Panel("\n".join(lines), title="DEPLOYMENT SUCCESSFUL", border_style="green"))

    def _deployment_failure(self, error: Exception) -> Path | None:
        run = self.run
        run.log(LogLevel.ERROR, f"Deployment failed: {error}")
        run.log(LogLevel.INFO, f"Duration before failure: {round(run.duration_ms() / 1000)}s")
        self.console.print(
            Panel(
                f"Error: {error}\nDeployment ID: {run.id}",
                title="DEPLOYMENT FAILED",
                border_style="red",
            )
        )
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        try:
            path = self.ctx.record_store.save(run.to_record(status="failed", error=error, stack=stack))
        except OSError as e:
            logger.error("Could not save failure record: %s", e, exc_info=True)
            return None
        run.log(LogLevel.INFO, f"Failure record saved: {path}")
        return path
