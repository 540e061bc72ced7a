"""Everything a pipeline phase needs, passed explicitly to each phase."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import httpx

from questops.config import Settings
from questops.models import DeployConfig, ServiceConfig
from questops.notifications import Notifier
from questops.orchestrator.deployers import PlatformDeployer, TrafficRouter
from questops.orchestrator.run import DeploymentRun
from questops.orchestrator.shell import CommandRunner
from questops.orchestrator.urls import ServiceUrlResolver
from questops.storage import DeploymentRecordStore


@dataclass
class PipelineContext:
    run: DeploymentRun
    config: DeployConfig
    settings: Settings
    runner: CommandRunner
    deployer: PlatformDeployer
    resolver: ServiceUrlResolver
    router: TrafficRouter
    record_store: DeploymentRecordStore
    notifiers: list[Notifier] = field(default_factory=list)
    # Tests inject httpx.MockTransport here
    http_transport: httpx.AsyncBaseTransport | None = None

    @property
    def project_root(self) -> Path:
        return Path(self.settings.project_root)

    def enabled_services(self) -> list[tuple[str, ServiceConfig]]:
        """Enabled services in declaration order."""
        return [(name, svc) for name, svc in self.config.services.items() if svc.enabled]

    def service_url(self, service_name: str) -> str:
        service = self.config.services.get(service_name) or ServiceConfig()
        return self.resolver.resolve(self.run.environment, service_name, service)

    def http_client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            transport=self.http_transport,
            headers={"User-Agent": f"deployment-orchestrator/{self.run.id}"},
            follow_redirects=True,
        )
