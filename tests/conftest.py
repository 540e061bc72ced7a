"""Shared fixtures: a Quest Tracker project on disk and a pipeline context wired to fakes."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from questops.config import Settings
from questops.models import DeployConfig, Environment
from questops.orchestrator.context import PipelineContext
from questops.orchestrator.run import DeploymentRun
from questops.storage import DeploymentRecordStore


def write_project(root: Path, backend_deps: dict | None = None) -> Path:
    """Minimal project layout: package.json at the root plus backend/ and frontend/."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "package.json").write_text(json.dumps({"name": "quest-tracker"}), encoding="utf-8")
    for name, deps, version in (
        ("backend", backend_deps or {"express": "^4.18.0"}, "2.3.1"),
        ("frontend", {}, "1.4.0"),
    ):
        (root / name).mkdir(parents=True, exist_ok=True)
        (root / name / "package.json").write_text(
            json.dumps({"name": name, "version": version, "dependencies": deps}),
            encoding="utf-8",
        )
    return root


@pytest.fixture
def project_root(tmp_path):
    return write_project(tmp_path / "project")


@pytest.fixture
def settings(project_root, tmp_path):
    return Settings(
        project_root=str(project_root),
        deployments_dir=str(tmp_path / "deployments"),
        alerts_dir=str(tmp_path / "alerts"),
        reports_dir=str(tmp_path / "reports"),
        perf_test_startup_seconds=0,
        api_key="demo_key_12345",
    )


def make_ctx(
    settings: Settings,
    environment: Environment = Environment.STAGING,
    config: DeployConfig | None = None,
    handler=None,
    runner=None,
    deployer=None,
) -> PipelineContext:
    """Context with a mocked runner/deployer and HTTP answered by `handler`."""
    return PipelineContext(
        run=DeploymentRun(environment, deployment_id="deploy-test"),
        config=config or DeployConfig(environment=environment),
        settings=settings,
        runner=runner or MagicMock(),
        deployer=deployer or MagicMock(),
        resolver=MagicMock(resolve=lambda env, name, svc: f"http://{name}.test"),
        router=MagicMock(),
        record_store=DeploymentRecordStore(settings.deployments_dir),
        notifiers=[],
        http_transport=httpx.MockTransport(handler) if handler else None,
    )


@pytest.fixture
def ctx_factory(settings):
    def factory(**kwargs):
        return make_ctx(settings, **kwargs)

    return factory
