"""Tests for the platform CLI deployer, run state and shell runner."""

import sys
from unittest.mock import MagicMock

import pytest

from questops.errors import CommandError, DeploymentError
from questops.models import Environment, LogLevel, ServiceConfig, ServiceType
from questops.orchestrator.deployers import CliPlatformDeployer, SimulatedTrafficRouter
from questops.orchestrator.run import DeploymentRun, new_deployment_id
from questops.orchestrator.shell import LocalCommandRunner
from questops.orchestrator.urls import StaticServiceUrlResolver

API = ServiceConfig(type=ServiceType.API, health_check_path="/health")
WEB = ServiceConfig(type=ServiceType.WEB)


def _runner(fail_on: str | None = None) -> MagicMock:
    def run(command, cwd=None, env=None, timeout=None):
        if fail_on and command == fail_on:
            raise CommandError(command, 1, "failed")
        return ""

    runner = MagicMock()
    runner.run.side_effect = run
    return runner


def _commands(runner):
    return [c.args[0] for c in runner.run.call_args_list]


def test_api_production_recipe(project_root):
    runner = _runner()
    run = DeploymentRun(Environment.PRODUCTION)
    CliPlatformDeployer(runner, project_root).deploy("backend", API, run)
    assert _commands(runner) == ["npm ci --production", "npm test", "railway up"]
    assert runner.run.call_args_list[0].kwargs["cwd"] == project_root / "backend"


def test_web_production_recipe(project_root):
    runner = _runner()
    run = DeploymentRun(Environment.PRODUCTION)
    CliPlatformDeployer(runner, project_root).deploy("frontend", WEB, run)
    assert _commands(runner) == ["npm ci", "npm test", "npm run build", "netlify deploy --prod --dir=dist"]


def test_staging_does_not_publish(project_root):
    runner = _runner()
    run = DeploymentRun(Environment.STAGING)
    deployer = CliPlatformDeployer(runner, project_root)
    deployer.deploy("backend", API, run)
    deployer.deploy("frontend", WEB, run)
    assert "railway up" not in _commands(runner)
    assert "netlify deploy --prod --dir=dist" not in _commands(runner)


def test_failing_tests_block_production(project_root):
    run = DeploymentRun(Environment.PRODUCTION)
    deployer = CliPlatformDeployer(_runner(fail_on="npm test"), project_root)
    with pytest.raises(DeploymentError, match="backend tests failed - cannot deploy to production"):
        deployer.deploy("backend", API, run)


def test_failing_tests_only_warn_on_staging(project_root):
    runner = _runner(fail_on="npm test")
    run = DeploymentRun(Environment.STAGING)
    CliPlatformDeployer(runner, project_root).deploy("frontend", WEB, run)
    assert "npm run build" in _commands(runner)
    assert any(e.level == LogLevel.WARN and "tests failed" in e.message for e in run.logs)


def test_failed_build_is_fatal(project_root):
    run = DeploymentRun(Environment.STAGING)
    deployer = CliPlatformDeployer(_runner(fail_on="npm run build"), project_root)
    with pytest.raises(CommandError):
        deployer.deploy("frontend", WEB, run)


def test_failed_publish_is_a_warning(project_root):
    run = DeploymentRun(Environment.PRODUCTION)
    CliPlatformDeployer(_runner(fail_on="railway up"), project_root).deploy("backend", API, run)
    assert any(e.level == LogLevel.WARN and "Railway deployment failed" in e.message for e in run.logs)


def test_resolve_version(project_root):
    deployer = CliPlatformDeployer(MagicMock(), project_root)
    assert deployer.resolve_version("backend") == "2.3.1"
    assert deployer.resolve_version("missing") == "unknown"


def test_rollback_and_switch_are_logged(project_root):
    run = DeploymentRun(Environment.PRODUCTION)
    run.mark_deployed("backend", "2.3.1")
    CliPlatformDeployer(MagicMock(), project_root).rollback("backend", run.services["backend"], run)
    SimulatedTrafficRouter().switch(run)
    messages = [e.message for e in run.logs]
    assert "Service backend rolled back" in messages
    assert "Blue-green switch completed" in messages


def test_deployment_id_format():
    deployment_id = new_deployment_id()
    prefix, millis, suffix = deployment_id.split("-")
    assert prefix == "deploy"
    assert millis.isdigit()
    assert len(suffix) == 8
    assert new_deployment_id() != deployment_id


def test_run_log_is_append_only_and_tagged():
    run = DeploymentRun(Environment.STAGING, deployment_id="deploy-1-abc")
    run.log(LogLevel.INFO, "one")
    run.log(LogLevel.SUCCESS, "two", {"k": 1})
    assert [e.message for e in run.logs] == ["one", "two"]
    assert all(e.deployment_id == "deploy-1-abc" for e in run.logs)
    assert run.logs[1].data == {"k": 1}
    assert not run.is_production


def test_static_url_resolver_fallback():
    resolver = StaticServiceUrlResolver()
    assert resolver.resolve(Environment.PRODUCTION, "backend", API) == "https://quest-api.railway.app"
    assert (
        resolver.resolve(Environment.STAGING, "frontend", WEB) == "https://quest-frontend-staging.netlify.app"
    )
    assert resolver.resolve(Environment.STAGING, "worker", ServiceConfig(port=4000)) == "http://localhost:4000"


def test_local_runner_returns_stdout_and_raises_on_failure(tmp_path):
    runner = LocalCommandRunner(tmp_path)
    out = runner.run(f'"{sys.executable}" -c "print(42)"')
    assert out.strip() == "42"
    with pytest.raises(CommandError) as exc_info:
        runner.run(f'"{sys.executable}" -c "import sys; sys.exit(3)"')
    assert exc_info.value.returncode == 3
