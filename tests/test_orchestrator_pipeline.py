"""Tests for the deployment pipeline driver: phase order, rollback and run records."""

import io
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from questops.errors import DeploymentError, RollbackError
from questops.models import DeployConfig, Environment, LogLevel
from questops.orchestrator import PIPELINE, DeploymentOrchestrator, Phase
from questops.orchestrator.phases import deploy_services, run_post_deployment_tasks
from questops.storage import DeploymentRecordStore


def _recording_handlers(calls, fail_at=None, deployed=("backend", "frontend")):
    """Handlers that record their phase; deploy-services marks services deployed."""

    def make(phase):
        async def handler(ctx):
            calls.append(phase)
            if phase == Phase.DEPLOY_SERVICES:
                for name in deployed:
                    ctx.run.mark_deployed(name, "1.0.0")
            if phase == fail_at:
                raise DeploymentError(f"{phase.value} broke")

        return handler

    return {phase: make(phase) for phase in PIPELINE}


def settings_path(settings):
    return Path(settings.deployments_dir)


def _orchestrator(settings, handlers, deployer=None, environment=Environment.STAGING):
    return DeploymentOrchestrator(
        environment,
        settings=settings,
        config=DeployConfig(environment=environment),
        runner=MagicMock(),
        deployer=deployer or MagicMock(),
        notifiers=[],
        record_store=DeploymentRecordStore(settings.deployments_dir),
        handlers=handlers,
        console=Console(file=io.StringIO()),
    )


def test_pipeline_order():
    assert [p.value for p in PIPELINE] == [
        "validate-environment",
        "pre-deployment-checks",
        "deploy-services",
        "health-checks",
        "smoke-tests",
        "traffic-routing-update",
        "post-deployment-tasks",
    ]
    assert [p.position for p in PIPELINE] == [1, 2, 3, 4, 5, 6, 7]


@pytest.mark.parametrize("phase", list(PIPELINE))
def test_rollback_eligibility_by_position(phase):
    assert phase.rolls_back_on_failure is (phase.position >= 3)


@pytest.mark.asyncio
async def test_successful_run_calls_every_phase_in_order(settings):
    calls = []
    orch = _orchestrator(settings, _recording_handlers(calls))
    await orch.deploy()
    assert calls == list(PIPELINE)
    assert orch.run.phase == "completed"
    assert orch.run.current_step == 7
    assert orch.run.total_steps == 7
    assert any(e.message == "Deployment completed successfully!" for e in orch.run.logs)


@pytest.mark.asyncio
@pytest.mark.parametrize("fail_at", list(PIPELINE))
async def test_failure_stops_pipeline_and_rolls_back_only_after_deploy(settings, fail_at):
    calls = []
    deployer = MagicMock()
    orch = _orchestrator(settings, _recording_handlers(calls, fail_at=fail_at), deployer=deployer)

    with pytest.raises(DeploymentError, match="broke"):
        await orch.deploy()

    assert calls == list(PIPELINE)[: fail_at.position]
    assert deployer.rollback.called is fail_at.rolls_back_on_failure
    step_errors = [e.message for e in orch.run.logs if e.level == LogLevel.ERROR and "broke" in e.message]
    assert step_errors == [
        f"Step {fail_at.position} failed: {fail_at.value} broke",
        f"Deployment failed: {fail_at.value} broke",
    ]


@pytest.mark.asyncio
async def test_rollback_walks_services_in_reverse_and_skips_failed(settings):
    deployer = MagicMock()

    async def deploy_then_fail(ctx):
        ctx.run.mark_deployed("backend", "2.0.0")
        ctx.run.mark_deployed("worker", "1.0.0")
        ctx.run.mark_failed("frontend", "build failed")
        raise DeploymentError("Failed to deploy frontend: build failed")

    handlers = _recording_handlers([])
    handlers[Phase.DEPLOY_SERVICES] = deploy_then_fail
    orch = _orchestrator(settings, handlers, deployer=deployer)

    with pytest.raises(DeploymentError):
        await orch.deploy()

    rolled_back = [c.args[0] for c in deployer.rollback.call_args_list]
    assert rolled_back == ["worker", "backend"]
    assert any(e.message == "Rollback completed successfully" for e in orch.run.logs)


@pytest.mark.asyncio
async def test_rollback_failure_raises_rollback_error(settings):
    deployer = MagicMock()
    deployer.rollback.side_effect = RuntimeError("platform unavailable")
    orch = _orchestrator(settings, _recording_handlers([], fail_at=Phase.HEALTH_CHECKS), deployer=deployer)

    with pytest.raises(RollbackError, match="Manual intervention required"):
        await orch.deploy()

    assert deployer.rollback.call_count == 1
    messages = [e.message for e in orch.run.logs]
    assert "Manual intervention required" in messages
    assert (settings_path(settings) / f"{orch.run.id}-failed.json").is_file()


@pytest.mark.asyncio
async def test_failure_writes_failed_record(settings):
    orch = _orchestrator(settings, _recording_handlers([], fail_at=Phase.SMOKE_TESTS))
    with pytest.raises(DeploymentError):
        await orch.deploy()

    path = settings_path(settings) / f"{orch.run.id}-failed.json"
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["status"] == "failed"
    assert record["id"] == orch.run.id
    assert record["environment"] == "staging"
    assert record["error"] == "smoke-tests broke"
    assert "DeploymentError" in record["stack"]
    assert set(record["services"]) == {"backend", "frontend"}
    assert record["logs"]
    assert not (settings_path(settings) / f"{orch.run.id}.json").exists()


@pytest.mark.asyncio
async def test_success_writes_record_through_post_deployment_tasks(settings):
    handlers = _recording_handlers([])
    handlers[Phase.POST_DEPLOYMENT_TASKS] = run_post_deployment_tasks
    orch = _orchestrator(settings, handlers)
    await orch.deploy()

    path = settings_path(settings) / f"{orch.run.id}.json"
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["status"] == "success"
    assert record["services"]["backend"]["status"] == "deployed"
    assert record["duration_ms"] >= 0


@pytest.mark.asyncio
async def test_deploy_services_records_each_outcome(ctx_factory):
    deployer = MagicMock()
    deployer.resolve_version.return_value = "3.1.4"
    deployer.deploy.side_effect = [None, RuntimeError("npm run build failed")]
    ctx = ctx_factory(deployer=deployer)

    with pytest.raises(DeploymentError, match="Failed to deploy frontend: npm run build failed"):
        await deploy_services(ctx)

    assert ctx.run.services["backend"].status.value == "deployed"
    assert ctx.run.services["backend"].version == "3.1.4"
    assert ctx.run.services["frontend"].status.value == "failed"
    assert ctx.run.services["frontend"].error == "npm run build failed"


@pytest.mark.asyncio
async def test_deploy_services_skips_disabled(ctx_factory):
    config = DeployConfig.model_validate({"services": {"backend": {}, "frontend": {"enabled": False}}})
    deployer = MagicMock()
    deployer.resolve_version.return_value = "1.0.0"
    ctx = ctx_factory(config=config, deployer=deployer)
    await deploy_services(ctx)
    assert [c.args[0] for c in deployer.deploy.call_args_list] == ["backend"]
    assert list(ctx.run.services) == ["backend"]


@pytest.mark.asyncio
async def test_post_deployment_task_failure_is_not_fatal(ctx_factory):
    ctx = ctx_factory()
    ctx.run.mark_deployed("backend", "1.0.0")
    broken = MagicMock()
    broken.notify_deployment.side_effect = RuntimeError("slack down")
    ctx.notifiers = [broken]
    ctx.record_store = MagicMock()
    ctx.record_store.save.side_effect = OSError("disk full")

    await run_post_deployment_tasks(ctx)

    broken.notify_deployment.assert_called_once()
    warnings = [e.message for e in ctx.run.logs if e.level == LogLevel.WARN]
    assert any("create_deployment_record" in m for m in warnings)
