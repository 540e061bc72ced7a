"""CLI entry points for QuestOps."""

import argparse
import asyncio
import logging
import signal
import sys

from questops import __version__
from questops.config import get_settings
from questops.errors import ConfigError
from questops.models import Environment

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = [e.value for e in Environment]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_deploy(environment: str) -> int:
    from questops.orchestrator import DeploymentOrchestrator

    if environment not in VALID_ENVIRONMENTS:
        print(f"Invalid environment: {environment}", file=sys.stderr)
        print(f"Valid environments: {', '.join(VALID_ENVIRONMENTS)}", file=sys.stderr)
        return 1
    orchestrator = DeploymentOrchestrator(Environment(environment))
    try:
        asyncio.run(orchestrator.deploy())
    except Exception as e:
        logger.error("Deployment failed: %s", e)
        return 1
    return 0


def _install_stop_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)


async def _monitor_until_stopped(config_path: str | None) -> None:
    from questops.monitor import ProductionMonitor

    settings = get_settings()
    if config_path:
        settings = settings.model_copy(update={"monitor_config_path": config_path})
    monitor = ProductionMonitor(settings=settings)

    stop_event = asyncio.Event()
    _install_stop_handlers(asyncio.get_running_loop(), stop_event)

    await monitor.start()
    await stop_event.wait()
    logger.info("Shutting down monitor...")
    monitor.stop()


def run_monitor(config_path: str | None = None) -> int:
    try:
        asyncio.run(_monitor_until_stopped(config_path))
    except ConfigError as e:
        logger.error("Invalid monitor configuration: %s", e)
        return 1
    return 0


def run_verify(frontend_url: str | None = None, backend_url: str | None = None) -> int:
    from questops.verification import HealthChecker

    settings = get_settings()
    checker = HealthChecker(
        frontend_url=frontend_url or settings.frontend_url,
        backend_url=backend_url or settings.backend_url,
        api_key=settings.api_key,
    )
    report = checker.run_all_checks()
    for name, ok in report.results.items():
        print(f"{'PASS' if ok else 'FAIL'}  {name}")
    print(f"Results: {report.passed}/{report.total} checks passed")
    return 0 if report.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="QuestOps - deployment orchestrator and production monitor")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    deploy = sub.add_parser("deploy", help="Run the deployment pipeline")
    deploy.add_argument("environment", help=f"Target environment ({', '.join(VALID_ENVIRONMENTS)})")

    monitor = sub.add_parser("monitor", help="Continuously monitor production services")
    monitor.add_argument("--config", default=None, help="Path to a monitor config JSON file")

    verify = sub.add_parser("verify", help="Run the one-shot verification suite")
    verify.add_argument("frontend_url", nargs="?", default=None)
    verify.add_argument("backend_url", nargs="?", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(get_settings().log_level)

    if args.command == "deploy":
        return run_deploy(args.environment)
    if args.command == "monitor":
        return run_monitor(args.config)
    return run_verify(args.frontend_url, args.backend_url)


def deploy_main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Deploy to an environment")
    parser.add_argument("environment", help=f"Target environment ({', '.join(VALID_ENVIRONMENTS)})")
    args = parser.parse_args(argv)
    _configure_logging(get_settings().log_level)
    return run_deploy(args.environment)


def monitor_main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Continuously monitor production services")
    parser.add_argument("--config", default=None, help="Path to a monitor config JSON file")
    args = parser.parse_args(argv)
    _configure_logging(get_settings().log_level)
    return run_monitor(args.config)


if __name__ == "__main__":
    sys.exit(main())
