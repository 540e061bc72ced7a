"""Production monitor: polls services, tracks metrics, raises alerts, renders the dashboard."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from rich.console import Console

from questops.config import Settings, get_settings, load_monitor_config, resolve_path
from questops.models import AlertThresholds, HealthSummary, MonitorConfig
from questops.monitor.alerts import AlertManager, Clock, evaluate_alerts, utc_now
from questops.monitor.checks import check_service_health
from questops.monitor.dashboard import MonitorSnapshot, render_dashboard
from questops.monitor.metrics import ServiceMetrics, calculate_overall_health
from questops.notifications import Notifier, build_notifiers
from questops.storage import AlertStore, ReportStore

logger = logging.getLogger(__name__)

DASHBOARD_REFRESH_SECONDS = 10
REPORT_ALERT_COUNT = 10
USER_AGENT = "production-monitor/1.0"


class ProductionMonitor:
    """
    Polls every configured service on an interval.

    start() runs one round immediately, then schedules two independent jobs: a
    poll round (checks, report, threshold alerts) every monitoring interval and a
    dashboard refresh every 10 s. stop() cancels the jobs; requests already in
    flight are not cancelled.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        settings: Settings | None = None,
        notifiers: list[Notifier] | None = None,
        alert_store: AlertStore | None = None,
        report_store: ReportStore | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock | None = None,
        console: Console | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        if config is None:
            config = load_monitor_config(self.settings.monitor_config_path or None)
        self.config = config
        self._clock = clock or utc_now
        self._http_transport = http_transport
        self.console = console or Console()

        if notifiers is None:
            notifiers = build_notifiers(self.settings, config.notifications)
        self.alerts = AlertManager(
            store=alert_store or AlertStore(resolve_path(self.settings, self.settings.alerts_dir)),
            notifiers=notifiers,
            clock=self._clock,
        )
        self.report_store = report_store or ReportStore(resolve_path(self.settings, self.settings.reports_dir))
        self.metrics: dict[str, ServiceMetrics] = {s.name: ServiceMetrics() for s in config.services}
        self.started_at = self._clock()
        self.is_monitoring = False
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def thresholds(self) -> AlertThresholds:
        return self.config.monitoring.alert_thresholds

    async def run_health_checks(self) -> None:
        """Check all services concurrently; one service's failure never affects another's metrics."""
        async with httpx.AsyncClient(
            transport=self._http_transport,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        ) as client:
            results = await asyncio.gather(
                *(
                    check_service_health(
                        client,
                        service,
                        self.metrics[service.name],
                        self.alerts,
                        self.thresholds,
                        self._clock,
                    )
                    for service in self.config.services
                ),
                return_exceptions=True,
            )
        for service, result in zip(self.config.services, results):
            if isinstance(result, BaseException):
                logger.error("Health check for %s crashed: %s", service.name, result, exc_info=result)

    async def check_alerts(self) -> None:
        await evaluate_alerts(self.metrics, self.thresholds, self.alerts)

    def overall_health(self) -> HealthSummary:
        return calculate_overall_health(self.metrics, self.thresholds)

    def snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            taken_at=self._clock(),
            started_at=self.started_at,
            services=list(self.config.services),
            metrics={name: m.model_copy(deep=True) for name, m in self.metrics.items()},
            alerts=self.alerts.alerts,
            health=self.overall_health(),
            thresholds=self.thresholds,
        )

    def build_report(self) -> dict[str, Any]:
        snap = self.snapshot()
        return {
            "timestamp": snap.taken_at.isoformat(),
            "overall_health": snap.health.model_dump(mode="json"),
            "services": {
                name: {
                    **m.model_dump(mode="json"),
                    "average_response_time": m.average_response_time(),
                    "p95_response_time": m.p95_response_time(),
                }
                for name, m in snap.metrics.items()
            },
            "alerts": [a.model_dump(mode="json") for a in snap.alerts[-REPORT_ALERT_COUNT:]],
        }

    def generate_report(self) -> dict[str, Any]:
        """Build the report and overwrite today's report file; a write failure is only logged."""
        report = self.build_report()
        try:
            self.report_store.save(report, self._clock())
        except OSError as e:
            logger.error("Failed to save report: %s", e, exc_info=True)
        return report

    async def poll_round(self) -> None:
        await self.run_health_checks()
        self.generate_report()
        await self.check_alerts()

    def display_dashboard(self) -> None:
        self.console.clear()
        self.console.print(render_dashboard(self.snapshot()))

    async def start(self) -> None:
        if self.is_monitoring:
            logger.warning("Monitor already running")
            return
        self.is_monitoring = True
        logger.info("Starting continuous monitoring...")

        await self.run_health_checks()

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.poll_round,
            trigger=IntervalTrigger(seconds=self.config.monitoring.interval_seconds),
            id="poll_round",
            name="Service health poll",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.display_dashboard,
            trigger=IntervalTrigger(seconds=DASHBOARD_REFRESH_SECONDS),
            id="dashboard_refresh",
            name="Dashboard refresh",
            replace_existing=True,
        )
        self.display_dashboard()
        self._scheduler.start()
        logger.info("Monitoring started successfully")

    def stop(self) -> None:
        """Cancel both timers. In-flight requests finish on their own (best-effort shutdown)."""
        self.is_monitoring = False
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        logger.info("Monitoring stopped")
