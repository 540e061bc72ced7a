"""Alert creation: dedup window, bounded history, dispatch and daily persistence."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping

from questops.models import Alert, AlertSeverity, AlertThresholds
from questops.monitor.metrics import ServiceMetrics
from questops.notifications import Notifier
from questops.storage import AlertStore

logger = logging.getLogger(__name__)

DEDUP_WINDOW = timedelta(minutes=5)
MAX_ALERTS = 50

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertManager:
    """
    Owns the alert history.

    An alert with the same (service, message) as one created within DEDUP_WINDOW
    is dropped. Accepted alerts are appended (oldest evicted past MAX_ALERTS),
    sent to every notifier on a worker thread and appended to the day's alert
    log. Dispatch and persistence failures are logged, never raised.
    """

    def __init__(
        self,
        store: AlertStore | None = None,
        notifiers: list[Notifier] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._notifiers = notifiers or []
        self._clock = clock or utc_now
        self._alerts: list[Alert] = []

    @property
    def alerts(self) -> list[Alert]:
        return list(self._alerts)

    def recent(self, count: int = 5) -> list[Alert]:
        return self._alerts[-count:] if count > 0 else []

    def is_duplicate(self, service: str, message: str, now: datetime) -> bool:
        return any(
            a.service == service and a.message == message and now - a.timestamp < DEDUP_WINDOW
            for a in self._alerts
        )

    async def create(self, severity: AlertSeverity, service: str, message: str) -> Alert | None:
        """Record and dispatch an alert; returns None when suppressed as a duplicate."""
        now = self._clock()
        if self.is_duplicate(service, message, now):
            logger.debug("Duplicate alert suppressed", extra={"service": service, "alert_message": message})
            return None

        alert = Alert(severity=severity, service=service, message=message, timestamp=now)
        self._alerts.append(alert)
        if len(self._alerts) > MAX_ALERTS:
            self._alerts.pop(0)
        await self._dispatch(alert)
        self._persist(alert)
        return alert

    async def _dispatch(self, alert: Alert) -> None:
        level = logging.ERROR if alert.severity == AlertSeverity.CRITICAL else logging.WARNING
        logger.log(level, "ALERT: %s", alert.message, extra={"service": alert.service, "severity": alert.severity.value})
        for notifier in self._notifiers:
            try:
                await asyncio.to_thread(notifier.notify_alert, alert)
            except Exception as e:
                logger.warning("Alert notification via %s failed: %s", type(notifier).__name__, e, exc_info=True)

    def _persist(self, alert: Alert) -> None:
        if self._store is None:
            return
        try:
            self._store.append(alert)
        except OSError as e:
            logger.error("Failed to save alert: %s", e, exc_info=True)


async def evaluate_alerts(
    metrics: Mapping[str, ServiceMetrics],
    thresholds: AlertThresholds,
    alerts: AlertManager,
) -> list[Alert]:
    """Compare every service against the thresholds; returns the alerts actually created."""
    created: list[Alert] = []

    async def _raise(severity: AlertSeverity, service: str, message: str) -> None:
        alert = await alerts.create(severity, service, message)
        if alert is not None:
            created.append(alert)

    for name, m in metrics.items():
        avg = m.average_response_time()
        if avg > thresholds.response_time_ms:
            await _raise(
                AlertSeverity.WARNING,
                name,
                f"High response time: {avg}ms (threshold: {thresholds.response_time_ms:g}ms)",
            )

        error_rate = m.error_rate()
        if error_rate > thresholds.error_rate:
            await _raise(
                AlertSeverity.CRITICAL,
                name,
                f"High error rate: {error_rate * 100:.2f}% (threshold: {thresholds.error_rate * 100:g}%)",
            )

        if m.availability < thresholds.availability:
            await _raise(
                AlertSeverity.CRITICAL,
                name,
                f"Low availability: {m.availability * 100:.2f}% (threshold: {thresholds.availability * 100:g}%)",
            )
    return created
