"""Rich-based text dashboard: a pure projection of a monitor snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from rich.console import Group, RenderableType
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from questops.models import Alert, AlertThresholds, HealthSummary, MonitoredService
from questops.monitor.metrics import ServiceMetrics

_STATUS_STYLE = {"healthy": "green", "unhealthy": "red", "unknown": "bright_black"}
_SEVERITY_STYLE = {"critical": "red", "warning": "yellow", "info": "blue"}
_HEALTH_STYLE = {"healthy": "green", "degraded": "yellow", "critical": "red"}


@dataclass(frozen=True)
class MonitorSnapshot:
    """Copy of monitor state at one instant; rendering never touches live metrics."""

    taken_at: datetime
    started_at: datetime
    services: list[MonitoredService]
    metrics: dict[str, ServiceMetrics]
    alerts: list[Alert]
    health: HealthSummary
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    minutes, hours = seconds // 60, seconds // 3600
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_time_ago(ts: datetime, now: datetime) -> str:
    minutes = int((now - ts).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def format_response_time(ms: int) -> Text:
    style = "green" if ms < 100 else "yellow" if ms < 500 else "red"
    return Text(f"{ms}ms", style=style)


def format_error_rate(percent: float) -> Text:
    style = "green" if percent < 1 else "yellow" if percent < 5 else "red"
    return Text(f"{percent:.2f}%", style=style)


def _status_table(snapshot: MonitorSnapshot) -> Table:
    table = Table(title="SERVICE STATUS", title_justify="left", expand=True)
    table.add_column("Status")
    table.add_column("Service")
    table.add_column("Avg response", justify="right")
    table.add_column("Availability", justify="right")
    table.add_column("Requests", justify="right")
    for service in snapshot.services:
        m = snapshot.metrics[service.name]
        table.add_row(
            Text(m.status.value, style=_STATUS_STYLE.get(m.status.value, "white")),
            service.name,
            f"{m.average_response_time()}ms",
            f"{m.availability * 100:.2f}%",
            str(m.total_requests),
        )
    return table


def _performance_table(snapshot: MonitorSnapshot) -> Table:
    table = Table(title="PERFORMANCE METRICS", title_justify="left", expand=True)
    table.add_column("Service")
    table.add_column("Average", justify="right")
    table.add_column("95th percentile", justify="right")
    table.add_column("Error rate", justify="right")
    table.add_column("API health")
    table.add_column("Last check")
    for service in snapshot.services:
        m = snapshot.metrics[service.name]
        last_check = m.last_check.astimezone().strftime("%H:%M:%S") if m.last_check else "Never"
        table.add_row(
            service.name,
            format_response_time(m.average_response_time()),
            format_response_time(m.p95_response_time()),
            format_error_rate(m.error_rate() * 100),
            m.deployment_health.value,
            last_check,
        )
    return table


def _alerts_section(snapshot: MonitorSnapshot) -> RenderableType:
    recent = snapshot.alerts[-5:]
    if not recent:
        return Text("No active alerts", style="green")
    lines = []
    for alert in recent:
        line = Text()
        line.append(f"{alert.severity.value.upper():<8} ", style=_SEVERITY_STYLE.get(alert.severity.value, "white"))
        line.append(f"{alert.service:<12} ")
        line.append(f"{alert.message} ({format_time_ago(alert.timestamp, snapshot.taken_at)})")
        lines.append(line)
    return Group(*lines)


def _summary_section(snapshot: MonitorSnapshot) -> RenderableType:
    health = snapshot.health
    status = Text("Overall System Health: ")
    status.append(health.status.value.upper(), style=f"bold {_HEALTH_STYLE[health.status.value]}")
    return Group(
        status,
        Text(f"Services Online: {health.services_online}/{health.service_count}"),
        Text(f"Average Availability: {health.avg_availability:.2f}%"),
        Text(f"Total Requests: {health.total_requests}"),
        Text(f"Total Errors: {health.total_errors}"),
    )


def render_dashboard(snapshot: MonitorSnapshot) -> RenderableType:
    """Build the dashboard for a snapshot; has no side effects."""
    uptime = (snapshot.taken_at - snapshot.started_at).total_seconds()
    return Group(
        Text("PRODUCTION MONITORING DASHBOARD", style="bold blue"),
        Text(f"Updated: {snapshot.taken_at.astimezone().strftime('%Y-%m-%d %H:%M:%S')}", style="bright_black"),
        Text(f"Monitoring for: {format_duration(uptime)}", style="bright_black"),
        _status_table(snapshot),
        _performance_table(snapshot),
        Rule("ACTIVE ALERTS", align="left", style="yellow"),
        _alerts_section(snapshot),
        Rule("SYSTEM HEALTH SUMMARY", align="left", style="yellow"),
        _summary_section(snapshot),
        Text("Press Ctrl+C to stop monitoring", style="bright_black"),
    )
