"""
Production monitoring.

Polls deployed services, keeps rolling metrics, raises deduplicated alerts and
renders a refreshing console dashboard.
"""

from questops.monitor.alerts import AlertManager
from questops.monitor.metrics import ServiceMetrics, calculate_overall_health
from questops.monitor.monitor import ProductionMonitor

__all__ = ["AlertManager", "ProductionMonitor", "ServiceMetrics", "calculate_overall_health"]
