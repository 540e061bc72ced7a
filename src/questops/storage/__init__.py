"""
Durable storage.

Deployment records, daily alert logs and daily monitoring reports as JSON files.
"""

from questops.storage.store import AlertStore, DeploymentRecordStore, ReportStore

__all__ = ["AlertStore", "DeploymentRecordStore", "ReportStore"]
