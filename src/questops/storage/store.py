"""JSON file persistence for deployment records, daily alert logs and daily reports."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from questops.models import Alert, DeploymentRecord

logger = logging.getLogger(__name__)


def _day(ts: datetime | None = None) -> str:
    """UTC calendar day (YYYY-MM-DD) used to name daily files."""
    ts = ts or datetime.now(timezone.utc)
    return ts.date().isoformat()


def _write_json(path: Path, data: Any) -> None:
    """Write a complete JSON document, replacing the previous one in a single rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
    tmp.replace(path)


class DeploymentRecordStore:
    """
    One JSON document per deployment run.

    Successful runs are saved as <id>.json, failed runs as <id>-failed.json.
    Write errors propagate; callers decide whether they are fatal.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, record: DeploymentRecord) -> Path:
        suffix = "" if record.status == "success" else "-failed"
        return self._dir / f"{record.id}{suffix}.json"

    def save(self, record: DeploymentRecord) -> Path:
        path = self.path_for(record)
        _write_json(path, record.model_dump(mode="json"))
        return path

    def load(self, deployment_id: str) -> DeploymentRecord | None:
        """Return the record for a run id (success or failure), or None."""
        for name in (f"{deployment_id}.json", f"{deployment_id}-failed.json"):
            path = self._dir / name
            if path.is_file():
                return DeploymentRecord.model_validate_json(path.read_text(encoding="utf-8"))
        return None

    def list_records(self) -> list[DeploymentRecord]:
        """All readable records, newest first."""
        if not self._dir.is_dir():
            return []
        records: list[DeploymentRecord] = []
        for path in self._dir.glob("*.json"):
            try:
                records.append(DeploymentRecord.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.debug("Skipping unreadable deployment record %s: %s", path, e)
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records


class AlertStore:
    """Append-only JSON array of alerts per day (<YYYY-MM-DD>.json)."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def path_for(self, ts: datetime | None = None) -> Path:
        return self._dir / f"{_day(ts)}.json"

    def append(self, alert: Alert) -> Path:
        path = self.path_for(alert.timestamp)
        daily: list = []
        if path.is_file():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(data, list):
                    daily = data
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Alert log %s unreadable, starting a new one: %s", path, e)
        daily.append(alert.model_dump(mode="json"))
        _write_json(path, daily)
        return path

    def read_day(self, ts: datetime | None = None) -> list[Alert]:
        path = self.path_for(ts)
        if not path.is_file():
            return []
        data = json.loads(path.read_text(encoding="utf-8"))
        return [Alert.model_validate(a) for a in data]


class ReportStore:
    """Latest monitoring snapshot per day, overwritten every round."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def path_for(self, ts: datetime | None = None) -> Path:
        return self._dir / f"{_day(ts)}.json"

    def save(self, report: dict[str, Any], ts: datetime | None = None) -> Path:
        path = self.path_for(ts)
        _write_json(path, report)
        return path
