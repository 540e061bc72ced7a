"""State of one deployment run: identity, progress, per-service outcome and its own log."""

from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any

from questops.models import (
    DeploymentRecord,
    DeploymentSummary,
    Environment,
    LogEntry,
    LogLevel,
    ServiceDeployStatus,
    ServiceRecord,
)

logger = logging.getLogger(__name__)

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def new_deployment_id() -> str:
    """Time-based id with a random suffix, e.g. deploy-1739268000000-3f9a1c2e."""
    return f"deploy-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class DeploymentRun:
    """
    One execution of the deployment pipeline.

    Only the orchestrator mutates a run. `logs` is append-only and `services`
    keeps deployment order, which rollback walks in reverse.
    """

    def __init__(self, environment: Environment, deployment_id: str | None = None) -> None:
        self._id = deployment_id or new_deployment_id()
        self.environment = environment
        self.phase: str = "initialized"
        self.current_step = 0
        self.total_steps = 0
        self.services: dict[str, ServiceRecord] = {}
        self.logs: list[LogEntry] = []
        self.started_at = datetime.now(timezone.utc)
        self._start_monotonic = time.monotonic()

    @property
    def id(self) -> str:
        return self._id

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def duration_ms(self) -> int:
        return int((time.monotonic() - self._start_monotonic) * 1000)

    def log(self, level: LogLevel, message: str, data: dict[str, Any] | None = None) -> LogEntry:
        """Append to the run log and mirror the entry to the stdlib logger."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message=message,
            data=data,
            deployment_id=self._id,
        )
        self.logs.append(entry)
        extra: dict[str, Any] = {"deployment_id": self._id, "phase": self.phase}
        if data:
            extra["data"] = data
        logger.log(_STDLIB_LEVELS[level], message, extra=extra)
        return entry

    def mark_deployed(self, service_name: str, version: str) -> None:
        self.services[service_name] = ServiceRecord(
            status=ServiceDeployStatus.DEPLOYED,
            timestamp=datetime.now(timezone.utc),
            version=version,
        )

    def mark_failed(self, service_name: str, error: str) -> None:
        self.services[service_name] = ServiceRecord(
            status=ServiceDeployStatus.FAILED,
            timestamp=datetime.now(timezone.utc),
            error=error,
        )

    def summary(self, status: str = "success") -> DeploymentSummary:
        return DeploymentSummary(
            deployment_id=self._id,
            environment=self.environment,
            duration_ms=self.duration_ms(),
            services=dict(self.services),
            status=status,
        )

    def to_record(self, status: str, error: BaseException | None = None, stack: str | None = None) -> DeploymentRecord:
        return DeploymentRecord(
            id=self._id,
            environment=self.environment,
            timestamp=datetime.now(timezone.utc),
            duration_ms=self.duration_ms(),
            services=dict(self.services),
            logs=list(self.logs),
            status=status,
            error=str(error) if error is not None else None,
            stack=stack,
        )
