"""Shared data models for deployment and monitoring."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Environment(str, Enum):
    """Deployment target environments."""

    STAGING = "staging"
    PRODUCTION = "production"


class ServiceType(str, Enum):
    """API services get deep health checks; web services only connectivity."""

    API = "api"
    WEB = "web"


class DeploymentStrategy(str, Enum):
    ROLLING = "rolling"
    BLUE_GREEN = "blue-green"
    RECREATE = "recreate"


# --- deploy-<environment>.json ---


class ServiceConfig(BaseModel):
    """Per-service deployment settings (read-only after load)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    enabled: bool = True
    health_check_path: str = Field(default="/", alias="healthCheck")
    port: int = 3000
    dependencies: list[str] = Field(default_factory=list)
    # Inferred from the service name when absent (see DeployConfig)
    type: ServiceType | None = None


class DeploymentSettings(BaseModel):
    """Strategy and health-check timing; durations are milliseconds as in the JSON file."""

    model_config = ConfigDict(populate_by_name=True)

    strategy: DeploymentStrategy = DeploymentStrategy.ROLLING
    timeout_ms: int = Field(default=300_000, alias="timeout")
    health_check_retries: int = Field(default=5, alias="healthCheckRetries", ge=1)
    health_check_interval_ms: int = Field(default=10_000, alias="healthCheckInterval", ge=0)

    @property
    def health_check_interval_seconds(self) -> float:
        return self.health_check_interval_ms / 1000.0


class NotificationSettings(BaseModel):
    """Which notification channels are switched on."""

    slack: bool = False
    email: bool = False
    webhook: bool = False


def _default_services() -> dict[str, ServiceConfig]:
    return {
        "backend": ServiceConfig(health_check_path="/health", port=3000, type=ServiceType.API),
        "frontend": ServiceConfig(health_check_path="/", dependencies=["backend"], type=ServiceType.WEB),
    }


class DeployConfig(BaseModel):
    """Environment deployment config; every field falls back to a default."""

    model_config = ConfigDict(populate_by_name=True)

    environment: Environment | None = None
    services: dict[str, ServiceConfig] = Field(default_factory=_default_services)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    @model_validator(mode="after")
    def _infer_service_types(self) -> "DeployConfig":
        for name, service in list(self.services.items()):
            if service.type is None:
                inferred = ServiceType.API if name == "backend" else ServiceType.WEB
                self.services[name] = service.model_copy(update={"type": inferred})
        return self


# --- Deployment run ---


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    SUCCESS = "success"
    WARN = "warn"
    ERROR = "error"


class LogEntry(BaseModel):
    """One line of the deployment's own append-only log."""

    timestamp: datetime
    level: LogLevel
    message: str
    data: dict[str, Any] | None = None
    deployment_id: str


class ServiceDeployStatus(str, Enum):
    DEPLOYED = "deployed"
    FAILED = "failed"


class ServiceRecord(BaseModel):
    """Outcome of deploying one service; consulted by rollback."""

    status: ServiceDeployStatus
    timestamp: datetime
    version: str | None = None
    error: str | None = None


class DeploymentRecord(BaseModel):
    """Persisted document for one deployment run (success or failure)."""

    id: str
    environment: Environment
    timestamp: datetime
    duration_ms: int
    services: dict[str, ServiceRecord] = Field(default_factory=dict)
    logs: list[LogEntry] = Field(default_factory=list)
    status: Literal["success", "failed"]
    error: str | None = None
    stack: str | None = None


class DeploymentSummary(BaseModel):
    """Payload for deployment notifications."""

    deployment_id: str
    environment: Environment
    duration_ms: int
    services: dict[str, ServiceRecord] = Field(default_factory=dict)
    status: Literal["success", "failed"] = "success"


# --- Production monitor ---


class ServiceHealthStatus(str, Enum):
    """Plain reachability of a monitored service."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class DeploymentHealth(str, Enum):
    """Application-level status reported by an API's /health payload."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class Alert(BaseModel):
    """A monitoring alert; (service, message) is the dedup key."""

    severity: AlertSeverity
    service: str
    message: str
    timestamp: datetime


class OverallStatus(str, Enum):
    """Aggregate health across all monitored services."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class MonitoredService(BaseModel):
    name: str
    url: str
    type: ServiceType = ServiceType.WEB


class AlertThresholds(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response_time_ms: float = Field(default=2000, alias="responseTime", gt=0)
    error_rate: float = Field(default=0.05, alias="errorRate", ge=0, le=1)
    availability: float = Field(default=0.95, ge=0, le=1)


class MonitoringSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    interval_ms: int = Field(default=30_000, alias="interval", gt=0)
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds, alias="alertThresholds")

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0


def _default_monitored_services() -> list[MonitoredService]:
    return [
        MonitoredService(name="backend", url="https://quest-api.railway.app", type=ServiceType.API),
        MonitoredService(name="frontend", url="https://quest-frontend.netlify.app", type=ServiceType.WEB),
    ]


class MonitorConfig(BaseModel):
    """Production monitor configuration."""

    model_config = ConfigDict(populate_by_name=True)

    services: list[MonitoredService] = Field(default_factory=_default_monitored_services, min_length=1)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    @model_validator(mode="after")
    def _unique_service_names(self) -> "MonitorConfig":
        names = [s.name for s in self.services]
        if len(names) != len(set(names)):
            raise ValueError("monitored service names must be unique")
        return self


class HealthSummary(BaseModel):
    """Aggregate health across all monitored services."""

    status: OverallStatus
    services_online: int
    service_count: int
    avg_availability: float  # percent
    total_requests: int
    total_errors: int
