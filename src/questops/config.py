"""Application configuration loaded from environment."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from questops.errors import ConfigError
from questops.models import (
    DeployConfig,
    DeploymentSettings,
    Environment,
    MonitorConfig,
    NotificationSettings,
    ServiceConfig,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """QuestOps settings from env vars."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project being deployed (must contain package.json, backend/, frontend/)
    project_root: str = "."
    # deploy-<environment>.json lives here (relative to project_root unless absolute)
    config_dir: str = "config"

    # Output directories for deployment records, daily alert logs and daily reports
    deployments_dir: str = "deployments"
    alerts_dir: str = "alerts"
    reports_dir: str = "reports"

    log_level: str = "INFO"

    # Slack
    slack_bot_token: str = ""
    slack_channel_id: str = ""
    # Generic JSON webhook for deployment and alert notifications
    webhook_url: str = ""

    # Pre-deployment performance test: backend is started locally on this port
    perf_test_port: int = 3001
    perf_test_startup_seconds: float = 3.0
    backend_start_command: str = "node backend/server.js"

    # Demo API key accepted by the Quest Tracker API
    api_key: str = "demo_key_12345"

    # Production monitor: optional JSON config (services, interval, thresholds)
    monitor_config_path: str = ""

    # Verification suite defaults (overridable on the command line)
    frontend_url: str = "https://your-app.netlify.app"
    backend_url: str = "https://your-api.railway.app"


def get_settings() -> Settings:
    """Return loaded settings from environment (and .env if present)."""
    return Settings()


def resolve_path(settings: Settings, path: str) -> Path:
    """Resolve a settings path against project_root unless it is absolute."""
    p = Path(path)
    if p.is_absolute():
        return p
    return Path(settings.project_root) / p


def _accepted_fields(model: type[BaseModel], section: Any, where: str, path: Path) -> dict[str, Any] | None:
    """Keep the entries of `section` that `model` accepts; each rejected entry is logged and dropped."""
    if not isinstance(section, dict):
        logger.warning("Ignoring config section %s: expected an object", where, extra={"config_path": str(path)})
        return None
    accepted: dict[str, Any] = {}
    for key, value in section.items():
        try:
            model.model_validate({key: value})
        except ValidationError as e:
            logger.warning(
                "Ignoring invalid config value %s.%s: %s",
                where,
                key,
                e.errors()[0]["msg"],
                extra={"config_path": str(path)},
            )
            continue
        accepted[key] = value
    return accepted


def load_deploy_config(environment: Environment, config_dir: str | Path) -> DeployConfig:
    """
    Load deploy-<environment>.json from config_dir, overlaid onto the defaults.

    A missing or unreadable file gives the defaults. Otherwise each value is
    validated on its own: an invalid one is logged and left at its default
    while the rest of the file still applies. A services section replaces the
    default services as a whole.
    """
    path = Path(config_dir) / f"deploy-{environment.value}.json"
    if not path.is_file():
        return DeployConfig(environment=environment)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(
            "Could not load environment config, using defaults: %s",
            e,
            extra={"config_path": str(path)},
        )
        return DeployConfig(environment=environment)
    if not isinstance(data, dict):
        logger.warning(
            "Could not load environment config, using defaults: expected a JSON object",
            extra={"config_path": str(path)},
        )
        return DeployConfig(environment=environment)

    overlay: dict[str, Any] = {}
    if "environment" in data:
        overlay.update(_accepted_fields(DeployConfig, {"environment": data["environment"]}, "config", path) or {})
    if "services" in data:
        services = data["services"]
        if isinstance(services, dict):
            overlay["services"] = {}
            for name, service in services.items():
                fields = _accepted_fields(ServiceConfig, service, f"services.{name}", path)
                if fields is not None:
                    overlay["services"][name] = fields
        else:
            logger.warning("Ignoring config section services: expected an object", extra={"config_path": str(path)})
    for key, model in (("deployment", DeploymentSettings), ("notifications", NotificationSettings)):
        if key in data:
            fields = _accepted_fields(model, data[key], key, path)
            if fields is not None:
                overlay[key] = fields

    config = DeployConfig.model_validate(overlay)
    if config.environment is None:
        config.environment = environment
    return config


def load_monitor_config(path: str | Path | None = None) -> MonitorConfig:
    """
    Load the monitor config from JSON, or return defaults when no path is given.

    Unlike the deploy config, a named file that is missing or malformed raises
    ConfigError: the monitor refuses to start on a bad config.
    """
    if not path:
        return MonitorConfig()
    config_path = Path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        return MonitorConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid monitor config {config_path}: {e}") from e
