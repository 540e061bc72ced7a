"""Generic JSON webhook notifier."""

import logging
from typing import Any

import httpx

from questops.models import Alert, DeploymentSummary

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class WebhookNotifier:
    """
    POSTs a JSON event to a webhook URL.

    With no URL configured it only logs, which keeps local and CI runs offline.
    """

    def __init__(self, url: str = "", timeout: float = DEFAULT_TIMEOUT) -> None:
        self.url = (url or "").strip()
        self.timeout = timeout

    def _send(self, event: str, payload: dict[str, Any]) -> bool:
        if not self.url:
            logger.info("Webhook notification skipped: no URL", extra={"event": event})
            return False
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.post(self.url, json={"event": event, "payload": payload})
                r.raise_for_status()
            logger.info("Webhook notification sent", extra={"event": event})
            return True
        except Exception as e:
            logger.warning("Webhook notification failed: %s", e, exc_info=True)
            return False

    def notify_deployment(self, summary: DeploymentSummary) -> bool:
        return self._send("deployment", summary.model_dump(mode="json"))

    def notify_alert(self, alert: Alert) -> bool:
        return self._send("alert", alert.model_dump(mode="json"))
