"""Slack notifier for deployment results and monitoring alerts."""

import logging

from questops.models import Alert, AlertSeverity, DeploymentSummary

logger = logging.getLogger(__name__)

_SEVERITY_EMOJI = {
    AlertSeverity.CRITICAL: ":red_circle:",
    AlertSeverity.WARNING: ":large_yellow_circle:",
    AlertSeverity.INFO: ":large_blue_circle:",
}


def _build_deployment_text(summary: DeploymentSummary) -> str:
    """Plain-text fallback for notifications and accessibility."""
    lines = [
        f"*Deployment {summary.status}*: `{summary.deployment_id}`",
        f"*Environment:* {summary.environment.value}",
        f"*Duration:* {summary.duration_ms / 1000:.0f}s",
    ]
    if summary.services:
        lines.append("*Services:*")
        for name, record in summary.services.items():
            version = f" ({record.version})" if record.version else ""
            lines.append(f"  • {name}: {record.status.value}{version}")
    return "\n".join(lines)


def _build_deployment_blocks(summary: DeploymentSummary) -> list[dict]:
    """Block Kit layout for a deployment result."""
    title = "Deployment succeeded" if summary.status == "success" else "Deployment failed"
    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": title, "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Deployment:*\n`{summary.deployment_id}`"},
                {"type": "mrkdwn", "text": f"*Environment:*\n{summary.environment.value}"},
                {"type": "mrkdwn", "text": f"*Duration:*\n{summary.duration_ms / 1000:.0f}s"},
            ],
        },
    ]
    if summary.services:
        services_text = "\n".join(
            f"• {name}: {r.status.value}" + (f" ({r.version})" if r.version else "")
            for name, r in summary.services.items()
        )
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*Services:*\n{services_text}"}})
    return blocks


def _build_alert_text(alert: Alert) -> str:
    emoji = _SEVERITY_EMOJI.get(alert.severity, "")
    return f"{emoji} *{alert.severity.value.upper()}* `{alert.service}`: {alert.message}"


class SlackNotifier:
    """Posts to Slack via slack_sdk WebClient; logs and skips when token or channel is not configured."""

    def __init__(self, bot_token: str = "", channel_id: str = "") -> None:
        self.bot_token = bot_token
        self.channel_id = channel_id

    def _post(self, text: str, blocks: list[dict] | None = None) -> bool:
        if not self.bot_token or not self.channel_id:
            logger.info("Slack notification skipped: no token or channel", extra={"text": text[:80]})
            return False
        try:
            from slack_sdk import WebClient

            client = WebClient(token=self.bot_token)
            kwargs = {"channel": self.channel_id, "text": text}
            if blocks:
                kwargs["blocks"] = blocks
            client.chat_postMessage(**kwargs)
            logger.info("Slack notification sent", extra={"channel_id": self.channel_id})
            return True
        except Exception as e:
            logger.warning("Slack publish failed: %s", e, exc_info=True)
            return False

    def notify_deployment(self, summary: DeploymentSummary) -> bool:
        """Send the deployment result. Returns False if not configured or the API fails."""
        return self._post(_build_deployment_text(summary), _build_deployment_blocks(summary))

    def notify_alert(self, alert: Alert) -> bool:
        return self._post(_build_alert_text(alert))
