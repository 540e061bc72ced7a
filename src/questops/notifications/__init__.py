"""
Notification channels.

Deployment results and monitoring alerts go out through Notifier adapters
(Slack, webhook). Each channel is switched on by a config flag and never raises.
"""

from typing import Protocol

from questops.config import Settings
from questops.models import Alert, DeploymentSummary, NotificationSettings
from questops.notifications.slack import SlackNotifier
from questops.notifications.webhook import WebhookNotifier


class Notifier(Protocol):
    """Delivery channel for deployment results and alerts; returns True when delivered."""

    def notify_deployment(self, summary: DeploymentSummary) -> bool: ...

    def notify_alert(self, alert: Alert) -> bool: ...


def build_notifiers(settings: Settings, enabled: NotificationSettings) -> list[Notifier]:
    """Notifiers for the channels switched on in the config, in slack, webhook order."""
    notifiers: list[Notifier] = []
    if enabled.slack:
        notifiers.append(SlackNotifier(bot_token=settings.slack_bot_token, channel_id=settings.slack_channel_id))
    if enabled.webhook:
        notifiers.append(WebhookNotifier(url=settings.webhook_url))
    return notifiers


__all__ = ["Notifier", "SlackNotifier", "WebhookNotifier", "build_notifiers"]
