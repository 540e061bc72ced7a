"""Tests for Slack and webhook notifiers."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from questops.config import Settings
from questops.models import (
    Alert,
    AlertSeverity,
    DeploymentSummary,
    Environment,
    NotificationSettings,
    ServiceDeployStatus,
    ServiceRecord,
)
from questops.notifications import SlackNotifier, WebhookNotifier, build_notifiers
from questops.notifications.slack import _build_alert_text, _build_deployment_blocks, _build_deployment_text

NOW = datetime(2025, 2, 11, 12, 0, 0, tzinfo=timezone.utc)


def _summary() -> DeploymentSummary:
    return DeploymentSummary(
        deployment_id="deploy-1-abcd",
        environment=Environment.PRODUCTION,
        duration_ms=92_000,
        services={
            "backend": ServiceRecord(status=ServiceDeployStatus.DEPLOYED, timestamp=NOW, version="2.3.1"),
        },
    )


def _alert() -> Alert:
    return Alert(severity=AlertSeverity.CRITICAL, service="backend", message="Service down", timestamp=NOW)


def test_build_deployment_text():
    text = _build_deployment_text(_summary())
    assert "deploy-1-abcd" in text
    assert "production" in text
    assert "92s" in text
    assert "backend: deployed (2.3.1)" in text


def test_build_deployment_blocks():
    blocks = _build_deployment_blocks(_summary())
    assert blocks[0]["type"] == "header"
    assert blocks[0]["text"]["text"] == "Deployment succeeded"
    assert any(b.get("type") == "section" for b in blocks)


def test_build_alert_text():
    text = _build_alert_text(_alert())
    assert "CRITICAL" in text
    assert "backend" in text
    assert "Service down" in text


def test_slack_without_token_returns_false():
    assert SlackNotifier(bot_token="", channel_id="C123").notify_deployment(_summary()) is False
    assert SlackNotifier(bot_token="xoxb-xxx", channel_id="").notify_alert(_alert()) is False


@patch("slack_sdk.WebClient")
def test_slack_with_token_posts_message(mock_web_client_class):
    mock_client = MagicMock()
    mock_web_client_class.return_value = mock_client

    assert SlackNotifier(bot_token="xoxb-xxx", channel_id="C123").notify_deployment(_summary()) is True
    mock_web_client_class.assert_called_once_with(token="xoxb-xxx")
    kwargs = mock_client.chat_postMessage.call_args.kwargs
    assert kwargs["channel"] == "C123"
    assert "deploy-1-abcd" in kwargs["text"]
    assert kwargs["blocks"][0]["type"] == "header"


@patch("slack_sdk.WebClient")
def test_slack_api_error_returns_false(mock_web_client_class):
    mock_web_client_class.return_value.chat_postMessage.side_effect = RuntimeError("invalid_auth")
    assert SlackNotifier(bot_token="xoxb-xxx", channel_id="C123").notify_alert(_alert()) is False


def test_webhook_without_url_returns_false():
    assert WebhookNotifier(url="").notify_alert(_alert()) is False


@patch("questops.notifications.webhook.httpx.Client")
def test_webhook_posts_event(mock_client_class):
    mock_client = MagicMock()
    mock_client_class.return_value.__enter__.return_value = mock_client

    assert WebhookNotifier(url="https://hooks.test/deploy").notify_deployment(_summary()) is True
    url = mock_client.post.call_args.args[0]
    body = mock_client.post.call_args.kwargs["json"]
    assert url == "https://hooks.test/deploy"
    assert body["event"] == "deployment"
    assert body["payload"]["deployment_id"] == "deploy-1-abcd"


@patch("questops.notifications.webhook.httpx.Client")
def test_webhook_failure_returns_false(mock_client_class):
    mock_client_class.return_value.__enter__.return_value.post.side_effect = RuntimeError("timeout")
    assert WebhookNotifier(url="https://hooks.test/deploy").notify_alert(_alert()) is False


def test_build_notifiers_follows_flags():
    settings = Settings(slack_bot_token="xoxb", slack_channel_id="C1", webhook_url="https://hooks.test")
    assert build_notifiers(settings, NotificationSettings()) == []
    notifiers = build_notifiers(settings, NotificationSettings(slack=True, webhook=True))
    assert [type(n) for n in notifiers] == [SlackNotifier, WebhookNotifier]
