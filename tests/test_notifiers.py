"""
Notifier tests.
Tests for Discord and Email notification delivery.
"""

import pytest
from unittest.mock import Mock, patch
from datetime import datetime, timezone

import requests

from pricewatch.config import AppConfig
from pricewatch.notifiers.base import NotificationResult, build_notifiers
from pricewatch.notifiers.discord import MAX_RETRY_AFTER_SECONDS, DiscordNotifier
from pricewatch.notifiers.email import EmailNotifier
from pricewatch.rules.engine import Alert


@pytest.fixture
def sample_alert():
    """Create sample upward alert."""
    return Alert(
        symbol="AAPL",
        name="Apple Inc.",
        change_pct=6.0,
        current_price=106.0,
        triggered_at=datetime(2024, 3, 8, 13, 30, 5, tzinfo=timezone.utc),
    )


@pytest.fixture
def down_alert():
    """Create sample downward alert."""
    return Alert(
        symbol="BTC-USD",
        name="Bitcoin",
        change_pct=-7.0,
        current_price=62150.5,
        triggered_at=datetime(2024, 3, 8, 13, 30, 5, tzinfo=timezone.utc),
    )


class TestNotificationResult:
    """Test NotificationResult model."""

    def test_success_result(self):
        """Should create success result."""
        result = NotificationResult(success=True, channel="discord")
        assert result.success is True
        assert result.channel == "discord"
        assert result.error is None
        assert result.disabled is False

    def test_failure_result(self):
        """Should create failure result with error."""
        result = NotificationResult(
            success=False, channel="email", error="HTTP 401: unauthorized"
        )
        assert result.success is False
        assert result.error == "HTTP 401: unauthorized"


class TestDiscordNotifier:
    """Test Discord webhook notifications."""

    @pytest.fixture
    def notifier(self, sample_discord_webhook_url):
        """Create Discord notifier."""
        return DiscordNotifier(webhook_url=sample_discord_webhook_url, timezone="Europe/Madrid")

    def test_send_notification_success(self, notifier: DiscordNotifier, sample_alert):
        """Should send notification successfully."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 204
            mock_post.return_value.ok = True

            result = notifier.send(sample_alert)

        assert result.success is True
        assert result.channel == "discord"
        mock_post.assert_called_once()
        assert mock_post.call_args.args[0] == notifier.webhook_url

    def test_payload_content(self, notifier: DiscordNotifier, sample_alert):
        """Should post a single text message."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 204
            mock_post.return_value.ok = True

            notifier.send(sample_alert)

        payload = mock_post.call_args.kwargs["json"]
        assert set(payload) == {"content"}
        assert "**Apple Inc. (AAPL)** 📈 rose 6.00% to $106.00" in payload["content"]
        assert "2024-03-08 14:30:05 (Europe/Madrid)" in payload["content"]

    def test_payload_for_drop(self, notifier: DiscordNotifier, down_alert):
        content = notifier._create_content(down_alert)
        assert "📉 fell 7.00% to $62,150.50" in content

    def test_send_notification_failure(self, notifier: DiscordNotifier, sample_alert):
        """Should handle notification failure."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 400
            mock_post.return_value.ok = False
            mock_post.return_value.text = "Bad Request"

            result = notifier.send(sample_alert)

        assert result.success is False
        assert result.error == "HTTP 400: Bad Request"

    def test_disabled_without_url(self, sample_alert):
        """Should report disabled and make no request."""
        notifier = DiscordNotifier(webhook_url=None)

        with patch("requests.post") as mock_post:
            result = notifier.send(sample_alert)

        assert result.success is False
        assert result.disabled is True
        mock_post.assert_not_called()

    def test_rate_limit_handling(self, notifier: DiscordNotifier, sample_alert):
        """Should wait Retry-After and retry once on 429."""
        limited = Mock(status_code=429, ok=False, headers={"Retry-After": "2"})
        accepted = Mock(status_code=204, ok=True)

        with patch("requests.post", side_effect=[limited, accepted]) as mock_post, \
             patch("pricewatch.notifiers.discord.time.sleep") as mock_sleep:
            result = notifier.send(sample_alert)

        assert result.success is True
        assert mock_post.call_count == 2
        mock_sleep.assert_called_once_with(2.0)

    def test_network_error_handling(self, notifier: DiscordNotifier, sample_alert):
        """Should handle network errors gracefully."""
        with patch("requests.post") as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError("Network error")

            result = notifier.send(sample_alert)

        assert result.success is False
        assert "Connection error" in result.error

    def test_unexpected_error_handling(self, notifier: DiscordNotifier, sample_alert):
        with patch("requests.post", side_effect=requests.exceptions.Timeout("timed out")):
            result = notifier.send(sample_alert)

        assert result.success is False
        assert result.error == "timed out"

    def test_rate_limit_wait_is_capped(self, notifier: DiscordNotifier, sample_alert):
        """Should not wait longer than the cap for a huge Retry-After."""
        limited = Mock(status_code=429, ok=False, headers={"Retry-After": "3600"})
        accepted = Mock(status_code=204, ok=True)

        with patch("requests.post", side_effect=[limited, accepted]), \
             patch("pricewatch.notifiers.discord.time.sleep") as mock_sleep:
            result = notifier.send(sample_alert)

        assert result.success is True
        mock_sleep.assert_called_once_with(MAX_RETRY_AFTER_SECONDS)


class TestEmailNotifier:
    """Test email API notifications."""

    @pytest.fixture
    def notifier(self, sample_email_config):
        """Create email notifier."""
        return EmailNotifier(**sample_email_config)

    def test_send_email_success(self, notifier: EmailNotifier, sample_alert):
        """Should send email and keep the provider message id."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.ok = True
            mock_post.return_value.json.return_value = {"id": "msg_123"}

            result = notifier.send(sample_alert)

        assert result.success is True
        assert result.channel == "email"
        assert result.message_id == "msg_123"

    def test_request_shape(self, notifier: EmailNotifier, sample_alert):
        """Should authenticate with the API key and address the recipients."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.ok = True
            mock_post.return_value.json.return_value = {"id": "msg_123"}

            notifier.send(sample_alert)

        assert mock_post.call_args.args[0] == "https://api.resend.com/emails"
        assert mock_post.call_args.kwargs["headers"] == {"Authorization": "Bearer re_test_key"}
        payload = mock_post.call_args.kwargs["json"]
        assert payload["from"] == "alerts@pricewatch.app"
        assert payload["to"] == ["recipient@example.com"]
        assert "html" in payload and "text" in payload

    def test_send_email_failure(self, notifier: EmailNotifier, sample_alert):
        """Should report a rejected request."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.ok = False
            mock_post.return_value.status_code = 401
            mock_post.return_value.text = "unauthorized"

            result = notifier.send(sample_alert)

        assert result.success is False
        assert result.error == "HTTP 401: unauthorized"

    def test_exception_becomes_result(self, notifier: EmailNotifier, sample_alert):
        """Should never raise out of send."""
        with patch("requests.post", side_effect=RuntimeError("boom")):
            result = notifier.send(sample_alert)

        assert result.success is False
        assert result.error == "Email error: boom"

    def test_disabled_without_api_key(self, sample_email_config, sample_alert):
        notifier = EmailNotifier(**{**sample_email_config, "api_key": None})

        with patch("requests.post") as mock_post:
            result = notifier.send(sample_alert)

        assert result.disabled is True
        mock_post.assert_not_called()

    def test_email_subject_format(self, notifier: EmailNotifier, sample_alert, down_alert):
        """Should include name, symbol, direction and magnitude."""
        assert notifier._create_subject(sample_alert) == "Alert: Apple Inc. (AAPL) rose 6.00%"
        assert notifier._create_subject(down_alert) == "Alert: Bitcoin (BTC-USD) fell 7.00%"

    def test_email_body_html(self, notifier: EmailNotifier, sample_alert):
        """Should create HTML body."""
        body = notifier._create_body(sample_alert)

        assert "<html>" in body
        assert "Apple Inc. (AAPL)" in body
        assert "6.00%" in body
        assert EmailNotifier.COLOR_UP in body

    def test_email_text_body(self, notifier: EmailNotifier, down_alert):
        """Should open the plain text body with the alert summary."""
        body = notifier._create_text_body(down_alert)

        assert body.strip().splitlines()[0] == "Bitcoin (BTC-USD) fell 7.00% to $62,150.50"

    def test_template_rendering(self, sample_email_config, sample_alert, tmp_path):
        """Should fill the placeholders of a custom template."""
        template = tmp_path / "email.html"
        template.write_text(
            '<p class="{{CLASE}}">{{NAME}} ({{TICKER}}) {{DIRECTION}} '
            "{{PERCENT}}% at {{PRICE}}</p>",
            encoding="utf-8",
        )
        notifier = EmailNotifier(**sample_email_config, template_path=str(template))

        body = notifier._create_body(sample_alert)

        assert body == '<p class="highlight-up">Apple Inc. (AAPL) rose 6.00% at 106.00</p>'

    def test_send_to_multiple_recipients(self, sample_alert):
        """Should send to all recipients in one request."""
        notifier = EmailNotifier(
            api_key="re_test_key",
            from_address="alerts@pricewatch.app",
            to_addresses=["a@example.com", "b@example.com"],
        )

        with patch("requests.post") as mock_post:
            mock_post.return_value.ok = True
            mock_post.return_value.json.return_value = {"id": "msg_1"}

            notifier.send(sample_alert)

        mock_post.assert_called_once()
        assert mock_post.call_args.kwargs["json"]["to"] == ["a@example.com", "b@example.com"]


class TestNotifierFactory:
    """Test notifier construction from config."""

    def test_build_notifiers(self):
        """Should create one notifier per channel."""
        notifiers = build_notifiers(AppConfig())

        assert [n.channel for n in notifiers] == ["email", "discord"]
        assert not any(n.enabled for n in notifiers)

    def test_build_enabled_notifiers(self, sample_discord_webhook_url):
        config = AppConfig()
        config.notifications.discord.webhook_url = sample_discord_webhook_url

        discord = build_notifiers(config)[1]

        assert isinstance(discord, DiscordNotifier)
        assert discord.enabled is True
