"""
Discord webhook notifier.
"""

import logging
import time
from typing import Any, Optional
from zoneinfo import ZoneInfo

import requests

from pricewatch.rules.engine import Alert, Direction
from .base import Notifier, NotificationResult

logger = logging.getLogger(__name__)

# Longest wait honoured before the single retry
MAX_RETRY_AFTER_SECONDS = 5.0


class DiscordNotifier(Notifier):
    """Posts plain-text alerts to a chat webhook."""

    channel = "discord"

    def __init__(
        self,
        webhook_url: Optional[str],
        timezone: str = "Europe/Madrid",
        timeout: float = 10.0,
    ):
        """
        Initialize Discord notifier.

        Args:
            webhook_url: Discord webhook URL; None disables the notifier
            timezone: Timezone used for the "sent at" stamp
            timeout: HTTP timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timezone = timezone
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def send(self, alert: Alert) -> NotificationResult:
        """Send alert to Discord."""
        if not self.enabled:
            return self.disabled_result()

        try:
            payload = self._create_payload(alert)
            response = self._send_webhook(payload)

            if response.ok:
                logger.info(f"Discord alert sent for {alert.symbol}")
                return NotificationResult(success=True, channel=self.channel)
            else:
                logger.error(
                    f"Discord webhook rejected {alert.symbol}: HTTP {response.status_code}"
                )
                return NotificationResult(
                    success=False,
                    channel=self.channel,
                    error=f"HTTP {response.status_code}: {response.text}",
                )

        except requests.exceptions.ConnectionError as e:
            logger.error(f"Discord connection error for {alert.symbol}: {e}")
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"Connection error: {str(e)}",
            )
        except Exception as e:
            logger.error(f"Error sending Discord alert for {alert.symbol}: {e}")
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=str(e),
            )

    def _send_webhook(self, payload: dict[str, Any]) -> requests.Response:
        """Send webhook with rate limit handling."""
        response = requests.post(
            self.webhook_url,
            json=payload,
            timeout=self.timeout,
        )

        # Handle rate limiting
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "1")
            time.sleep(min(float(retry_after), MAX_RETRY_AFTER_SECONDS))
            response = requests.post(
                self.webhook_url,
                json=payload,
                timeout=self.timeout,
            )

        return response

    def _create_payload(self, alert: Alert) -> dict[str, Any]:
        """Create Discord webhook payload."""
        return {"content": self._create_content(alert)}

    def _create_content(self, alert: Alert) -> str:
        verb = "rose" if alert.direction is Direction.UP else "fell"
        sent_at = alert.triggered_at.astimezone(ZoneInfo(self.timezone))
        return (
            f"**{alert.name} ({alert.symbol})** {alert.direction.emoji} {verb} "
            f"{abs(alert.change_pct):.2f}% to ${alert.current_price:,.2f}\n"
            f"🕒 Sent: {sent_at.strftime('%Y-%m-%d %H:%M:%S')} ({self.timezone})"
        )
