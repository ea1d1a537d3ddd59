"""
Email notifier backed by the Resend HTTP API.
"""

import html
import logging
from pathlib import Path
from typing import Any, Optional

import requests

from pricewatch.rules.engine import Alert, Direction
from .base import Notifier, NotificationResult

logger = logging.getLogger(__name__)


class EmailNotifier(Notifier):
    """Sends notifications through a transactional email API."""

    channel = "email"

    COLOR_UP = "#2ECC71"
    COLOR_DOWN = "#E74C3C"

    def __init__(
        self,
        api_key: Optional[str],
        from_address: Optional[str],
        to_addresses: list[str],
        api_url: str = "https://api.resend.com/emails",
        template_path: Optional[str] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize email notifier.

        Args:
            api_key: Resend API key
            from_address: Sender email address
            to_addresses: List of recipient email addresses
            api_url: Email API endpoint
            template_path: Optional HTML template with {{PLACEHOLDER}} fields
            timeout: HTTP timeout in seconds
        """
        self.api_key = api_key
        self.from_address = from_address
        self.to_addresses = list(to_addresses or [])
        self.api_url = api_url
        self.template_path = template_path
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.from_address and self.to_addresses)

    def send(self, alert: Alert) -> NotificationResult:
        """Send alert via email."""
        if not self.enabled:
            return self.disabled_result()

        try:
            payload = self._create_message(alert)
            response = requests.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )

            if not response.ok:
                logger.error(
                    f"Email API rejected alert for {alert.symbol}: HTTP {response.status_code}"
                )
                return NotificationResult(
                    success=False,
                    channel=self.channel,
                    error=f"HTTP {response.status_code}: {response.text}",
                )

            message_id = self._message_id(response)
            logger.info(f"Email sent for {alert.symbol} (id: {message_id})")
            return NotificationResult(
                success=True, channel=self.channel, message_id=message_id
            )

        except requests.exceptions.ConnectionError as e:
            logger.error(f"Email API connection error for {alert.symbol}: {e}")
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"Connection error: {str(e)}",
            )
        except Exception as e:
            logger.error(f"Error sending email for {alert.symbol}: {e}")
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"Email error: {str(e)}",
            )

    @staticmethod
    def _message_id(response: requests.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("id") if isinstance(body, dict) else None

    def _create_message(self, alert: Alert) -> dict[str, Any]:
        """Create the email API payload."""
        return {
            "from": self.from_address,
            "to": self.to_addresses,
            "subject": self._create_subject(alert),
            "html": self._create_body(alert),
            "text": self._create_text_body(alert),
        }

    def _create_subject(self, alert: Alert) -> str:
        """Create email subject."""
        verb = "rose" if alert.direction is Direction.UP else "fell"
        return f"Alert: {alert.name} ({alert.symbol}) {verb} {abs(alert.change_pct):.2f}%"

    def _create_text_body(self, alert: Alert) -> str:
        """Create plain text email body."""
        return f"""
{alert.message}

Ticker: {alert.symbol}
Name: {alert.name}
Change: {alert.direction.arrow} {abs(alert.change_pct):.2f}%
Price: ${alert.current_price:,.2f}

Time: {alert.triggered_at.strftime("%Y-%m-%d %H:%M:%S")}
"""

    def _create_body(self, alert: Alert) -> str:
        """Create HTML email body, from the template file when configured."""
        if self.template_path:
            template = Path(self.template_path).read_text(encoding="utf-8")
            return self._render_template(template, alert)

        color = self.COLOR_UP if alert.direction is Direction.UP else self.COLOR_DOWN
        name = html.escape(alert.name)
        symbol = html.escape(alert.symbol)

        return f"""
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; }}
        .alert-box {{
            border-left: 4px solid {color};
            padding: 15px;
            background-color: #f9f9f9;
        }}
        .ticker {{ font-size: 24px; font-weight: bold; color: {color}; }}
        .change {{ font-size: 18px; color: {color}; }}
        .meta {{ color: #888; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="alert-box">
        <div class="ticker">{name} ({symbol})</div>
        <div class="change">{alert.direction.arrow} {abs(alert.change_pct):.2f}%</div>
        <div class="price">Current Price: ${alert.current_price:,.2f}</div>
        <div class="meta">
            Time: {alert.triggered_at.strftime("%Y-%m-%d %H:%M:%S")}
        </div>
    </div>
</body>
</html>
"""

    def _render_template(self, template: str, alert: Alert) -> str:
        up = alert.direction is Direction.UP
        direction = "rose" if up else "fell"
        percent = f"{abs(alert.change_pct):.2f}"
        replacements = {
            "{{TICKER}}": html.escape(alert.symbol),
            "{{NAME}}": html.escape(alert.name),
            "{{CLASE}}": "highlight-up" if up else "highlight-down",
            "{{DIRECCION}}": direction,
            "{{DIRECTION}}": direction,
            "{{PORCENTAJE}}": percent,
            "{{PERCENT}}": percent,
            "{{PRICE}}": f"{alert.current_price:,.2f}",
        }
        for placeholder, value in replacements.items():
            template = template.replace(placeholder, value)
        return template
