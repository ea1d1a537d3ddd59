"""
Base notifier classes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pricewatch.config import AppConfig
from pricewatch.rules.engine import Alert


@dataclass
class NotificationResult:
    """Result of a notification attempt."""

    success: bool
    channel: str
    error: Optional[str] = None
    message_id: Optional[str] = None
    disabled: bool = False


class Notifier(ABC):
    """Abstract base class for notifiers."""

    channel: str = "unknown"

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether the notifier has everything it needs to send."""

    @abstractmethod
    def send(self, alert: Alert) -> NotificationResult:
        """
        Send a single alert notification.

        Implementations never raise; failures come back as a result.

        Args:
            alert: Alert to send

        Returns:
            NotificationResult indicating success or failure
        """
        pass

    def disabled_result(self) -> NotificationResult:
        return NotificationResult(success=False, channel=self.channel, disabled=True)


def build_notifiers(config: AppConfig) -> list[Notifier]:
    """
    Create one notifier per channel.

    Channels missing credentials are still created; they report
    ``disabled`` on send instead of failing.
    """
    from .discord import DiscordNotifier
    from .email import EmailNotifier

    notifications = config.notifications
    timeout = config.data_source.request_timeout_seconds
    return [
        EmailNotifier(
            api_key=notifications.email.api_key,
            from_address=notifications.email.from_address,
            to_addresses=notifications.email.to_addresses,
            api_url=notifications.email.api_url,
            template_path=notifications.email.template_path,
            timeout=timeout,
        ),
        DiscordNotifier(
            webhook_url=notifications.discord.webhook_url,
            timezone=config.schedule.timezone,
            timeout=timeout,
        ),
    ]
