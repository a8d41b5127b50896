"""Notification delivery for recovery alerts."""

import logging
from typing import Any, Dict, Optional
import requests
from requests.exceptions import RequestException

from .config import config
from .exceptions import DeliveryError

logger = logging.getLogger(__name__)


class NotificationSender:
    """Interface for push and email delivery. Failures raise DeliveryError."""

    def send_push(self, user_id: str, title: str, message: str) -> None:
        raise NotImplementedError

    def send_email(self, user_id: str, subject: str, message: str) -> None:
        raise NotImplementedError


class LoggingNotificationSender(NotificationSender):
    """Writes notifications to the log instead of delivering them."""

    def send_push(self, user_id: str, title: str, message: str) -> None:
        logger.info(f"Push notification for user {user_id}: {title} - {message}")

    def send_email(self, user_id: str, subject: str, message: str) -> None:
        logger.info(f"Email notification for user {user_id}: {subject} - {message}")


class WebhookNotificationSender(NotificationSender):
    """Posts notifications as JSON to the configured webhook endpoints."""

    def __init__(
        self,
        push_url: Optional[str] = None,
        email_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.push_url = push_url if push_url is not None else config.PUSH_WEBHOOK_URL
        self.email_url = email_url if email_url is not None else config.EMAIL_WEBHOOK_URL
        self.timeout = timeout or config.NOTIFICATION_TIMEOUT_SECONDS

    def send_push(self, user_id: str, title: str, message: str) -> None:
        self._post("push", self.push_url, {"user_id": user_id, "title": title, "message": message})

    def send_email(self, user_id: str, subject: str, message: str) -> None:
        self._post("email", self.email_url, {"user_id": user_id, "subject": subject, "message": message})

    def _post(self, channel: str, url: str, payload: Dict[str, Any]) -> None:
        if not url:
            raise DeliveryError(channel, "no webhook URL configured")

        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except RequestException as e:
            raise DeliveryError(channel, str(e), details={"url": url}) from e

        logger.debug(f"Delivered {channel} notification for user {payload['user_id']}")


def get_notifier() -> NotificationSender:
    """Webhook delivery when configured, logging otherwise."""
    if config.has_webhooks():
        return WebhookNotificationSender()
    return LoggingNotificationSender()
