"""Tests for notification senders."""

import pytest
import requests

from recovery_engine import notifications
from recovery_engine.notifications import LoggingNotificationSender, WebhookNotificationSender
from recovery_engine.exceptions import DeliveryError


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class TestWebhookNotificationSender:
    """Test HTTP delivery and error mapping."""

    def setup_method(self):
        self.sender = WebhookNotificationSender(
            push_url="https://hooks.example.test/push",
            email_url="https://hooks.example.test/email",
            timeout=2,
        )

    def test_posts_json(self, monkeypatch):
        calls = []

        def fake_post(url, json=None, timeout=None):
            calls.append((url, json, timeout))
            return FakeResponse(200)

        monkeypatch.setattr(notifications.requests, "post", fake_post)

        self.sender.send_push("athlete", "Recovery Alert", "Take a rest day")

        assert calls == [(
            "https://hooks.example.test/push",
            {"user_id": "athlete", "title": "Recovery Alert", "message": "Take a rest day"},
            2,
        )]

    def test_http_error_becomes_delivery_error(self, monkeypatch):
        monkeypatch.setattr(notifications.requests, "post", lambda *a, **kw: FakeResponse(503))

        with pytest.raises(DeliveryError) as exc_info:
            self.sender.send_email("athlete", "Recovery Alert", "Take a rest day")

        assert exc_info.value.channel == "email"

    def test_connection_error_becomes_delivery_error(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(notifications.requests, "post", refuse)

        with pytest.raises(DeliveryError):
            self.sender.send_push("athlete", "Recovery Alert", "Take a rest day")

    def test_missing_url(self):
        sender = WebhookNotificationSender(push_url="", email_url="")

        with pytest.raises(DeliveryError):
            sender.send_push("athlete", "Recovery Alert", "Take a rest day")


class TestLoggingNotificationSender:

    def test_logs_instead_of_sending(self, caplog):
        caplog.set_level("INFO")

        LoggingNotificationSender().send_push("athlete", "Recovery Alert", "Take a rest day")

        assert "Take a rest day" in caplog.text
