"""Tests for the e-mail delivery channel (no network)."""

import logging

import aiosmtplib
import pytest

from app.models import Notification, NotificationKind
from app.services import email
from tests.mocks.models import MOCK_USER, NOW


def _notification(**overrides) -> Notification:
    defaults = dict(
        id="n-1",
        recipient=MOCK_USER.email,
        game_id="game-1",
        kind=NotificationKind.GAME_CANCELLED,
        title="Game cancelled",
        message="Reason: <rain>",
        scheduled_for=NOW,
        created_at=NOW,
    )
    defaults.update(overrides)
    return Notification(**defaults)


async def test_console_fallback_when_smtp_disabled(monkeypatch, caplog):
    monkeypatch.setattr(email, "smtp_enabled", lambda: False)
    with caplog.at_level(logging.INFO, logger="app.services.email"):
        await email.EmailDelivery().deliver(_notification())
    assert "Would send email to player@example.com" in caplog.text


async def test_smtp_send(monkeypatch):
    sent = []

    async def fake_send(message, **kwargs):
        sent.append((message, kwargs))

    monkeypatch.setattr(email, "smtp_enabled", lambda: True)
    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    await email.send_notification_email(_notification())

    [(message, kwargs)] = sent
    assert message["To"] == MOCK_USER.email
    assert message["Subject"].endswith("Game cancelled")
    assert "port" in kwargs


async def test_smtp_failure_propagates(monkeypatch):
    async def broken_send(message, **kwargs):
        raise aiosmtplib.SMTPException("relay down")

    monkeypatch.setattr(email, "smtp_enabled", lambda: True)
    monkeypatch.setattr(aiosmtplib, "send", broken_send)
    with pytest.raises(aiosmtplib.SMTPException):
        await email.send_notification_email(_notification())


def test_html_body_escapes_message():
    body = email._build_html_body(_notification())
    assert "&lt;rain&gt;" in body
