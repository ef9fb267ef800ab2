"""
Email delivery — sends game notifications via SMTP.

In development (no SMTP configured), emails are printed to the console
so you can see what *would* be sent without configuring a mail server.
"""

from __future__ import annotations

import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from app.config import (
    SMTP_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    smtp_enabled,
)
from app.models import Notification, NotificationKind

logger = logging.getLogger(__name__)

_ICONS = {
    NotificationKind.GAME_REMINDER: "⏰",
    NotificationKind.PLAYER_JOINED: "🙋",
    NotificationKind.PLAYER_LEFT: "👋",
    NotificationKind.GAME_CANCELLED: "❌",
    NotificationKind.GAME_UPDATED: "✏️",
}


class DeliveryChannel(Protocol):
    """Hands one notification to its recipient; raises on failure."""

    async def deliver(self, notification: Notification) -> None: ...


def _build_subject(notification: Notification) -> str:
    return f"{_ICONS.get(notification.kind, '🏀')} {notification.title}"


def _build_html_body(notification: Notification) -> str:
    """Build a simple HTML email body for one notification."""
    return f"""
    <html>
    <body style="font-family:sans-serif;color:#333">
      <h2>{html.escape(notification.title)}</h2>
      <p>{html.escape(notification.message)}</p>
      <p style="margin-top:1em;font-size:0.9em;color:#888">
        You're receiving this because you are part of a game on Court Games
        (game {html.escape(notification.game_id)}).
      </p>
    </body>
    </html>
    """


async def send_notification_email(notification: Notification) -> None:
    """
    Send (or log) a notification email.

    If SMTP is not configured, falls back to console output.
    """
    subject = _build_subject(notification)

    # ── Console fallback (dev mode) ───────────────────────────────────
    if not smtp_enabled():
        logger.info(
            "📧 [DEV] Would send email to %s:\n"
            "  Subject: %s\n"
            "  %s",
            notification.recipient,
            subject,
            notification.message,
        )
        return

    # ── Real SMTP send ────────────────────────────────────────────────
    import aiosmtplib

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = SMTP_FROM_EMAIL
    msg["To"] = notification.recipient

    msg.attach(MIMEText(f"{notification.title}\n\n{notification.message}", "plain"))
    msg.attach(MIMEText(_build_html_body(notification), "html"))

    try:
        await aiosmtplib.send(
            msg,
            hostname=SMTP_HOST,
            port=SMTP_PORT,
            username=SMTP_USERNAME,
            password=SMTP_PASSWORD,
            start_tls=SMTP_USE_TLS,
        )
        logger.info("Email sent to %s (%s)", notification.recipient, notification.kind.value)
    except Exception:
        logger.exception("Failed to send email to %s", notification.recipient)
        raise


class EmailDelivery:
    """Delivery channel backed by ``send_notification_email``."""

    async def deliver(self, notification: Notification) -> None:
        await send_notification_email(notification)
