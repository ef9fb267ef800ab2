"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
APP_VERSION: str = "0.1.0"

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "court_games.db"))

# Seconds a write waits on SQLite's lock before giving up.
DB_TIMEOUT: float = float(os.getenv("DB_TIMEOUT", "5"))

# ── JWT / identity ────────────────────────────────────────────────────────

JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production")
JWT_ALGORITHM: str = "HS256"
JWT_EXPIRY_DAYS: int = int(os.getenv("JWT_EXPIRY_DAYS", "7"))

# Comma-separated list of e-mails that carry the admin role.
ADMIN_EMAILS: frozenset[str] = frozenset(
    e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()
)

# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "noreply@courtgames.local")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default) — send if credentials are configured
      • "true"  — always send (will fail if credentials are missing)
      • "false" — never send, print to console instead
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


# ── Background workers ────────────────────────────────────────────────────

# How often the lifecycle sweep advances game statuses (seconds).
SWEEP_INTERVAL: float = float(os.getenv("SWEEP_INTERVAL", "60"))

# How often due notifications are handed to the delivery channel (seconds).
DISPATCH_INTERVAL: float = float(os.getenv("DISPATCH_INTERVAL", "30"))

# Set to "false" to run the API without background workers; start
# app.worker (court-games-worker) as a separate process instead.
WORKERS_ENABLED: bool = os.getenv("WORKERS_ENABLED", "true").lower() == "true"

# ── Booking rules ─────────────────────────────────────────────────────────

# Default reminder lead time before a game starts.
REMINDER_MINUTES_BEFORE: int = int(os.getenv("REMINDER_MINUTES_BEFORE", "60"))

# How far ahead a game may be booked.
MAX_BOOKING_HORIZON_DAYS: int = int(os.getenv("MAX_BOOKING_HORIZON_DAYS", "365"))
