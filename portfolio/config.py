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
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")
APP_VERSION = "0.1.0"

CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Peers whose X-Forwarded-For header is believed (e.g. the reverse proxy).
# Everyone else is identified by the socket address alone.
TRUSTED_PROXIES: frozenset[str] = frozenset(
    proxy.strip() for proxy in os.getenv("TRUSTED_PROXIES", "").split(",") if proxy.strip()
)

# ── Redis ─────────────────────────────────────────────────────────────────

REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
# Key prefix for rate-limit counters (lets e2e runs use their own keys).
REDIS_PREFIX: str = os.getenv("REDIS_PREFIX", "portfolio")

# ── Rate limits ───────────────────────────────────────────────────────────

# Windows use "<integer> <unit>" with unit one of s, m, h, d.
CONTACT_GLOBAL_RATE_LIMIT_REQUESTS: int = int(os.getenv("CONTACT_GLOBAL_RATE_LIMIT_REQUESTS", "50"))
CONTACT_GLOBAL_RATE_LIMIT_WINDOW: str = os.getenv("CONTACT_GLOBAL_RATE_LIMIT_WINDOW", "1 h")
CONTACT_IP_RATE_LIMIT_REQUESTS: int = int(os.getenv("CONTACT_IP_RATE_LIMIT_REQUESTS", "5"))
CONTACT_IP_RATE_LIMIT_WINDOW: str = os.getenv("CONTACT_IP_RATE_LIMIT_WINDOW", "10 m")
CONTACT_EMAIL_RATE_LIMIT_REQUESTS: int = int(os.getenv("CONTACT_EMAIL_RATE_LIMIT_REQUESTS", "3"))
CONTACT_EMAIL_RATE_LIMIT_WINDOW: str = os.getenv("CONTACT_EMAIL_RATE_LIMIT_WINDOW", "1 h")

# ── CAPTCHA ───────────────────────────────────────────────────────────────

# "turnstile" (Cloudflare) or "recaptcha" (Google)
CAPTCHA_PROVIDER: str = os.getenv("CAPTCHA_PROVIDER", "turnstile").lower()
TURNSTILE_SECRET_KEY: str = os.getenv("TURNSTILE_SECRET_KEY", "")
TURNSTILE_SITE_KEY: str = os.getenv("TURNSTILE_SITE_KEY", "")
CAPTCHA_TIMEOUT_MS: int = int(os.getenv("CAPTCHA_TIMEOUT_MS", "10000"))
# Let submissions through when the provider itself is unreachable.
CAPTCHA_FAIL_OPEN: bool = os.getenv("CAPTCHA_FAIL_OPEN", "false").lower() == "true"
RECAPTCHA_SCORE_THRESHOLD: float = float(os.getenv("RECAPTCHA_SCORE_THRESHOLD", "0.5"))

_TURNSTILE_ENABLED_OVERRIDE: str = os.getenv("TURNSTILE_ENABLED", "auto")


def captcha_enabled() -> bool:
    """True when submissions must pass CAPTCHA verification.

    Controlled by TURNSTILE_ENABLED env var:
      • "auto" (default): verify if a secret key is configured
      • "true" : always verify (misconfiguration surfaces as a 500)
      • "false": skip the CAPTCHA stage entirely
    """
    if _TURNSTILE_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _TURNSTILE_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(TURNSTILE_SECRET_KEY)


# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

FROM_EMAIL: str = os.getenv("FROM_EMAIL", "")
TO_EMAIL: str = os.getenv("TO_EMAIL", "")
EMAIL_SENDER_NAME: str = os.getenv("EMAIL_SENDER_NAME", "Portfolio Contact Form")
EMAIL_RECIPIENT_NAME: str = os.getenv("EMAIL_RECIPIENT_NAME", "")

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SEND_EMAIL_ENABLED_OVERRIDE: str = os.getenv("SEND_EMAIL_ENABLED", "auto")


def email_sending_enabled() -> bool:
    """True when contact submissions should actually be emailed.

    Controlled by SEND_EMAIL_ENABLED env var:
      • "auto" (default): send if SMTP credentials are configured
      • "true" : always send (will fail if configuration is missing)
      • "false": never send, log to console instead
    """
    if _SEND_EMAIL_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SEND_EMAIL_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


# ── Response timing ───────────────────────────────────────────────────────

# Floor and jitter applied to contact/CSRF responses.
RESPONSE_MIN_TIME_MS: int = int(os.getenv("RESPONSE_MIN_TIME_MS", "500"))
RESPONSE_JITTER_MS: int = int(os.getenv("RESPONSE_JITTER_MS", "100"))
