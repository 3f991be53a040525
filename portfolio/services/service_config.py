"""
Snapshot of which optional contact-form services are enabled and ready.

Exposed to the browser so the form can adapt (e.g. skip rendering the
CAPTCHA widget). Computed fresh on every call from the current settings.
"""

from __future__ import annotations

import logging

from portfolio import config
from portfolio.models import EmailServiceStatus, ServiceConfig, ServiceStatuses, TurnstileServiceStatus
from portfolio.services.email import EmailConfiguration

logger = logging.getLogger(__name__)


def get_service_config() -> ServiceConfig:
    email_config = EmailConfiguration.from_config()
    problems = email_config.problems()
    email = EmailServiceStatus(enabled=email_config.send_enabled, ready=not problems)
    if email.enabled and problems:
        logger.error("Email service not ready: %s", ", ".join(problems))

    captcha_on = config.captcha_enabled()
    turnstile = TurnstileServiceStatus(
        enabled=captcha_on,
        ready=bool(config.TURNSTILE_SECRET_KEY and config.TURNSTILE_SITE_KEY),
        site_key=(config.TURNSTILE_SITE_KEY or None) if captcha_on else None,
    )
    if turnstile.enabled and not turnstile.ready:
        logger.error("CAPTCHA enabled but TURNSTILE_SECRET_KEY/TURNSTILE_SITE_KEY incomplete")

    healthy = (email.ready or not email.enabled) and (turnstile.ready or not turnstile.enabled)
    return ServiceConfig(
        status="healthy" if healthy else "degraded",
        services=ServiceStatuses(email=email, turnstile=turnstile),
    )
