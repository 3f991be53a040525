"""
Contact form submission pipeline.

Stages run in a fixed order and the first failure short-circuits::

    validate (fields + anti-bot) → [captcha] → rate limit → sanitize → send email

Each stage raises a :class:`~portfolio.errors.ContactError` subclass; the
API layer turns it into a client-safe response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from portfolio.errors import SanitizationError, SecurityVerificationError, ServiceUnavailableError
from portfolio.models import AntiBotData, ContactFormData
from portfolio.services.anti_bot import AntiBotService
from portfolio.services.captcha import CaptchaVerifier
from portfolio.services.contact_rate_limiter import ContactRateLimiter
from portfolio.services.sanitizer import sanitize_form_data
from portfolio.services.validator import ContactFormValidator

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    """Anything that can deliver a validated submission and return a message id."""

    async def send_contact_email(self, data: ContactFormData) -> str: ...


@dataclass(frozen=True)
class ProcessResult:
    message_id: str
    headers: dict[str, str] = field(default_factory=dict)


class ContactFormProcessor:
    def __init__(
        self,
        *,
        rate_limiter: ContactRateLimiter,
        email_sender: EmailSender,
        anti_bot: AntiBotService | None = None,
        captcha: CaptchaVerifier | None = None,
        captcha_fail_open: bool = False,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._email_sender = email_sender
        self._anti_bot = anti_bot or AntiBotService()
        # None means the CAPTCHA stage is disabled.
        self._captcha = captcha
        self._captcha_fail_open = captcha_fail_open

    async def process(self, payload: Any, client_ip: str) -> ProcessResult:
        form = self._validate(payload)

        if self._captcha is not None:
            await self._verify_captcha(payload.get("turnstileToken"), client_ip)

        headers = await self._rate_limiter.check_limits(client_ip, form.email)

        sanitized = self._sanitize(form)

        message_id = await self._email_sender.send_contact_email(sanitized)
        logger.info("Contact submission accepted (ip=%s, message_id=%s)", client_ip, message_id)
        return ProcessResult(message_id=message_id, headers=headers)

    # ── Stages ─────────────────────────────────────────────────────────

    def _validate(self, payload: Any) -> ContactFormData:
        form = ContactFormValidator.validate(payload)

        anti_bot_data = ContactFormValidator.extract_anti_bot_data(payload)
        if anti_bot_data is None:
            raise SecurityVerificationError(
                "Security verification data missing",
                internal_message="Missing or malformed anti-bot data",
            )
        self._verify_anti_bot(anti_bot_data)
        return form

    def _verify_anti_bot(self, data: AntiBotData) -> None:
        result = self._anti_bot.validate(data)
        if not result.is_valid:
            raise SecurityVerificationError(
                result.reason or "Security verification failed. Please try again.",
                internal_message=f"Anti-bot verification failed: {result.reason}",
            )

    async def _verify_captcha(self, token: Any, client_ip: str) -> None:
        token = token if isinstance(token, str) else None
        try:
            await self._captcha.verify_token(token, remote_ip=client_ip)
        except ServiceUnavailableError as exc:
            if not self._captcha_fail_open:
                raise
            logger.warning("CAPTCHA provider unavailable, failing open: %s", exc.internal_message)

    @staticmethod
    def _sanitize(form: ContactFormData) -> ContactFormData:
        sanitized = sanitize_form_data(form)
        # Escaping can lengthen or reshape values, so validate once more.
        errors = ContactFormValidator.collect_errors(sanitized.model_dump(by_alias=True))
        if errors:
            raise SanitizationError(
                "Invalid form data after sanitization",
                internal_message=f"Post-sanitization validation failed on: {sorted({e['field'] for e in errors})}",
                details=errors,
            )
        return sanitized
