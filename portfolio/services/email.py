"""
Email service: delivers contact form submissions via SMTP.

In development (sending disabled), the submission is logged to the console
so you can see what *would* be sent without configuring a mail server.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

import aiosmtplib

from portfolio import config
from portfolio.errors import EmailServiceError
from portfolio.models import ContactFormData
from portfolio.services.validator import is_valid_email

logger = logging.getLogger(__name__)

_SEND_FAILED = "Failed to send message. Please try again later."


@dataclass(frozen=True)
class EmailConfiguration:
    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    smtp_use_tls: bool
    from_email: str
    to_email: str
    sender_name: str
    recipient_name: str
    send_enabled: bool

    @classmethod
    def from_config(cls) -> EmailConfiguration:
        return cls(
            smtp_host=config.SMTP_HOST,
            smtp_port=config.SMTP_PORT,
            smtp_username=config.SMTP_USERNAME,
            smtp_password=config.SMTP_PASSWORD,
            smtp_use_tls=config.SMTP_USE_TLS,
            from_email=config.FROM_EMAIL,
            to_email=config.TO_EMAIL,
            sender_name=config.EMAIL_SENDER_NAME,
            recipient_name=config.EMAIL_RECIPIENT_NAME,
            send_enabled=config.email_sending_enabled(),
        )

    def problems(self) -> list[str]:
        """Human-readable list of missing or invalid settings (empty when ready)."""
        required = {
            "SMTP_HOST": self.smtp_host,
            "SMTP_USERNAME": self.smtp_username,
            "SMTP_PASSWORD": self.smtp_password,
            "FROM_EMAIL": self.from_email,
            "TO_EMAIL": self.to_email,
            "EMAIL_SENDER_NAME": self.sender_name,
        }
        problems = [f"{name} is not configured" for name, value in required.items() if not value]
        for name, value in (("FROM_EMAIL", self.from_email), ("TO_EMAIL", self.to_email)):
            if value and not is_valid_email(value):
                problems.append(f"{name} is not a valid email address")
        return problems

    @property
    def is_ready(self) -> bool:
        return not self.problems()


# ── Body builders ──────────────────────────────────────────────────────────


def _build_plain_body(data: ContactFormData, submitted_at: str) -> str:
    return (
        "New Contact Form Submission\n\n"
        f"Name: {data.first_name} {data.last_name}\n"
        f"Email: {data.email}\n\n"
        f"Message:\n{data.message}\n\n"
        f"Submitted: {submitted_at}\n"
    )


def _build_html_body(data: ContactFormData, submitted_at: str) -> str:
    """Fields are already HTML-escaped by the sanitizer."""
    message = data.message.replace("\n", "<br>")
    return f"""
    <html>
    <body style="font-family:sans-serif;color:#333">
      <h2>New Contact Form Submission</h2>
      <p><strong>Name:</strong> {data.first_name} {data.last_name}</p>
      <p><strong>Email:</strong> {data.email}</p>
      <div style="background:#f9f9f9;padding:12px;border-left:4px solid #2563eb">{message}</div>
      <p style="margin-top:1em;font-size:0.9em;color:#888">Submitted: {submitted_at}</p>
    </body>
    </html>
    """


# ── Service ────────────────────────────────────────────────────────────────


class EmailService:
    """Sends one email per accepted submission; returns the Message-ID."""

    def __init__(self, email_config: EmailConfiguration) -> None:
        self._config = email_config

    @classmethod
    def from_config(cls) -> EmailService:
        return cls(EmailConfiguration.from_config())

    async def send_contact_email(self, data: ContactFormData) -> str:
        cfg = self._config
        subject = f"New Message from {data.first_name} {data.last_name}"

        # ── Console fallback (dev mode) ───────────────────────────────────
        if not cfg.send_enabled:
            message_id = f"dev-{uuid.uuid4()}"
            logger.info(
                "📧 [DEV] Would send contact email:\n  Subject: %s\n  Reply-To: %s\n  Message-ID: %s",
                subject,
                data.email,
                message_id,
            )
            return message_id

        problems = cfg.problems()
        if problems:
            raise EmailServiceError(
                "Server configuration error",
                is_config_error=True,
                internal_message=f"Email service configuration invalid: {', '.join(problems)}",
            )

        # ── Real SMTP send ────────────────────────────────────────────────
        submitted_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        message_id = make_msgid(domain=cfg.from_email.rpartition("@")[2])

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((cfg.sender_name, cfg.from_email))
        msg["To"] = formataddr((cfg.recipient_name, cfg.to_email)) if cfg.recipient_name else cfg.to_email
        msg["Reply-To"] = data.email
        msg["Message-ID"] = message_id
        msg.attach(MIMEText(_build_plain_body(data, submitted_at), "plain"))
        msg.attach(MIMEText(_build_html_body(data, submitted_at), "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=cfg.smtp_host,
                port=cfg.smtp_port,
                username=cfg.smtp_username,
                password=cfg.smtp_password,
                start_tls=cfg.smtp_use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.exception("Failed to send contact email to %s", cfg.to_email)
            raise EmailServiceError(
                _SEND_FAILED,
                internal_message=f"SMTP send failed: {exc!r}",
            ) from exc

        logger.info("Contact email sent (message_id=%s)", message_id)
        return message_id
