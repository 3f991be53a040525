"""
Field validation for contact form submissions.

Every rule is checked independently so a failed submission reports all of
its problems at once rather than only the first.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Mapping
from typing import Any

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError as PydanticValidationError

from portfolio.errors import ValidationError
from portfolio.models import AntiBotData, ContactFormData

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 100
MESSAGE_MIN_LENGTH = 50
MESSAGE_MAX_LENGTH = 1000

_INVALID_EMAIL = "Please enter a valid email address"
_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_FAKE_EMAIL_PATTERNS = ("test@test", "example@example", "user@user", "admin@admin")
_ASCII_DIGITS = re.compile(r"[0-9]+")

_FORM_FIELDS = ("firstName", "lastName", "email", "message", "mathAnswer")
_ANTI_BOT_FIELDS = ("subject", "phone", "formLoadTime", "mathAnswer", "mathNum1", "mathNum2")


# ── Field rules ────────────────────────────────────────────────────────────


def _is_only_symbols(value: str) -> bool:
    return all(unicodedata.category(ch)[0] in "PS" for ch in value)


def _name_errors(value: Any, label: str) -> list[str]:
    if not isinstance(value, str) or value == "":
        return [f"{label} is required"]

    errors = []
    if len(value) < NAME_MIN_LENGTH:
        errors.append(f"{label} must be at least {NAME_MIN_LENGTH} characters")
    if len(value) > NAME_MAX_LENGTH:
        errors.append(f"{label} must be at most {NAME_MAX_LENGTH} characters")
    if not any(ch.isalpha() for ch in value):
        errors.append(f"{label} must contain at least one letter")
    if _ASCII_DIGITS.fullmatch(value):
        errors.append(f"{label} cannot be only numbers")
    if _is_only_symbols(value):
        errors.append(f"{label} cannot be only symbols")
    return errors


def is_valid_email(value: Any) -> bool:
    """Syntactic address check (no DNS / deliverability lookups)."""
    if not isinstance(value, str) or not _EMAIL_PATTERN.match(value):
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _has_valid_domain(value: str) -> bool:
    parts = value.split("@")
    if len(parts) != 2:
        return False
    labels = parts[1].split(".")
    return len(labels) >= 2 and len(labels[-1]) >= 2


def _email_errors(value: Any) -> list[str]:
    if not isinstance(value, str) or value == "":
        return ["Email is required"]

    errors = []
    if not is_valid_email(value):
        errors.append(_INVALID_EMAIL)
    if len(value) > EMAIL_MAX_LENGTH:
        errors.append(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    lowered = value.lower()
    if any(pattern in lowered for pattern in _FAKE_EMAIL_PATTERNS):
        errors.append(_INVALID_EMAIL)
    if ".." in value:
        errors.append(_INVALID_EMAIL)
    if not _has_valid_domain(value):
        errors.append(_INVALID_EMAIL)
    return errors


def _message_errors(value: Any) -> list[str]:
    if not isinstance(value, str) or value == "":
        return ["Message is required"]

    errors = []
    if len(value) < MESSAGE_MIN_LENGTH:
        errors.append(f"Message must be at least {MESSAGE_MIN_LENGTH} characters")
    if len(value) > MESSAGE_MAX_LENGTH:
        errors.append(f"Message must be at most {MESSAGE_MAX_LENGTH} characters")
    if len(value.strip()) < MESSAGE_MIN_LENGTH:
        errors.append(f"Message must contain at least {MESSAGE_MIN_LENGTH} non-whitespace characters")
    return errors


def _math_answer_errors(value: Any) -> list[str]:
    if isinstance(value, int) and not isinstance(value, bool):
        return []
    if not isinstance(value, str) or not value.strip():
        return ["Please answer the math question"]
    return []


_RULES: dict[str, Callable[[Any], list[str]]] = {
    "firstName": lambda v: _name_errors(v, "First name"),
    "lastName": lambda v: _name_errors(v, "Last name"),
    "email": _email_errors,
    "message": _message_errors,
    "mathAnswer": _math_answer_errors,
}


# ── Validator ──────────────────────────────────────────────────────────────


class ContactFormValidator:
    """Validates raw submissions into :class:`ContactFormData`."""

    @staticmethod
    def collect_errors(payload: Mapping[str, Any]) -> list[dict[str, str]]:
        """Return ``{"field", "message"}`` for every violated rule, deduplicated."""
        errors: list[dict[str, str]] = []
        for field, rule in _RULES.items():
            seen: set[str] = set()
            for message in rule(payload.get(field)):
                if message not in seen:
                    seen.add(message)
                    errors.append({"field": field, "message": message})
        return errors

    @classmethod
    def validate(cls, payload: Any) -> ContactFormData:
        """Validate *payload* or raise :class:`ValidationError` listing every problem."""
        if not isinstance(payload, Mapping):
            raise ValidationError(
                "Invalid form data",
                internal_message=f"Expected a JSON object, got {type(payload).__name__}",
            )

        errors = cls.collect_errors(payload)
        if errors:
            raise ValidationError(
                "; ".join(e["message"] for e in errors),
                internal_message=f"Contact form validation failed on: {sorted({e['field'] for e in errors})}",
                details=errors,
            )

        data = cls.extract_form_data(payload)
        data["mathAnswer"] = str(data["mathAnswer"])
        return ContactFormData.model_validate(data)

    @staticmethod
    def extract_form_data(payload: Mapping[str, Any]) -> dict[str, Any]:
        return {field: payload.get(field) for field in _FORM_FIELDS}

    @staticmethod
    def extract_anti_bot_data(payload: Any) -> AntiBotData | None:
        """Pull the anti-bot fields out of *payload*; None when missing or malformed."""
        if not isinstance(payload, Mapping):
            return None
        raw = {field: payload[field] for field in _ANTI_BOT_FIELDS if payload.get(field) is not None}
        if "mathAnswer" in raw:
            raw["mathAnswer"] = str(raw["mathAnswer"])
        try:
            return AntiBotData.model_validate(raw)
        except PydanticValidationError:
            return None
