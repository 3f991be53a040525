"""Pydantic models shared by the contact pipeline and the API routers."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    """Accepts and emits the camelCase names the browser form uses."""

    model_config = ConfigDict(populate_by_name=True)


# ── Submission ─────────────────────────────────────────────────────────────


class ContactFormData(_CamelModel):
    """A submission that passed field validation."""

    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    message: str
    math_answer: str = Field(alias="mathAnswer")


class AntiBotData(_CamelModel):
    """Honeypots, load timestamp and the echoed math challenge."""

    subject: str = ""
    phone: str = ""
    form_load_time: int = Field(alias="formLoadTime")
    math_answer: str = Field(default="", alias="mathAnswer")
    math_num1: int = Field(alias="mathNum1", ge=1, le=9)
    math_num2: int = Field(alias="mathNum2", ge=1, le=9)


class MathChallenge(_CamelModel):
    num1: int
    num2: int
    question: str
    correct_answer: int = Field(alias="correctAnswer", exclude=True)


class FormInitialData(_CamelModel):
    """What the form embeds at load time (honeypots start empty)."""

    subject: str = ""
    phone: str = ""
    form_load_time: int = Field(alias="formLoadTime")
    math_num1: int = Field(alias="mathNum1")
    math_num2: int = Field(alias="mathNum2")
    question: str


# ── Responses ──────────────────────────────────────────────────────────────


class MessageResponse(BaseModel):
    message: str


class CsrfTokenResponse(_CamelModel):
    csrf_token: str = Field(alias="csrfToken")


class EmailServiceStatus(BaseModel):
    enabled: bool
    ready: bool


class TurnstileServiceStatus(_CamelModel):
    enabled: bool
    ready: bool
    site_key: str | None = Field(default=None, alias="siteKey")


class ServiceStatuses(BaseModel):
    email: EmailServiceStatus
    turnstile: TurnstileServiceStatus


class ServiceConfig(BaseModel):
    """Which optional protections are enabled and ready, for the form to adapt."""

    status: Literal["healthy", "degraded"]
    services: ServiceStatuses


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
