"""
Shared test fixtures.

Provides a FastAPI TestClient wired to:
  • an in-memory Redis double (CSRF tokens, CAPTCHA replays)
  • the in-memory storage from ``limits`` for rate-limit counters
  • a fake CAPTCHA provider behind httpx.MockTransport
  • a recording email sender

Response-time padding is switched off so the suite stays fast.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient
from limits.aio.storage import MemoryStorage

from portfolio import config
from portfolio.dependencies import (
    get_captcha_http_client,
    get_email_sender,
    get_rate_limit_storage,
    get_store,
)
from portfolio.main import app
from tests.mocks.captcha import FakeCaptchaProvider
from tests.mocks.email import RecordingEmailSender
from tests.mocks.store import FakeClock, InMemoryStore


@dataclass
class ContactEnv:
    store: InMemoryStore
    rate_limits: MemoryStorage
    captcha: FakeCaptchaProvider
    email: RecordingEmailSender


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch) -> ContactEnv:
    """
    Internal fixture that pins configuration to known values and swaps every
    outside service (Redis, rate-limit storage, CAPTCHA provider, SMTP) for
    a test double.
    """
    # ── Config ────────────────────────────────────────────────────────
    for name, value in {
        "RESPONSE_MIN_TIME_MS": 0,
        "RESPONSE_JITTER_MS": 0,
        "REDIS_PREFIX": "test",
        "TRUSTED_PROXIES": frozenset(),
        "CONTACT_GLOBAL_RATE_LIMIT_REQUESTS": 50,
        "CONTACT_GLOBAL_RATE_LIMIT_WINDOW": "1 h",
        "CONTACT_IP_RATE_LIMIT_REQUESTS": 5,
        "CONTACT_IP_RATE_LIMIT_WINDOW": "10 m",
        "CONTACT_EMAIL_RATE_LIMIT_REQUESTS": 3,
        "CONTACT_EMAIL_RATE_LIMIT_WINDOW": "1 h",
        "CAPTCHA_PROVIDER": "turnstile",
        "TURNSTILE_SECRET_KEY": "test-secret",
        "TURNSTILE_SITE_KEY": "test-site-key",
        "CAPTCHA_FAIL_OPEN": False,
        "_TURNSTILE_ENABLED_OVERRIDE": "auto",
        "SMTP_HOST": "",
        "SMTP_USERNAME": "",
        "SMTP_PASSWORD": "",
        "FROM_EMAIL": "",
        "TO_EMAIL": "",
        "_SEND_EMAIL_ENABLED_OVERRIDE": "false",
    }.items():
        monkeypatch.setattr(config, name, value)

    # ── Doubles ───────────────────────────────────────────────────────
    env = ContactEnv(
        store=InMemoryStore(),
        rate_limits=MemoryStorage(),
        captcha=FakeCaptchaProvider(),
        email=RecordingEmailSender(),
    )
    captcha_client = env.captcha.client()

    app.dependency_overrides[get_store] = lambda: env.store
    app.dependency_overrides[get_rate_limit_storage] = lambda: env.rate_limits
    app.dependency_overrides[get_captcha_http_client] = lambda: captcha_client
    app.dependency_overrides[get_email_sender] = lambda: env.email

    yield env

    app.dependency_overrides.clear()


@pytest.fixture()
def client(_test_env: ContactEnv) -> TestClient:
    """
    FastAPI TestClient backed by the test doubles.

    Uses a context manager so the lifespan runs (startup checks/shutdown).
    """
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc


@pytest.fixture()
def csrf_token(client: TestClient) -> str:
    """A freshly issued, unused CSRF token."""
    resp = client.get("/api/csrf-token")
    assert resp.status_code == 200
    return resp.json()["csrfToken"]


@pytest.fixture()
def frozen_time(monkeypatch) -> FakeClock:
    """Replace ``time.time`` with a clock that only moves when told to."""
    clock = FakeClock()
    monkeypatch.setattr(time, "time", clock)
    return clock
