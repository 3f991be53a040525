"""
FastAPI dependencies.

Long-lived clients (Redis, the rate-limit storage, the CAPTCHA HTTP client)
are created in the app lifespan and stored on ``app.state``; the services
built on top of them are cheap and are assembled per request from the
current settings. Tests swap any of these through
``app.dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

import httpx
from fastapi import Depends, Request
from limits.aio.storage import Storage

from portfolio import config
from portfolio.errors import MethodNotAllowedError
from portfolio.services.captcha import CaptchaVerifier
from portfolio.services.contact_rate_limiter import ContactRateLimiter
from portfolio.services.csrf import CsrfService
from portfolio.services.email import EmailService
from portfolio.services.processor import ContactFormProcessor, EmailSender
from portfolio.services.timing import ResponseTimeProtector
from portfolio.store import KeyValueStore


# ── Request context ───────────────────────────────────────────────────────


def get_client_ip(request: Request) -> str:
    """Client IP used for per-IP limits and logging.

    X-Forwarded-For is only read when the socket peer is one of
    ``TRUSTED_PROXIES``; the nearest hop not added by a trusted proxy wins.
    """
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded or peer not in config.TRUSTED_PROXIES:
        return peer

    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in config.TRUSTED_PROXIES:
            return hop
    return hops[0] if hops else peer


def get_response_time_protector() -> ResponseTimeProtector:
    return ResponseTimeProtector(
        min_time_ms=config.RESPONSE_MIN_TIME_MS,
        jitter_ms=config.RESPONSE_JITTER_MS,
    )


# ── Shared clients ────────────────────────────────────────────────────────


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_captcha_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.captcha_http_client


def get_rate_limit_storage(request: Request) -> Storage:
    return request.app.state.rate_limit_storage


# ── Services ──────────────────────────────────────────────────────────────


def get_csrf_service(store: Annotated[KeyValueStore, Depends(get_store)]) -> CsrfService:
    return CsrfService(store)


def get_email_sender() -> EmailSender:
    return EmailService.from_config()


def get_rate_limiter(
    storage: Annotated[Storage, Depends(get_rate_limit_storage)],
) -> ContactRateLimiter:
    return ContactRateLimiter.from_config(storage)


def get_captcha_verifier(store: KeyValueStore, http_client: httpx.AsyncClient) -> CaptchaVerifier | None:
    """The configured verifier, or None when the CAPTCHA stage is disabled.

    Raises InternalServerError when the CAPTCHA settings are incomplete.
    """
    if not config.captcha_enabled():
        return None
    return CaptchaVerifier.from_config(store, http_client)


def get_processor_factory(
    rate_limiter: Annotated[ContactRateLimiter, Depends(get_rate_limiter)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
    store: Annotated[KeyValueStore, Depends(get_store)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_captcha_http_client)],
) -> Callable[[], ContactFormProcessor]:
    """Build the processor on demand.

    Configuration errors then surface inside the handler's padded block
    instead of during dependency resolution.
    """

    def build() -> ContactFormProcessor:
        return ContactFormProcessor(
            rate_limiter=rate_limiter,
            email_sender=email_sender,
            captcha=get_captcha_verifier(store, http_client),
            captcha_fail_open=config.CAPTCHA_FAIL_OPEN,
        )

    return build


CsrfServiceDep = Annotated[CsrfService, Depends(get_csrf_service)]
ProcessorFactoryDep = Annotated[Callable[[], ContactFormProcessor], Depends(get_processor_factory)]
ClientIp = Annotated[str, Depends(get_client_ip)]


# ── Method guard ──────────────────────────────────────────────────────────


def reject_method(allowed: str):
    """Endpoint that answers every other verb on a path with 405 + ``Allow``."""

    async def _reject(request: Request) -> None:
        raise MethodNotAllowedError(request.method, allowed)

    return _reject
