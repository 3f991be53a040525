"""
FastAPI application for the portfolio site API.

Run with:  uvicorn portfolio.main:app --reload
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portfolio import config
from portfolio.dependencies import get_client_ip
from portfolio.errors import ContactError
from portfolio.routers import config_check, contact, csrf, health
from portfolio.services.rate_limiter import parse_window
from portfolio.store import create_rate_limit_storage, create_store

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ───────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: check rate-limit windows, open the Redis-backed stores and the CAPTCHA client."""
    # A bad window is a deployment error; refuse to start rather than 500 later.
    for window in (
        config.CONTACT_GLOBAL_RATE_LIMIT_WINDOW,
        config.CONTACT_IP_RATE_LIMIT_WINDOW,
        config.CONTACT_EMAIL_RATE_LIMIT_WINDOW,
    ):
        parse_window(window)

    app.state.store = create_store(config.REDIS_URL)
    app.state.rate_limit_storage = create_rate_limit_storage(config.REDIS_URL, config.REDIS_PREFIX)
    app.state.captcha_http_client = httpx.AsyncClient()
    logger.info(
        "Portfolio API starting (environment=%s, email=%s, captcha=%s)",
        config.ENVIRONMENT,
        "smtp" if config.email_sending_enabled() else "console",
        config.CAPTCHA_PROVIDER if config.captcha_enabled() else "disabled",
    )
    yield
    await app.state.captcha_http_client.aclose()
    await app.state.store.aclose()
    logger.info("Portfolio API stopped")


app = FastAPI(
    title="Portfolio Site API",
    description="Contact form submission pipeline with layered abuse protection",
    version=config.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-CSRF-Token"],
    expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)


# ── Error handling ─────────────────────────────────────────────────────────


def _request_context(request: Request) -> dict[str, str]:
    return {
        "request_id": str(uuid.uuid4()),
        "ip": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "path": request.url.path,
    }


@app.exception_handler(ContactError)
async def contact_error_handler(request: Request, exc: ContactError) -> JSONResponse:
    log = logger.warning if exc.category == "client" else logger.error
    log(
        "%s (%s): %s | internal=%s | metadata=%s | context=%s",
        exc.code,
        exc.category,
        exc.message,
        exc.internal_message,
        exc.metadata,
        _request_context(request),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, **exc.response_metadata},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error | context=%s", _request_context(request), exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ── Routers ────────────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(csrf.router)
app.include_router(contact.router)
app.include_router(config_check.router)
