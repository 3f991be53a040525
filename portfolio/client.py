"""
Async HTTP client for the contact form API.

Mirrors what the browser form does: read the service config, fetch a
single-use CSRF token, post the submission, and on a CSRF rejection refresh
the token and try exactly once more.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from portfolio.models import CsrfTokenResponse, FormInitialData, ServiceConfig

logger = logging.getLogger(__name__)

_CSRF_MARKERS = ("403", "forbidden", "csrf", "token")


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    status_code: int = 0  # 0 when the request never got a response
    message: str = ""


class ContactFormClient:
    """Talks to ``/api/*`` on *base_url*; pass *transport* to stub the network."""

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    # ── Read endpoints ────────────────────────────────────────────────

    async def get_service_config(self) -> ServiceConfig:
        resp = await self._client.get("/api/email-service-check")
        resp.raise_for_status()
        return ServiceConfig.model_validate(resp.json())

    async def get_challenge(self) -> FormInitialData:
        resp = await self._client.get("/api/contact/challenge")
        resp.raise_for_status()
        return FormInitialData.model_validate(resp.json())

    async def get_csrf_token(self) -> str:
        resp = await self._client.get("/api/csrf-token")
        resp.raise_for_status()
        return CsrfTokenResponse.model_validate(resp.json()).csrf_token

    # ── Submission ────────────────────────────────────────────────────

    async def submit_form(
        self,
        form: dict[str, Any],
        csrf_token: str,
        turnstile_token: str | None = None,
    ) -> SubmissionResult:
        """Post one submission with the given tokens; never raises for HTTP errors."""
        payload = {**form, "csrfToken": csrf_token}
        if turnstile_token:
            payload["turnstileToken"] = turnstile_token

        try:
            resp = await self._client.post("/api/contact", json=payload)
        except httpx.HTTPError as exc:
            return SubmissionResult(success=False, message=str(exc) or "Network error occurred")

        if resp.is_success:
            return SubmissionResult(success=True, status_code=resp.status_code)

        try:
            message = resp.json().get("message")
        except ValueError:
            message = None
        return SubmissionResult(
            success=False,
            status_code=resp.status_code,
            message=message or f"Request failed with status {resp.status_code}",
        )

    async def submit(
        self,
        form: dict[str, Any],
        turnstile_token: str | None = None,
    ) -> SubmissionResult:
        """
        Fetch a CSRF token and submit; retry once with a fresh token if the
        server rejects the first one.

        Any other failure, a second CSRF failure, or a failure to refresh the
        token is returned unchanged.
        """
        try:
            token = await self.get_csrf_token()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to get CSRF token: %s", exc)
            return SubmissionResult(success=False, message="Failed to get CSRF token")

        result = await self.submit_form(form, token, turnstile_token)
        if result.success or not (result.status_code == 403 or self.is_csrf_error(result.message)):
            return result

        logger.info("Submission rejected by CSRF check, retrying with a fresh token")
        try:
            token = await self.get_csrf_token()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to refresh CSRF token: %s", exc)
            return result

        return await self.submit_form(form, token, turnstile_token)

    @staticmethod
    def is_csrf_error(message: str) -> bool:
        lowered = message.lower()
        return any(marker in lowered for marker in _CSRF_MARKERS)
