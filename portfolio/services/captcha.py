"""
Server-side CAPTCHA verification (Cloudflare Turnstile or Google reCAPTCHA).

Each attempt goes: input check → replay check → siteverify call →
error-code classification. Empty and replayed tokens are rejected without
touching the network.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from portfolio import config
from portfolio.errors import InternalServerError, SecurityVerificationError, ServiceUnavailableError
from portfolio.services.token_tracker import CaptchaTokenTracker
from portfolio.store import KeyValueStore

logger = logging.getLogger(__name__)

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"

_PROVIDERS = {
    "turnstile": (TURNSTILE_VERIFY_URL, "turnstile:used:"),
    "recaptcha": (RECAPTCHA_VERIFY_URL, "recaptcha:used:"),
}

# Provider error codes with a user-facing message of their own.
_CLIENT_ERROR_MESSAGES = {
    "timeout-or-duplicate": "Security verification expired. Please refresh and try again.",
    "invalid-input-response": "Invalid security verification. Please complete the challenge again.",
}
_GENERIC_FAILURE = "Security verification failed. Please try again."


@dataclass(frozen=True)
class VerificationResult:
    """Audit data from a successful verification."""

    hostname: str | None = None
    challenge_ts: str | None = None
    score: float | None = None


class CaptchaVerifier:
    def __init__(
        self,
        secret_key: str,
        tracker: CaptchaTokenTracker,
        http_client: httpx.AsyncClient,
        *,
        verify_url: str = TURNSTILE_VERIFY_URL,
        timeout_ms: int = 10000,
        score_threshold: float | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._tracker = tracker
        self._http = http_client
        self._verify_url = verify_url
        self._timeout = timeout_ms / 1000
        self._score_threshold = score_threshold

    @classmethod
    def from_config(cls, store: KeyValueStore, http_client: httpx.AsyncClient) -> CaptchaVerifier:
        """Build the verifier for ``CAPTCHA_PROVIDER``.

        A missing secret is reported as a server configuration error.
        """
        provider = config.CAPTCHA_PROVIDER
        if provider not in _PROVIDERS:
            raise InternalServerError(
                "Security verification configuration error",
                internal_message=f"Unknown CAPTCHA_PROVIDER {provider!r}",
            )
        if not config.TURNSTILE_SECRET_KEY:
            raise InternalServerError(
                "Security verification configuration error",
                internal_message="TURNSTILE_SECRET_KEY is not configured",
            )

        verify_url, prefix = _PROVIDERS[provider]
        return cls(
            config.TURNSTILE_SECRET_KEY,
            CaptchaTokenTracker(store, prefix=prefix),
            http_client,
            verify_url=verify_url,
            timeout_ms=config.CAPTCHA_TIMEOUT_MS,
            score_threshold=config.RECAPTCHA_SCORE_THRESHOLD if provider == "recaptcha" else None,
        )

    async def verify_token(self, token: str | None, remote_ip: str | None = None) -> VerificationResult:
        """Verify *token*, raising a pipeline error on any failure."""
        if not token:
            raise SecurityVerificationError(
                "Security verification required",
                internal_message="CAPTCHA token is missing",
            )

        tracking = await self._tracker.check_and_mark_used(token)
        if tracking.is_used:
            raise SecurityVerificationError(
                "Security verification has already been used",
                internal_message="CAPTCHA token replay attack detected",
                metadata={"token_hash": self._tracker.hash_token(token)},
            )

        data = await self._call_siteverify(token, remote_ip)

        if not data.get("success"):
            self._raise_for_error_codes(data)

        score = data.get("score")
        if self._score_threshold is not None and score is not None and score < self._score_threshold:
            raise SecurityVerificationError(
                _GENERIC_FAILURE,
                internal_message=f"CAPTCHA score {score} below threshold {self._score_threshold}",
            )

        result = VerificationResult(
            hostname=data.get("hostname"),
            challenge_ts=data.get("challenge_ts"),
            score=score,
        )
        logger.info(
            "CAPTCHA verification successful (hostname=%s, challenge_ts=%s)",
            result.hostname,
            result.challenge_ts,
        )
        return result

    # ── Internals ──────────────────────────────────────────────────────

    async def _call_siteverify(self, token: str, remote_ip: str | None) -> dict:
        form = {"secret": self._secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            resp = await self._http.post(self._verify_url, data=form, timeout=self._timeout)
        except httpx.TimeoutException:
            logger.error("CAPTCHA verification timed out after %.1fs", self._timeout)
            raise ServiceUnavailableError(
                "Security verification timeout",
                internal_message=f"siteverify request to {self._verify_url} timed out",
            ) from None
        except httpx.HTTPError as exc:
            logger.error("CAPTCHA verification request failed: %s", exc)
            raise ServiceUnavailableError(
                "Security verification error",
                internal_message=f"siteverify request failed: {exc!r}",
            ) from exc

        if not resp.is_success:
            logger.error("CAPTCHA API error: %d %s", resp.status_code, resp.reason_phrase)
            raise ServiceUnavailableError(
                "Security verification service unavailable",
                internal_message=f"siteverify returned {resp.status_code}: {resp.reason_phrase}",
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise ServiceUnavailableError(
                "Security verification error",
                internal_message="siteverify returned a non-JSON body",
            ) from exc
        if not isinstance(data, dict):
            raise ServiceUnavailableError(
                "Security verification error",
                internal_message=f"siteverify returned {type(data).__name__}, expected an object",
            )
        return data

    @staticmethod
    def _raise_for_error_codes(data: dict) -> None:
        error_codes: list[str] = list(data.get("error-codes") or [])
        logger.warning(
            "CAPTCHA verification failed (error_codes=%s, hostname=%s)",
            error_codes,
            data.get("hostname"),
        )

        if "invalid-input-secret" in error_codes:
            # Operator misconfiguration, not the user's fault.
            raise InternalServerError(
                "Security verification configuration error",
                internal_message="Invalid CAPTCHA secret key",
                details=error_codes,
            )

        message = _GENERIC_FAILURE
        for code, text in _CLIENT_ERROR_MESSAGES.items():
            if code in error_codes:
                message = text
                break

        raise SecurityVerificationError(
            message,
            internal_message=f"CAPTCHA verification failed: {', '.join(error_codes) or 'no error codes'}",
            details=error_codes,
        )
