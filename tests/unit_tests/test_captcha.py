"""Tests for server-side CAPTCHA verification against a fake provider."""

import httpx
import pytest

from portfolio import config
from portfolio.errors import InternalServerError, SecurityVerificationError, ServiceUnavailableError
from portfolio.services.captcha import RECAPTCHA_VERIFY_URL, TURNSTILE_VERIFY_URL, CaptchaVerifier
from portfolio.services.token_tracker import CaptchaTokenTracker
from tests.mocks.captcha import FakeCaptchaProvider
from tests.mocks.store import FailingStore, InMemoryStore


def _verifier(provider: FakeCaptchaProvider, store=None, **kwargs) -> CaptchaVerifier:
    return CaptchaVerifier(
        "test-secret",
        CaptchaTokenTracker(store or InMemoryStore()),
        provider.client(),
        **kwargs,
    )


class TestVerifyToken:
    @pytest.mark.asyncio
    async def test_success_returns_audit_data(self):
        provider = FakeCaptchaProvider()
        result = await _verifier(provider).verify_token("tok-1", remote_ip="203.0.113.7")

        assert result.hostname == "portfolio.local"
        assert result.challenge_ts == "2026-01-01T12:00:00Z"
        assert provider.last_form() == {"secret": "test-secret", "response": "tok-1", "remoteip": "203.0.113.7"}
        assert str(provider.requests[0].url) == TURNSTILE_VERIFY_URL

    @pytest.mark.asyncio
    async def test_remote_ip_is_optional(self):
        provider = FakeCaptchaProvider()
        await _verifier(provider).verify_token("tok-1")
        assert "remoteip" not in provider.last_form()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, ""])
    async def test_missing_token_never_calls_provider(self, token):
        provider = FakeCaptchaProvider()
        with pytest.raises(SecurityVerificationError, match="Security verification required"):
            await _verifier(provider).verify_token(token)
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_replayed_token_never_calls_provider_twice(self):
        provider = FakeCaptchaProvider()
        verifier = _verifier(provider)
        await verifier.verify_token("tok-1")

        with pytest.raises(SecurityVerificationError, match="already been used") as exc_info:
            await verifier.verify_token("tok-1")
        assert exc_info.value.status_code == 400
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_replay_store_failure_fails_open(self):
        provider = FakeCaptchaProvider()
        verifier = _verifier(provider, store=FailingStore())

        await verifier.verify_token("tok-1")
        await verifier.verify_token("tok-1")
        assert provider.calls == 2


class TestProviderErrorCodes:
    @pytest.mark.asyncio
    async def test_invalid_secret_is_a_server_error(self):
        provider = FakeCaptchaProvider()
        provider.fail_with("invalid-input-secret")

        with pytest.raises(InternalServerError) as exc_info:
            await _verifier(provider).verify_token("tok-1")
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Security verification configuration error"

    @pytest.mark.asyncio
    async def test_timeout_or_duplicate(self):
        provider = FakeCaptchaProvider()
        provider.fail_with("timeout-or-duplicate")

        with pytest.raises(SecurityVerificationError, match="expired") as exc_info:
            await _verifier(provider).verify_token("tok-1")
        assert exc_info.value.details == ["timeout-or-duplicate"]

    @pytest.mark.asyncio
    async def test_invalid_input_response(self):
        provider = FakeCaptchaProvider()
        provider.fail_with("invalid-input-response")

        with pytest.raises(SecurityVerificationError, match="complete the challenge again"):
            await _verifier(provider).verify_token("tok-1")

    @pytest.mark.asyncio
    async def test_unknown_codes_get_generic_message(self):
        provider = FakeCaptchaProvider()
        provider.fail_with("bad-request")

        with pytest.raises(SecurityVerificationError) as exc_info:
            await _verifier(provider).verify_token("tok-1")
        assert exc_info.value.message == "Security verification failed. Please try again."

    @pytest.mark.asyncio
    async def test_failure_without_codes(self):
        provider = FakeCaptchaProvider({"success": False})
        with pytest.raises(SecurityVerificationError, match="Please try again"):
            await _verifier(provider).verify_token("tok-1")


class TestProviderUnavailable:
    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = FakeCaptchaProvider()
        provider.error = httpx.ReadTimeout("timed out")

        with pytest.raises(ServiceUnavailableError, match="timeout") as exc_info:
            await _verifier(provider).verify_token("tok-1")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_connection_error(self):
        provider = FakeCaptchaProvider()
        provider.error = httpx.ConnectError("connection refused")

        with pytest.raises(ServiceUnavailableError, match="Security verification error"):
            await _verifier(provider).verify_token("tok-1")

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        provider = FakeCaptchaProvider(status_code=502)
        with pytest.raises(ServiceUnavailableError, match="service unavailable"):
            await _verifier(provider).verify_token("tok-1")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        provider = FakeCaptchaProvider()
        provider.text = "<html>oops</html>"
        with pytest.raises(ServiceUnavailableError, match="Security verification error"):
            await _verifier(provider).verify_token("tok-1")


class TestScoreThreshold:
    @pytest.mark.asyncio
    async def test_low_score_is_rejected(self):
        provider = FakeCaptchaProvider({"success": True, "score": 0.2})
        with pytest.raises(SecurityVerificationError):
            await _verifier(provider, score_threshold=0.5).verify_token("tok-1")

    @pytest.mark.asyncio
    async def test_high_score_passes(self):
        provider = FakeCaptchaProvider({"success": True, "score": 0.9})
        result = await _verifier(provider, score_threshold=0.5).verify_token("tok-1")
        assert result.score == 0.9


class TestFromConfig:
    def test_recaptcha_provider(self, monkeypatch):
        monkeypatch.setattr(config, "CAPTCHA_PROVIDER", "recaptcha")
        monkeypatch.setattr(config, "TURNSTILE_SECRET_KEY", "secret")

        verifier = CaptchaVerifier.from_config(InMemoryStore(), httpx.AsyncClient())
        assert verifier._verify_url == RECAPTCHA_VERIFY_URL
        assert verifier._score_threshold == config.RECAPTCHA_SCORE_THRESHOLD

    def test_missing_secret(self, monkeypatch):
        monkeypatch.setattr(config, "CAPTCHA_PROVIDER", "turnstile")
        monkeypatch.setattr(config, "TURNSTILE_SECRET_KEY", "")

        with pytest.raises(InternalServerError):
            CaptchaVerifier.from_config(InMemoryStore(), httpx.AsyncClient())

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setattr(config, "CAPTCHA_PROVIDER", "hcaptcha")
        monkeypatch.setattr(config, "TURNSTILE_SECRET_KEY", "secret")

        with pytest.raises(InternalServerError):
            CaptchaVerifier.from_config(InMemoryStore(), httpx.AsyncClient())
