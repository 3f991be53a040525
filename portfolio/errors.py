"""
Error taxonomy for the contact pipeline.

Every error carries a short client-safe ``message`` and a separate
``internal_message`` (plus optional ``metadata``) that is only ever logged.
Only ``message`` and the whitelisted ``response_metadata`` reach the HTTP
response body.
"""

from __future__ import annotations

from typing import Any, Literal

Category = Literal["client", "server", "external"]


class ContactError(Exception):
    """Base class for every error the pipeline maps to an HTTP response."""

    code: str = "INTERNAL_SERVER_ERROR"
    category: Category = "server"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        internal_message: str | None = None,
        details: list[Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.internal_message = internal_message or message
        self.details = details or []
        self.metadata = metadata or {}

    @property
    def response_metadata(self) -> dict[str, Any]:
        """Extra fields that are safe to include in the response body."""
        return {}

    @property
    def headers(self) -> dict[str, str]:
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, internal_message={self.internal_message!r})"


class ValidationError(ContactError):
    code = "VALIDATION_ERROR"
    category: Category = "client"
    status_code = 400

    @property
    def response_metadata(self) -> dict[str, Any]:
        return {"errors": self.details} if self.details else {}


class SecurityVerificationError(ContactError):
    """CAPTCHA or anti-bot check rejected the submission."""

    code = "SECURITY_VERIFICATION_ERROR"
    category: Category = "client"
    status_code = 400


class CsrfError(ContactError):
    code = "CSRF_ERROR"
    category: Category = "client"
    status_code = 403


class RateLimitError(ContactError):
    code = "RATE_LIMIT_ERROR"
    category: Category = "client"
    status_code = 429

    def __init__(
        self,
        message: str,
        *,
        retry_after: int,
        limit_type: str,
        internal_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, internal_message=internal_message, metadata=metadata)
        self.retry_after = retry_after
        self.limit_type = limit_type

    @property
    def response_metadata(self) -> dict[str, Any]:
        return {"retryAfter": self.retry_after}

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class SanitizationError(ContactError):
    code = "SANITIZATION_ERROR"
    category: Category = "client"
    status_code = 400

    @property
    def response_metadata(self) -> dict[str, Any]:
        return {"errors": self.details} if self.details else {}


class MethodNotAllowedError(ContactError):
    code = "METHOD_NOT_ALLOWED"
    category: Category = "client"
    status_code = 405

    def __init__(self, method: str, allowed: str) -> None:
        super().__init__(
            "Method not allowed",
            internal_message=f"Method {method} not allowed (expected {allowed})",
        )
        self.allowed = allowed

    @property
    def headers(self) -> dict[str, str]:
        return {"Allow": self.allowed}


class EmailServiceError(ContactError):
    """500 when the mailer is misconfigured, 502 when the provider rejected the send."""

    code = "EMAIL_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        is_config_error: bool = False,
        internal_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, internal_message=internal_message, metadata=metadata)
        self.is_config_error = is_config_error
        self.status_code = 500 if is_config_error else 502
        self.category = "server" if is_config_error else "external"


class ServiceUnavailableError(ContactError):
    code = "SERVICE_UNAVAILABLE"
    category: Category = "external"
    status_code = 503


class InternalServerError(ContactError):
    code = "INTERNAL_SERVER_ERROR"
    category: Category = "server"
    status_code = 500
