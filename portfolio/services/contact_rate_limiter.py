"""
Three rate-limit tiers for the contact form: global, per IP and per email.

Tiers are checked concurrently. When several fail at once, the first in the
order global → ip → email is reported.
"""

from __future__ import annotations

import asyncio
import logging

from limits.aio.storage import Storage

from portfolio import config
from portfolio.errors import RateLimitError
from portfolio.services.rate_limiter import RateLimiter, RateLimitResult
from portfolio.services.validator import is_valid_email

logger = logging.getLogger(__name__)

GLOBAL_IDENTIFIER = "global"

# Providers that ignore dots and "+tag" suffixes in the local part.
_DOT_INSENSITIVE_DOMAINS = frozenset({"gmail.com", "googlemail.com"})


def normalize_email(email: str) -> str:
    """Key used for per-email limits; never used for delivery."""
    email = email.lower()
    local, sep, domain = email.rpartition("@")
    if not sep or domain not in _DOT_INSENSITIVE_DOMAINS:
        return email
    local = local.split("+", 1)[0].replace(".", "")
    return f"{local}@{domain}"


class ContactRateLimiter:
    def __init__(
        self,
        global_limiter: RateLimiter,
        ip_limiter: RateLimiter,
        email_limiter: RateLimiter,
    ) -> None:
        self._global = global_limiter
        self._ip = ip_limiter
        self._email = email_limiter

    @classmethod
    def from_config(cls, storage: Storage) -> ContactRateLimiter:
        """Build the three tiers from ``CONTACT_*_RATE_LIMIT_*`` settings.

        Raises ValueError on a malformed window.
        """

        def tier(limit: int, window: str, limit_type: str) -> RateLimiter:
            return RateLimiter(storage, limit=limit, window=window, limit_type=limit_type)

        return cls(
            tier(config.CONTACT_GLOBAL_RATE_LIMIT_REQUESTS, config.CONTACT_GLOBAL_RATE_LIMIT_WINDOW, "global"),
            tier(config.CONTACT_IP_RATE_LIMIT_REQUESTS, config.CONTACT_IP_RATE_LIMIT_WINDOW, "ip"),
            tier(config.CONTACT_EMAIL_RATE_LIMIT_REQUESTS, config.CONTACT_EMAIL_RATE_LIMIT_WINDOW, "email"),
        )

    async def check_limits(self, ip: str, email: str | None = None) -> dict[str, str]:
        """Run every applicable tier; raise RateLimitError if any is exhausted.

        Returns the ``X-RateLimit-*`` headers of the tier with the fewest
        requests left on success. Emails that are not syntactically valid are
        skipped rather than rejected.
        """
        checks: list[tuple[RateLimiter, str]] = [
            (self._global, GLOBAL_IDENTIFIER),
            (self._ip, ip),
        ]
        if email and is_valid_email(email):
            checks.append((self._email, normalize_email(email)))
        elif email:
            logger.debug("Skipping per-email rate limit for invalid address")

        results: list[RateLimitResult] = await asyncio.gather(
            *(limiter.check_limit(identifier) for limiter, identifier in checks)
        )

        for (limiter, identifier), result in zip(checks, results):
            if not result.success:
                raise RateLimitError(
                    "Too many requests. Please try again later.",
                    retry_after=result.retry_after,
                    limit_type=limiter.limit_type,
                    internal_message=(
                        f"Rate limit exceeded for {limiter.limit_type}:{identifier}: "
                        f"{limiter.limit} requests per {limiter.window}"
                    ),
                    metadata={"reset": result.reset},
                )

        # Failed-open tiers carry no headers.
        reported = [result for result in results if result.headers]
        if not reported:
            return {}
        tightest = min(reported, key=lambda result: result.remaining)
        return dict(tightest.headers)

    async def clear_keys(self) -> None:
        """Delete every counter under the storage's key prefix (test isolation)."""
        for storage in {tier.storage for tier in (self._global, self._ip, self._email)}:
            try:
                await storage.reset()
            except Exception:
                logger.exception("Rate limiter cleanup error")
