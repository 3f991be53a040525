"""
Replay protection for CAPTCHA tokens.

The provider's own anti-replay window may be shorter or scoped differently,
so every token is also recorded locally the first time it is seen. Only a
truncated SHA-256 of the token is stored, never the token itself.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from portfolio.store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "turnstile:used:"
DEFAULT_EXPIRY_SECONDS = 300  # typical token lifetime


@dataclass(frozen=True)
class TokenTrackingResult:
    is_used: bool
    marked_as_used: bool


class CaptchaTokenTracker:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        prefix: str = DEFAULT_PREFIX,
        expiry_seconds: int = DEFAULT_EXPIRY_SECONDS,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._expiry = expiry_seconds

    @staticmethod
    def hash_token(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]

    def key_for(self, token: str) -> str:
        return f"{self._prefix}{self.hash_token(token)}"

    async def check_and_mark_used(self, token: str) -> TokenTrackingResult:
        """Atomically mark *token* as used; report whether it already was.

        Store failures fail open (the token is treated as unused).
        """
        key = self.key_for(token)
        try:
            result = await self._store.set(key, "1", nx=True, ex=self._expiry)
        except Exception:
            logger.exception("Failed to check/mark CAPTCHA token usage (key=%s), allowing", key)
            return TokenTrackingResult(is_used=False, marked_as_used=False)

        if not result:
            logger.warning("CAPTCHA token replay detected (key=%s)", key)
            return TokenTrackingResult(is_used=True, marked_as_used=False)

        logger.debug("CAPTCHA token marked as used (key=%s, ttl=%ds)", key, self._expiry)
        return TokenTrackingResult(is_used=False, marked_as_used=True)

    async def cleanup_expired_tokens(self) -> int:
        """Delete tracked keys that have no remaining TTL. Returns how many."""
        try:
            keys = await self._store.keys(f"{self._prefix}*")
            deleted = 0
            for key in keys:
                if await self._store.ttl(key) <= 0:
                    deleted += await self._store.delete(key)
        except Exception:
            logger.exception("Failed to clean up expired CAPTCHA tokens")
            return 0

        logger.debug("Cleaned up %d of %d tracked CAPTCHA tokens", deleted, len(keys))
        return deleted
