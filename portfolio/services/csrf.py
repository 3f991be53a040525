"""
Single-use CSRF tokens backed by the distributed store.

A token is valid while ``csrf:{token}`` exists. Consuming it deletes the key,
and Redis ``DEL`` reports whether anything was removed, so a token can never
be accepted twice even under concurrent submissions.
"""

from __future__ import annotations

import logging
import secrets

from portfolio.store import KeyValueStore

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "csrf:"
TOKEN_TTL_SECONDS = 900  # 15 minutes
TOKEN_BYTES = 32  # 256 bits


class CsrfService:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @staticmethod
    def _key(token: str) -> str:
        return f"{TOKEN_PREFIX}{token}"

    async def issue(self) -> str:
        """Create a token and store it with a 15-minute TTL."""
        token = secrets.token_hex(TOKEN_BYTES)
        # Only the key's existence matters.
        await self._store.set(self._key(token), "1", ex=TOKEN_TTL_SECONDS)
        return token

    async def consume(self, token: str | None) -> bool:
        """True iff *token* existed (unexpired, unused); it is deleted either way."""
        if not token:
            return False
        deleted = await self._store.delete(self._key(token))
        if not deleted:
            logger.info("Rejected unknown, expired or reused CSRF token")
        return deleted > 0
