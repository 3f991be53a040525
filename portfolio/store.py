"""
Distributed key-value store used for all cross-request state.

CSRF tokens and CAPTCHA replay markers live here, and the rate-limit
counters live in the same Redis under their own prefix.
Production uses Redis through ``redis.asyncio``; anything that satisfies
:class:`KeyValueStore` (e.g. the in-memory double in the test suite) can
stand in for it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import redis.asyncio as redis
from limits.aio.storage import RedisStorage


@runtime_checkable
class KeyValueStore(Protocol):
    """The subset of the Redis command set the pipeline relies on.

    ``set(..., nx=True, ex=...)`` and ``delete`` must be atomic for a single
    key: CSRF consumption and CAPTCHA replay marking depend on it.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(
        self,
        key: str,
        value: str,
        *,
        ex: int | None = None,
        nx: bool = False,
    ) -> bool | None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys(self, pattern: str) -> list[str]: ...

    async def ttl(self, key: str) -> int: ...


def create_store(url: str) -> redis.Redis:
    """Create a Redis client for *url*.

    The connection pool is lazy, so no network traffic happens until the
    first command.
    """
    return redis.from_url(url, decode_responses=True)


def create_rate_limit_storage(url: str, prefix: str) -> RedisStorage:
    """Rate-limit storage for the ``limits`` strategies on the same Redis.

    Counters are kept under *prefix* and updated by Lua scripts, so a check
    and its increment are one atomic step. Redis errors surface as
    :class:`limits.errors.StorageError`.
    """
    return RedisStorage(
        f"async+{url}",
        implementation="redispy",
        key_prefix=prefix,
        wrap_exceptions=True,
    )
