"""
Sliding-window rate limiting on top of the ``limits`` library.

Each tier uses the sliding window counter strategy: the previous fixed window
is weighted by how much of it still overlaps the sliding window and added to
the current one::

    estimate = floor(previous * (1 - elapsed_fraction)) + current

A request is allowed while ``estimate < limit``. The check and the increment
happen in one storage call (a Lua script on Redis), so concurrent requests
cannot all be admitted against the same estimate.

Storage failures fail open: the request is allowed with zeroed limit data and
the error is logged.
"""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass, field

from limits import RateLimitItemPerSecond
from limits.aio.storage import Storage
from limits.aio.strategies import SlidingWindowCounterRateLimiter

logger = logging.getLogger(__name__)

_WINDOW_PATTERN = re.compile(r"^(\d+) ([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_window(window: str) -> int:
    """Convert ``"<integer> <unit>"`` (e.g. ``"10 m"``) to seconds.

    Raises ValueError for anything else; a bad window is a configuration
    error, not a per-request failure.
    """
    match = _WINDOW_PATTERN.match(window) if isinstance(window, str) else None
    if match is None:
        raise ValueError(
            f'Invalid window duration format: {window!r}. Expected "number unit" (e.g. "10 m", "1 h")'
        )
    seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Window duration must be positive: {window!r}")
    return seconds


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: int  # epoch milliseconds when the next request slot frees up
    retry_after: int = 0  # seconds; only meaningful when success is False
    headers: dict[str, str] = field(default_factory=dict)


class RateLimiter:
    """One rate-limit tier, e.g. "5 requests per 10 m per IP"."""

    def __init__(
        self,
        storage: Storage,
        *,
        limit: int,
        window: str,
        limit_type: str,
        namespace: str = "contact",
    ) -> None:
        if limit <= 0:
            raise ValueError(f"Rate limit must be positive, got {limit}")
        self.limit = limit
        self.window = window
        self.window_seconds = parse_window(window)
        self.limit_type = limit_type
        self.storage = storage
        self._strategy = SlidingWindowCounterRateLimiter(storage)
        self._item = RateLimitItemPerSecond(limit, self.window_seconds, namespace=namespace)

    async def check_limit(self, identifier: str) -> RateLimitResult:
        """Count one request for *identifier* and report whether it is allowed."""
        try:
            allowed = await self._strategy.hit(self._item, self.limit_type, identifier)
            stats = await self._strategy.get_window_stats(self._item, self.limit_type, identifier)
        except Exception:
            logger.exception("Rate limiting error (%s:%s), failing open", self.limit_type, identifier)
            return RateLimitResult(success=True, limit=0, remaining=0, reset=int(time.time() * 1000))

        now_ms = int(time.time() * 1000)
        reset = int(stats.reset_time * 1000)
        remaining = max(0, stats.remaining)
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(reset // 1000),
        }

        if not allowed:
            logger.info(
                "Rate limit exceeded for %s:%s (%d requests per %s)",
                self.limit_type,
                identifier,
                self.limit,
                self.window,
            )
            return RateLimitResult(
                success=False,
                limit=self.limit,
                remaining=0,
                reset=reset,
                retry_after=max(1, math.ceil((reset - now_ms) / 1000)),
                headers={**headers, "X-RateLimit-Remaining": "0"},
            )

        return RateLimitResult(
            success=True,
            limit=self.limit,
            remaining=remaining,
            reset=reset,
            headers=headers,
        )

    async def clear(self, identifier: str) -> None:
        """Forget every request counted for *identifier*."""
        await self._strategy.clear(self._item, self.limit_type, identifier)
