"""
Response-time padding.

Handlers wrapped in :class:`ResponseTimeProtector` take at least a minimum
amount of time plus a small random delay, so the latency of a response says
little about which validation stage rejected it.
"""

from __future__ import annotations

import asyncio
import random
import time


class ResponseTimeProtector:
    """Async context manager that pads the wrapped block's duration.

    Usage::

        async with ResponseTimeProtector(min_time_ms=500, jitter_ms=100):
            ...  # padding also applies when the block raises
    """

    def __init__(self, min_time_ms: int = 500, jitter_ms: int = 100) -> None:
        self._min_time_ms = min_time_ms
        self._jitter_ms = jitter_ms
        self._start = time.monotonic()

    async def __aenter__(self) -> ResponseTimeProtector:
        self._start = time.monotonic()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.end_and_protect()

    def delay_ms(self) -> float:
        """How long to wait now: remaining padding plus random jitter."""
        elapsed_ms = (time.monotonic() - self._start) * 1000
        jitter = random.uniform(0, self._jitter_ms) if self._jitter_ms > 0 else 0.0
        return max(0.0, self._min_time_ms - elapsed_ms) + jitter

    async def end_and_protect(self) -> None:
        wait_ms = self.delay_ms()
        if wait_ms > 0:
            await asyncio.sleep(wait_ms / 1000)
