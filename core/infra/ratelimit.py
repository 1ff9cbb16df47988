"""
ratelimit.py – token-bucket limiter for outbound requests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Admits at most ``rate`` operations per second.

    * bucket capacity equals ``rate`` (no burst beyond one second of quota),
      and never less than one token so sub-1 rates still admit requests
    * tokens refill continuously
    * waiters are served one at a time in arrival order
    """

    def __init__(
        self,
        rate: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rate = float(rate)
        self.capacity = max(1.0, float(rate))
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.capacity
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated_at = now

    async def acquire(self) -> None:
        """Block until one token is available, then consume it."""
        sleep = self._sleep or asyncio.sleep
        async with self._lock:
            self._refill()
            if self._tokens < 1.0:
                wait = (1.0 - self._tokens) / self.rate
                logger.debug("Rate limit reached, waiting %.3fs", wait)
                await sleep(wait)
                self._refill()
            self._tokens -= 1.0
