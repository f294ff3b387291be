from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

RATE_LIMIT_POINTS = 500
RATE_LIMIT_WINDOW_S = 60.0
RATE_LIMIT_MARGIN = 10


class RateLimiter:
    """
    Minimum-interval limiter (per process). Used to pace image downloads toward the
    image host, shared by every concurrent enrichment task.
    """
    def __init__(self, rps_per_host: float, *, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep) -> None:
        if rps_per_host <= 0:
            raise ValueError("rps_per_host must be > 0")
        self._min_interval = 1.0 / rps_per_host
        self._lock = asyncio.Lock()
        self._last_ts = 0.0
        self._clock = clock
        self._sleep = sleep

    async def wait(self) -> None:
        async with self._lock:
            now = self._clock()
            elapsed = now - self._last_ts
            if elapsed < self._min_interval:
                await self._sleep(self._min_interval - elapsed)
            self._last_ts = self._clock()


class RateGovernor:
    """
    Fixed-window call budget for the GraphQL endpoint.

    The window holds `window_start` and `count`. When the count comes within
    `margin` of the budget the caller is suspended until the window has elapsed,
    then a fresh window starts. check_rate_limit() never raises.
    """
    def __init__(
        self,
        budget: int = RATE_LIMIT_POINTS,
        window_s: float = RATE_LIMIT_WINDOW_S,
        margin: int = RATE_LIMIT_MARGIN,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if budget <= margin:
            raise ValueError("budget must be greater than margin")
        if window_s <= 0:
            raise ValueError("window_s must be > 0")
        self.budget = budget
        self.window_s = window_s
        self.margin = margin
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.window_start = clock()
        self.count = 0

    def _reset(self) -> None:
        self.count = 0
        self.window_start = self._clock()

    async def check_rate_limit(self) -> None:
        async with self._lock:
            elapsed = self._clock() - self.window_start
            if elapsed > self.window_s:
                self._reset()
                return

            if self.count >= self.budget - self.margin:
                wait_s = self.window_s - elapsed
                if wait_s > 0:
                    logger.info("Approaching rate limit (%d/%d calls). Waiting %.1fs...", self.count, self.budget, wait_s)
                    await self._sleep(wait_s)
                self._reset()

    def record_call(self) -> None:
        self.count += 1
