import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .schemas import RateLimitStatus

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Gate for upstream requests.
    - At most `max_per_window` requests per fixed window. The window starts with
      the first request and resets `window` seconds later (not sliding).
    - At least `min_interval` seconds between two consecutive requests.
    Waiters are admitted in the order they called `acquire()`.
    """

    def __init__(
        self,
        max_per_window: int = 45,
        min_interval: float = 1.5,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_per_window < 1:
            raise ValueError("max_per_window must be >= 1")
        self.max_per_window = max_per_window
        self.min_interval = min_interval
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._window_start: Optional[float] = None
        self._count = 0
        self._last_request: Optional[float] = None

    def _roll_window(self, now: float) -> None:
        if self._window_start is None or now - self._window_start >= self.window:
            self._window_start = now
            self._count = 0

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            self._roll_window(now)

            if self._count >= self.max_per_window:
                wait = self._window_start + self.window - now
                if wait > 0:
                    logger.info("Rate limit budget exhausted, waiting %.1fs for window reset", wait)
                    await self._sleep(wait)
                now = self._clock()
                self._window_start = now
                self._count = 0

            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self.min_interval:
                    await self._sleep(self.min_interval - elapsed)
                    now = self._clock()

            self._last_request = now
            self._count += 1

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

    def status(self) -> RateLimitStatus:
        now = self._clock()
        if self._window_start is None or now - self._window_start >= self.window:
            return RateLimitStatus(requests_used=0, requests_remaining=self.max_per_window, resets_in=0.0)
        return RateLimitStatus(
            requests_used=self._count,
            requests_remaining=max(0, self.max_per_window - self._count),
            resets_in=round(self._window_start + self.window - now, 3),
        )
