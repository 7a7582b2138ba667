"""
Per-host fixed-window rate limiting.

Callers that hit the ceiling are suspended until the window resets and then
re-check; requests are never dropped. One instance guards the scraped site,
another guards auxiliary HTTP APIs.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

from shared.utils.logging import get_logger
from shared.utils.metrics import RATE_LIMIT_WAITS

logger = get_logger(__name__)

# Floor for a computed wait; a window only reopens strictly after its reset.
_MIN_WAIT_S = 0.001


def host_for(url: str) -> str:
    """Extract the host key for a URL."""
    try:
        return urlparse(url).hostname or "unknown"
    except ValueError:
        return "unknown"


@dataclass
class HostRateState:
    count: int
    window_reset: float


class HostRateLimiter:
    """
    At most ``max_requests`` per ``window_s`` seconds for each host key.

    The host map is the only state shared across concurrent flows. Each
    read-then-write happens under the lock; the lock is released before
    sleeping so waiting callers never block other hosts.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_s: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "scrape",
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_s <= 0:
            raise ValueError("window_s must be > 0")
        self._max = max_requests
        self._window = window_s
        self._clock = clock
        self._sleep = sleep
        self._name = name
        self._hosts: dict[str, HostRateState] = {}
        self._lock = asyncio.Lock()

    @property
    def max_requests(self) -> int:
        return self._max

    @property
    def window_s(self) -> float:
        return self._window

    async def _try_reserve(self, host: str) -> Optional[float]:
        """Reserve a slot and return None, or return how long to wait."""
        async with self._lock:
            now = self._clock()
            state = self._hosts.get(host)
            if state is None or now > state.window_reset:
                self._hosts[host] = HostRateState(count=1, window_reset=now + self._window)
                return None
            if state.count < self._max:
                state.count += 1
                return None
            return max(state.window_reset - now, _MIN_WAIT_S)

    async def acquire(self, host_key: str) -> None:
        """Suspend until one request to ``host_key`` may be issued."""
        while True:
            wait = await self._try_reserve(host_key)
            if wait is None:
                return
            RATE_LIMIT_WAITS.labels(host=host_key).inc()
            logger.info("rate_limit_wait", limiter=self._name, host=host_key, wait_s=round(wait, 3))
            await self._sleep(wait)

    async def acquire_url(self, url: str) -> None:
        await self.acquire(host_for(url))

    def bind(self, host_key: str) -> "BoundRateLimiter":
        """Limiter view fixed to one host, for clients that talk to a single API."""
        return BoundRateLimiter(self, host_key)


class BoundRateLimiter:
    def __init__(self, limiter: HostRateLimiter, host_key: str) -> None:
        self._limiter = limiter
        self._host = host_key

    async def acquire(self) -> None:
        await self._limiter.acquire(self._host)
