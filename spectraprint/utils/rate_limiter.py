"""
Minimum-interval rate limiter for outbound identification requests.

Every grant is spaced at least ``interval`` seconds after the previous one.
Callers are serialised by a lock; waiting callers are not queued fairly, but
each one eventually receives a grant.

Usage::

    limiter = RateLimiter(interval_seconds=1.0)
    granted_at = limiter.acquire()
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


def _validate_interval(interval_seconds: float) -> float:
    interval = float(interval_seconds)
    if interval < 0:
        raise ValueError("interval_seconds must be non-negative.")
    return interval


class RateLimiter:
    """Blocking limiter for threads.

    Args:
        interval_seconds: Minimum spacing between two grants.
        clock: Monotonic time source (seconds).
        sleep: Function used to wait.
    """

    def __init__(
        self,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = _validate_interval(interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request: float | None = None

    @property
    def last_request(self) -> float | None:
        return self._last_request

    def acquire(self) -> float:
        """Block until a grant is allowed and return the grant time."""
        with self._lock:
            now = self._clock()
            if self._last_request is not None:
                wait = self._last_request + self.interval - now
                while wait > 0:
                    logger.debug("RateLimiter: waiting %.3fs", wait)
                    self._sleep(wait)
                    now = self._clock()
                    wait = self._last_request + self.interval - now
            self._last_request = now
            return now

    def reset(self) -> None:
        """Forget the previous grant."""
        with self._lock:
            self._last_request = None


class AsyncRateLimiter:
    """Same contract as RateLimiter for asyncio callers."""

    def __init__(
        self,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = _validate_interval(interval_seconds)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_request: float | None = None

    @property
    def last_request(self) -> float | None:
        return self._last_request

    async def acquire(self) -> float:
        async with self._lock:
            now = self._clock()
            if self._last_request is not None:
                wait = self._last_request + self.interval - now
                while wait > 0:
                    await asyncio.sleep(wait)
                    now = self._clock()
                    wait = self._last_request + self.interval - now
            self._last_request = now
            return now
