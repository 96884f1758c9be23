"""
Throttling and Retry Utilities for Scraping

External job sources detect and block bursty, unthrottled traffic. These
helpers approximate human-paced browsing without serializing the whole
pipeline:

- throttle(): randomized delay before each request
- retry(): exponential backoff around an unreliable call
- RateLimiter: bounded concurrency gate with FIFO admission

Usage:
    limiter = RateLimiter(max_concurrent=3)

    postings = await limiter.execute(
        lambda: retry(lambda: throttle(lambda: scraper.fetch("python"), 2.0, 5.0))
    )
"""

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, TypeVar

from jobpipeline.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ThrottleSettings:
    """Pacing values used by the scrape orchestrator (seconds)."""

    min_delay: float = 2.0
    max_delay: float = 5.0
    max_retries: int = 3
    retry_base_delay: float = 10.0
    fetch_timeout: float = 30.0
    max_concurrent: int = 3

    @classmethod
    def from_settings(cls, settings: Settings = None) -> "ThrottleSettings":
        settings = settings or get_settings()
        return cls(
            min_delay=settings.throttle_min_delay,
            max_delay=settings.throttle_max_delay,
            max_retries=settings.retry_max_retries,
            retry_base_delay=settings.retry_base_delay,
            fetch_timeout=settings.fetch_timeout,
            max_concurrent=settings.max_concurrent_fetches,
        )


def random_delay(min_delay: float, max_delay: float) -> float:
    """Uniformly random delay in [min_delay, max_delay]."""
    if max_delay <= min_delay:
        return max(min_delay, 0.0)
    return random.uniform(min_delay, max_delay)


async def throttle(
    fn: Callable[[], Awaitable[T]],
    min_delay: float = 2.0,
    max_delay: float = 5.0,
) -> T:
    """
    Sleep a random duration, then await fn().

    Args:
        fn: Zero-argument coroutine function to invoke
        min_delay: Lower bound of the pre-call delay in seconds
        max_delay: Upper bound of the pre-call delay in seconds

    Returns:
        Result of fn(); its exceptions propagate unchanged
    """
    delay = random_delay(min_delay, max_delay)
    if delay > 0:
        await asyncio.sleep(delay)
    return await fn()


async def retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 10.0,
) -> T:
    """
    Await fn() with exponential backoff between failed attempts.

    Attempt n (0-based) that fails is followed by a sleep of
    base_delay * 2**n, for up to max_retries additional attempts.

    Raises:
        The exception of the last attempt once all attempts fail
    """
    last_error: BaseException = None

    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except Exception as e:
            last_error = e
            logger.warning(f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}")

            if attempt < max_retries:
                backoff = base_delay * (2 ** attempt)
                if backoff > 0:
                    logger.info(f"Retrying in {backoff:.1f}s...")
                    await asyncio.sleep(backoff)

    raise last_error


class RateLimiter:
    """
    Bounded concurrency gate for coroutine calls.

    At most max_concurrent calls run at once. Callers beyond the limit wait
    in FIFO order; a finishing call hands its slot directly to the oldest
    waiter so late arrivals cannot overtake queued ones.

    State is owned by the instance, so independent limiters never share
    counters. All mutation happens on the event loop thread.
    """

    def __init__(self, max_concurrent: int = 3):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return len(self._waiters)

    async def _acquire(self) -> None:
        if self._active < self.max_concurrent and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            # Slot is transferred by _release; _active already counts us
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active -= 1

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn() once a slot is free and return its result."""
        await self._acquire()
        try:
            return await fn()
        finally:
            self._release()

    def __repr__(self) -> str:
        return (
            f"RateLimiter(max_concurrent={self.max_concurrent}, "
            f"active={self._active}, pending={self.pending})"
        )

