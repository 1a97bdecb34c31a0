"""
Rate Limiting Module.

Sliding-window rate limiting used in two places:
    - Outbound: the LLM provider (per-minute limit, async acquire)
    - Inbound: API callers, one window per caller key (non-blocking check,
      surfaced as HTTP 429)

Usage:
    limiter = RateLimiter(Provider.PERPLEXITY, requests_per_minute=50)
    await limiter.acquire_async()

    callers = KeyedRateLimiter(requests_per_minute=20)
    if not callers.try_acquire(client_key):
        raise HTTPException(429, ...)
"""

import asyncio
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Provider(str, Enum):
    """Rate-limited outbound providers."""
    PERPLEXITY = "perplexity"


@dataclass
class RateLimitStats:
    """Statistics for rate limiting."""
    total_requests: int = 0
    rejected_requests: int = 0
    requests_this_minute: int = 0
    waits_count: int = 0
    total_wait_time_seconds: float = 0.0
    last_request_at: Optional[datetime] = None


class RateLimitExceededError(Exception):
    """Raised when rate limit is exceeded and waiting is not allowed."""

    def __init__(self, key: str, current: int, limit: int, retry_after: float = 0.0):
        self.key = key
        self.current = current
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for {key}: {current}/{limit} per minute"
        )


class RateLimiter:
    """
    Thread-safe rate limiter using a sliding one-minute window.

    Provides blocking (acquire_async) and non-blocking (try_acquire) modes.
    """

    WINDOW_SECONDS = 60.0

    def __init__(
        self,
        key: str,
        requests_per_minute: int = 60,
        max_wait_seconds: float = 30.0,
    ):
        """
        Initialize rate limiter.

        Args:
            key: Provider or caller name for errors/stats
            requests_per_minute: Maximum requests per window
            max_wait_seconds: Maximum time acquire_async waits before failing
        """
        self.key = str(key.value if isinstance(key, Provider) else key)
        self.requests_per_minute = requests_per_minute
        self.max_wait_seconds = max_wait_seconds

        self._window: deque = deque()
        self._lock = threading.Lock()
        self._stats = RateLimitStats()

    def _clean_window(self, now: float) -> None:
        cutoff = now - self.WINDOW_SECONDS
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()

    def _record(self, now: float) -> None:
        self._window.append(now)
        self._stats.total_requests += 1
        self._stats.requests_this_minute = len(self._window)
        self._stats.last_request_at = datetime.utcnow()

    def retry_after(self) -> float:
        """Seconds until the next request would be allowed (0.0 if now)."""
        with self._lock:
            now = time.monotonic()
            self._clean_window(now)
            if len(self._window) < self.requests_per_minute:
                return 0.0
            return max(0.0, self._window[0] + self.WINDOW_SECONDS - now)

    def try_acquire(self) -> bool:
        """
        Record a request if the window has room.

        Returns:
            True if the request is allowed, False if rate limited
        """
        with self._lock:
            now = time.monotonic()
            self._clean_window(now)
            if len(self._window) >= self.requests_per_minute:
                self._stats.rejected_requests += 1
                return False
            self._record(now)
            return True

    async def acquire_async(self) -> None:
        """
        Wait for a slot in the window.

        Raises:
            RateLimitExceededError: If no slot frees up within max_wait_seconds
        """
        start = time.monotonic()
        while True:
            if self.try_acquire():
                return

            wait_time = self.retry_after()
            elapsed = time.monotonic() - start
            if elapsed + wait_time > self.max_wait_seconds:
                raise RateLimitExceededError(
                    self.key, len(self._window), self.requests_per_minute, wait_time
                )

            self._stats.waits_count += 1
            self._stats.total_wait_time_seconds += min(wait_time, 0.5)
            await asyncio.sleep(min(wait_time, 0.5))

    def get_stats(self) -> RateLimitStats:
        with self._lock:
            self._clean_window(time.monotonic())
            return RateLimitStats(
                total_requests=self._stats.total_requests,
                rejected_requests=self._stats.rejected_requests,
                requests_this_minute=len(self._window),
                waits_count=self._stats.waits_count,
                total_wait_time_seconds=self._stats.total_wait_time_seconds,
                last_request_at=self._stats.last_request_at,
            )


class KeyedRateLimiter:
    """
    One sliding window per caller key (user id or client address).

    The number of tracked keys is bounded; the least recently used
    window is evicted first.
    """

    def __init__(self, requests_per_minute: int = 20, max_keys: int = 10000):
        self.requests_per_minute = requests_per_minute
        self.max_keys = max_keys
        self._limiters: "OrderedDict[str, RateLimiter]" = OrderedDict()
        self._lock = threading.Lock()

    def _get(self, key: str) -> RateLimiter:
        with self._lock:
            limiter = self._limiters.get(key)
            if limiter is None:
                limiter = RateLimiter(key, self.requests_per_minute)
                self._limiters[key] = limiter
                if len(self._limiters) > self.max_keys:
                    self._limiters.popitem(last=False)
            else:
                self._limiters.move_to_end(key)
            return limiter

    def try_acquire(self, key: str) -> bool:
        return self._get(key).try_acquire()

    def retry_after(self, key: str) -> float:
        return self._get(key).retry_after()
