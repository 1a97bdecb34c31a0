"""
Retry helpers for transient upstream failures.

Thin wrappers over tenacity so every adapter retries the same way:
a small fixed number of attempts with exponential backoff and jitter,
and only for errors that are worth retrying.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

import requests
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from src.common.error_handling import UpstreamTransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    UpstreamTransientError,
    asyncio.TimeoutError,
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
)


def async_retrying(
    attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 8.0,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
) -> AsyncRetrying:
    """
    Build an AsyncRetrying controller.

    Args:
        attempts: Total attempts including the first call
        initial_delay: First backoff delay in seconds (doubles each retry)
        max_delay: Backoff ceiling in seconds
        retry_on: Exception types that trigger a retry

    Returns:
        AsyncRetrying that re-raises the last error when attempts run out
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential_jitter(initial=initial_delay, max=max_delay, jitter=initial_delay / 2),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 8.0,
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)`` retrying transient errors.

    Usage:
        html = await call_with_retry(self._fetch_html, url, attempts=2)
    """
    async for attempt in async_retrying(attempts, initial_delay, max_delay):
        with attempt:
            return await func(*args, **kwargs)
