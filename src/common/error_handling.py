"""
Centralized error handling for the job aggregation pipeline.

Defines the error taxonomy, a collector for per-source failures, and the
decorator that turns cache-layer failures into misses.

Taxonomy:
    UpstreamTransientError   network timeout / 5xx, retried then skipped
    UpstreamMalformedError   unparsable upstream payload, adapter returns []
    CacheUnavailableError    Redis/Mongo down, treated as a cache miss
    InvalidSearchInputError  caller error, surfaced as HTTP 400
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import wraps
from typing import Any, Callable, List, Optional, TypeVar

T = TypeVar("T")


class JobSearchError(Exception):
    """Base exception for the aggregation pipeline."""
    pass


class UpstreamTransientError(JobSearchError):
    """Temporary upstream failure (timeout, 5xx, rate limit). Safe to retry."""
    pass


class UpstreamMalformedError(JobSearchError):
    """Upstream answered, but the payload could not be parsed."""
    pass


class CacheUnavailableError(JobSearchError):
    """A cache backend could not be reached."""
    pass


class InvalidSearchInputError(JobSearchError):
    """The caller supplied unusable search input."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.details = details
        super().__init__(message)


@dataclass
class SourceError:
    """
    Structured failure record for one adapter or cache tier.

    Surfaced in search metadata so callers can see which sources degraded.
    """

    source: str  # e.g., "eluta", "document_cache"
    operation: str  # e.g., "search", "persist"
    message: str
    duration_ms: int = 0
    exception_type: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "source": self.source,
            "operation": self.operation,
            "message": self.message,
            "durationMs": self.duration_ms,
            "exceptionType": self.exception_type,
        }


class ErrorCollector:
    """Collects per-source errors during a single search."""

    def __init__(self):
        self.errors: List[SourceError] = []

    def add_error(
        self,
        source: str,
        operation: str,
        message: str,
        duration_ms: int = 0,
        exception: Optional[BaseException] = None,
    ) -> None:
        self.errors.append(SourceError(
            source=source,
            operation=operation,
            message=message,
            duration_ms=duration_ms,
            exception_type=type(exception).__name__ if exception else None,
        ))

    def sources(self) -> List[str]:
        return [e.source for e in self.errors]

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self.errors]

    def __len__(self) -> int:
        return len(self.errors)


def cache_operation(
    operation_name: str,
    tier: str,
    fallback_value: Any = None,
):
    """
    Decorator for cache-layer calls: log failures and return a fallback.

    A cache outage must never fail a search, so every exception is logged
    with the tier and operation and converted into a copy of
    ``fallback_value`` (a miss for reads, False for writes). Works on sync and async functions.

    Usage:
        @cache_operation("find search entry", tier="document_cache")
        def find_search(self, cache_key):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    logging.getLogger(func.__module__).warning(
                        f"[{tier}] [{operation_name}] Failed, treating as miss: {e}"
                    )
                    return copy.copy(fallback_value)

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logging.getLogger(func.__module__).warning(
                    f"[{tier}] [{operation_name}] Failed, treating as miss: {e}"
                )
                return copy.copy(fallback_value)

        return wrapper

    return decorator
