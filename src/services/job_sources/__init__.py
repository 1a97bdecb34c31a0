"""
Job Sources Module

Provides a unified interface for fetching listings from heterogeneous sources:
- Perplexity LLM search (structured JSON prompt)
- Search engines (site: queries over ATS hosts and job boards)
- Eluta.ca (headless browser)
- Indeed Canada and LinkedIn public search (headless browser)

Each source implements the JobSource abstract base class and normalizes its
raw records into JobListing before returning them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional

from src.common.job_search_config import TIER_GENERIC, SourceConfig
from src.common.types import JobListing, SearchParams

logger = logging.getLogger(__name__)


class JobSource(ABC):
    """Abstract base class for job data sources."""

    name: str = "unknown"
    priority_tier: int = TIER_GENERIC
    default_timeout_seconds: float = 15.0

    def __init__(self, config: Optional[SourceConfig] = None):
        """
        Args:
            config: Optional source config (timeout override)
        """
        self.timeout_seconds = config.timeout_seconds if config else self.default_timeout_seconds

    @abstractmethod
    async def search(self, params: SearchParams) -> List[JobListing]:
        """
        Fetch listings matching the search parameters.

        Args:
            params: Keywords, location and result limits

        Returns:
            Normalized listings (possibly empty)
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the source."""
        return None

    async def _collect_terms(
        self,
        terms: List[str],
        fetch_term: Callable[[str], Awaitable[List[JobListing]]],
    ) -> List[JobListing]:
        """
        Run ``fetch_term`` for every term concurrently and concatenate results.

        A failing term is logged and skipped; when every term fails the last
        error is raised so the caller sees the source as failed.
        """
        if not terms:
            return []

        results = await asyncio.gather(*(fetch_term(t) for t in terms), return_exceptions=True)

        listings: List[JobListing] = []
        errors: List[BaseException] = []
        for term, result in zip(terms, results):
            if isinstance(result, BaseException):
                logger.warning(f"[{self.name}] search for '{term}' failed: {type(result).__name__}: {result}")
                errors.append(result)
                continue
            listings.extend(result)

        if errors and len(errors) == len(terms):
            raise errors[-1]
        return listings


# Import concrete implementations for convenience
from .browser import HeadlessBrowser
from .eluta_source import ElutaSource
from .job_board_source import INDEED, LINKEDIN, BoardSelectors, JobBoardSource
from .llm_search_source import LLMSearchSource
from .search_engine_source import SearchEngineSource

__all__ = [
    "JobSource",
    "HeadlessBrowser",
    "ElutaSource",
    "JobBoardSource",
    "BoardSelectors",
    "INDEED",
    "LINKEDIN",
    "LLMSearchSource",
    "SearchEngineSource",
]
