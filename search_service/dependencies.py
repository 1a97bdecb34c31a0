"""
Service wiring.

Everything a request needs is built once at startup into a ServiceContainer
stored on ``app.state``; route handlers receive it through the
``get_container`` dependency, which tests override with a container of
mocks.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends, HTTPException, Request

from src.common.config import Config
from src.common.database import DatabaseClient
from src.common.error_handling import CacheUnavailableError
from src.common.fast_cache import build_fast_cache
from src.common.job_search_config import JobSearchConfig
from src.common.rate_limiter import KeyedRateLimiter, Provider, RateLimiter
from src.common.repositories import (
    JobsCacheRepositoryInterface,
    MongoJobsCacheRepository,
    MongoResumeRepository,
    ResumeRepositoryInterface,
)
from src.services.job_aggregator import JobAggregator
from src.services.job_sources import (
    INDEED,
    LINKEDIN,
    ElutaSource,
    HeadlessBrowser,
    JobBoardSource,
    JobSource,
    LLMSearchSource,
    SearchEngineSource,
)
from src.services.relevance_scorer import RelevanceScorer
from src.services.signal_extractor import LLMSignalExtractor, SignalExtractor

from .config import SearchServiceSettings

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived services shared by all requests."""

    aggregator: JobAggregator
    signal_extractor: SignalExtractor
    rate_limiter: KeyedRateLimiter
    resume_repository: Optional[ResumeRepositoryInterface] = None
    cache_repository: Optional[JobsCacheRepositoryInterface] = None
    scorer: Optional[RelevanceScorer] = None
    database: Optional[DatabaseClient] = None

    def __post_init__(self):
        if self.scorer is None:
            self.scorer = self.aggregator.scorer

    async def close(self) -> None:
        await self.aggregator.close()
        if self.database is not None:
            self.database.close()


def build_sources(config: JobSearchConfig, llm_rate_limiter: Optional[RateLimiter] = None) -> List[JobSource]:
    """Instantiate the enabled adapters; browser adapters share one Chromium."""
    sources: List[JobSource] = []

    if Config.ENABLE_LLM_SEARCH and Config.get_llm_api_key():
        sources.append(LLMSearchSource(
            config=config.get_source_by_id("llm_search"),
            rate_limiter=llm_rate_limiter,
            results_per_search=config.llm_results_per_search,
            retry_attempts=config.retry_attempts,
        ))
    else:
        logger.info("LLM search source disabled (no PERPLEXITY_API_KEY or ENABLE_LLM_SEARCH=false)")

    if Config.ENABLE_BROWSER_SCRAPERS:
        browser = HeadlessBrowser()
        sources.extend([
            SearchEngineSource(browser, config=config.get_source_by_id("search_engine")),
            ElutaSource(
                browser,
                config=config.get_source_by_id("eluta"),
                keyword_count=config.scraper_keyword_count,
            ),
            JobBoardSource(
                INDEED,
                browser,
                config=config.get_source_by_id("indeed"),
                keyword_count=config.scraper_keyword_count,
            ),
            JobBoardSource(
                LINKEDIN,
                browser,
                config=config.get_source_by_id("linkedin"),
                keyword_count=config.scraper_keyword_count,
            ),
        ])

    logger.info(f"Job sources enabled: {[s.name for s in sources]}")
    return sources


async def build_container(settings: SearchServiceSettings) -> ServiceContainer:
    """Connect backends and assemble services."""
    config = JobSearchConfig.from_env()

    database = DatabaseClient(settings.mongodb_uri, settings.mongo_db_name)
    db = database.connect()
    try:
        await asyncio.to_thread(database.ping)
    except CacheUnavailableError as e:
        # Searches still run; document cache reads degrade to misses
        logger.warning(f"Starting with document cache unavailable: {e}")
    cache_repository = MongoJobsCacheRepository(db)
    await asyncio.to_thread(cache_repository.ensure_indexes)
    resume_repository = MongoResumeRepository(db)

    llm_rate_limiter = RateLimiter(Provider.PERPLEXITY.value, Config.LLM_REQUESTS_PER_MINUTE)

    aggregator = JobAggregator(
        fast_cache=build_fast_cache(settings.redis_url),
        repository=cache_repository,
        sources=build_sources(config, llm_rate_limiter),
        config=config,
    )
    signal_extractor = SignalExtractor(
        llm_extractor=LLMSignalExtractor(
            max_keywords=config.max_keywords,
            rate_limiter=llm_rate_limiter,
        ),
        max_keywords=config.max_keywords,
    )

    return ServiceContainer(
        aggregator=aggregator,
        signal_extractor=signal_extractor,
        rate_limiter=KeyedRateLimiter(settings.search_rate_limit_per_minute),
        resume_repository=resume_repository,
        cache_repository=cache_repository,
        database=database,
    )


def get_container(request: Request) -> ServiceContainer:
    """Container built at startup."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return container


def caller_key(request: Request) -> str:
    """Identity used for per-caller rate limiting."""
    user_id = request.headers.get("x-user-id", "").strip()
    if user_id:
        return f"user:{user_id}"
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return f"ip:{forwarded}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def enforce_rate_limit(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    """
    Per-caller sliding window limit.

    The bearer token is one shared secret, so callers are keyed by the
    X-User-Id header, then the first X-Forwarded-For hop, then the client
    address.
    """
    key = caller_key(request)

    if not container.rate_limiter.try_acquire(key):
        retry_after = container.rate_limiter.retry_after(key)
        raise HTTPException(
            status_code=429,
            detail={"error": "Too many requests", "details": f"Retry after {math.ceil(retry_after)}s"},
            headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
        )
