"""
LLM Search Job Source

Asks a web-connected LLM (Perplexity sonar, OpenAI-compatible API) for
current postings matching the top keywords and location, and normalizes
its structured JSON answer into listings.

Malformed output is logged and yields []; transient provider errors are
retried before the source is considered failed.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from src.common.config import Config
from src.common.error_handling import JobSearchError
from src.common.job_search_config import TIER_GENERIC, SourceConfig
from src.common.json_utils import parse_llm_json_list
from src.common.locations import split_location
from src.common.rate_limiter import RateLimiter
from src.common.retry import call_with_retry
from src.common.types import JobListing, SearchParams, parse_datetime

from . import JobSource

logger = logging.getLogger(__name__)

JOB_SEARCH_SYSTEM_PROMPT = """You are a job search assistant with live web access.

Find real, currently open job postings. Only include postings you found on the web,
with a working URL to the posting (prefer the employer's own careers page or ATS).
Never invent companies, titles or links.

Respond with JSON only, no commentary:
{"jobs": [{"title": "...", "company": "...", "location": "City, XX", "url": "https://...",
"description": "2-3 sentence summary", "salary": "..." or null,
"postedDate": "YYYY-MM-DD" or null, "workType": "full-time|part-time|contract|remote" or null,
"skills": ["..."]}]}"""

JOB_SEARCH_USER_PROMPT = """Find up to {limit} open job postings for: {keywords}
Location: {location} (within {radius_km} km)"""


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def job_from_llm_item(item: Dict[str, Any], fallback_location: str = "", keywords: Optional[List[str]] = None) -> Optional[JobListing]:
    """Normalize one model-produced record; None when it lacks a title."""
    title = _as_text(item.get("title"))
    if not title:
        return None

    location = _as_text(item.get("location")) or fallback_location
    city, province, country = split_location(location)
    skills = item.get("skills") if isinstance(item.get("skills"), list) else []

    return JobListing(
        title=title,
        company=_as_text(item.get("company")),
        location=location,
        description=_as_text(item.get("description")),
        url=_as_text(item.get("url")),
        source="llm_search",
        salary_text=_as_text(item.get("salary")) or None,
        posted_date=parse_datetime(item.get("postedDate") or item.get("posted_date")),
        keywords=list(keywords or []),
        skills=[s for s in skills if isinstance(s, str)],
        work_type=_as_text(item.get("workType") or item.get("work_type")) or None,
        city=city,
        province=province,
        country=country,
    )


class LLMSearchSource(JobSource):
    """Perplexity-backed job discovery."""

    name = "llm_search"
    priority_tier = TIER_GENERIC
    default_timeout_seconds = 20.0

    def __init__(
        self,
        llm: Optional[ChatOpenAI] = None,
        config: Optional[SourceConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        results_per_search: int = 25,
        keyword_count: int = 5,
        retry_attempts: int = 3,
    ):
        super().__init__(config)
        self._llm = llm
        self.rate_limiter = rate_limiter
        self.results_per_search = results_per_search
        self.keyword_count = keyword_count
        self.retry_attempts = retry_attempts

    def _get_llm(self) -> ChatOpenAI:
        if self._llm is None:
            api_key = Config.get_llm_api_key()
            if not api_key:
                raise JobSearchError("PERPLEXITY_API_KEY is not configured")
            self._llm = ChatOpenAI(
                model=Config.PERPLEXITY_MODEL,
                temperature=Config.SEARCH_TEMPERATURE,
                api_key=api_key,
                base_url=Config.PERPLEXITY_BASE_URL,
            )
        return self._llm

    async def _invoke(self, messages: List[Any]) -> str:
        if self.rate_limiter:
            await self.rate_limiter.acquire_async()
        response = await asyncio.to_thread(self._get_llm().invoke, messages)
        return response.content if isinstance(response.content, str) else str(response.content)

    async def search(self, params: SearchParams) -> List[JobListing]:
        terms = params.search_terms(self.keyword_count)
        if not terms:
            return []

        limit = min(self.results_per_search, params.max_results)
        messages = [
            SystemMessage(content=JOB_SEARCH_SYSTEM_PROMPT),
            HumanMessage(content=JOB_SEARCH_USER_PROMPT.format(
                limit=limit,
                keywords=", ".join(terms),
                location=params.location or "Canada",
                radius_km=params.radius_km,
            )),
        ]

        content = await call_with_retry(self._invoke, messages, attempts=self.retry_attempts)

        try:
            items = parse_llm_json_list(content, key="jobs")
        except ValueError as e:
            logger.warning(f"[llm_search] unparseable response ({len(content)} chars): {e}")
            return []

        listings = [
            job for job in (job_from_llm_item(item, params.location, terms) for item in items)
            if job is not None
        ]
        logger.debug(f"[llm_search] {len(items)} items -> {len(listings)} listings")
        return listings[:limit]
