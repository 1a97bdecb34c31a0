"""
Resume Signal Extractor

Derives search signals (ranked keywords + location) from resume text.

Strategy chain:
    1. LLM extraction (Perplexity via the OpenAI-compatible API)
    2. Local heuristic parser (always available, no I/O)

extract() never raises: a missing API key, a timeout, or malformed model
output all fall through to the local parser, and if that yields nothing
the result is empty signals with extraction_method="none".
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from src.common.config import Config
from src.common.error_handling import JobSearchError, UpstreamMalformedError
from src.common.fallback import Strategy, first_success
from src.common.json_utils import parse_llm_json_object
from src.common.locations import find_locations
from src.common.rate_limiter import RateLimiter
from src.common.retry import call_with_retry
from src.common.types import ResumeSignals
from src.services.resume_parser import DEFAULT_MAX_KEYWORDS, LocalResumeParser, normalize_keywords

logger = logging.getLogger(__name__)

# Resumes longer than this are truncated before prompting
MAX_RESUME_CHARS = 12000

SIGNAL_SYSTEM_PROMPT = """You are an expert career advisor who turns resumes into job-search keywords.

Rank keywords by how strongly they describe what this person can be hired for:
- Long tenure outweighs short tenure (10 years of truck driving beats 6 months as a cook)
- Recent and current roles outweigh old ones
- Prefer job titles and concrete skills over soft skills
- Use the terms an employer would put in a job posting title

Also identify where the candidate lives, as "City, Province code" when possible.

Respond with JSON only, no commentary:
{"keywords": ["most important", "..."], "location": "City, XX" or null, "locations": ["City, XX", "..."]}"""

SIGNAL_USER_PROMPT = """Extract up to {max_keywords} ranked job-search keywords and the candidate's location.

=== RESUME ===
{resume_text}"""


class LLMSignalExtractor:
    """
    LLM-backed signal extraction.

    Raises on any failure so the caller's fallback chain can move on.
    """

    def __init__(
        self,
        llm: Optional[ChatOpenAI] = None,
        max_keywords: int = DEFAULT_MAX_KEYWORDS,
        rate_limiter: Optional[RateLimiter] = None,
        timeout_seconds: float = 30.0,
        retry_attempts: int = 2,
    ):
        """
        Initialize the extractor.

        Args:
            llm: Optional pre-configured chat model (built lazily from Config otherwise)
            max_keywords: Cap on returned keywords
            rate_limiter: Shared limiter for the LLM provider
            timeout_seconds: Per-call timeout
            retry_attempts: Attempts for transient failures
        """
        self._llm = llm
        self.max_keywords = max_keywords
        self.rate_limiter = rate_limiter
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = retry_attempts

    @property
    def available(self) -> bool:
        return self._llm is not None or bool(Config.get_llm_api_key())

    def _get_llm(self) -> ChatOpenAI:
        if self._llm is None:
            api_key = Config.get_llm_api_key()
            if not api_key:
                raise JobSearchError("PERPLEXITY_API_KEY is not configured")
            self._llm = ChatOpenAI(
                model=Config.SIGNAL_MODEL,
                temperature=Config.ANALYTICAL_TEMPERATURE,
                api_key=api_key,
                base_url=Config.PERPLEXITY_BASE_URL,
            )
        return self._llm

    async def _invoke(self, messages: List[Any]) -> str:
        if self.rate_limiter:
            await self.rate_limiter.acquire_async()
        llm = self._get_llm()
        response = await asyncio.wait_for(
            asyncio.to_thread(llm.invoke, messages),
            timeout=self.timeout_seconds,
        )
        return response.content if isinstance(response.content, str) else str(response.content)

    async def extract(self, resume_text: str) -> ResumeSignals:
        """
        Extract signals with the LLM.

        Raises:
            JobSearchError: No API key configured
            UpstreamMalformedError: Unparseable output or no keywords
            asyncio.TimeoutError: The call exceeded timeout_seconds
        """
        messages = [
            SystemMessage(content=SIGNAL_SYSTEM_PROMPT),
            HumanMessage(content=SIGNAL_USER_PROMPT.format(
                max_keywords=self.max_keywords,
                resume_text=resume_text[:MAX_RESUME_CHARS],
            )),
        ]

        content = await call_with_retry(self._invoke, messages, attempts=self.retry_attempts)

        try:
            data = parse_llm_json_object(content)
        except ValueError as e:
            raise UpstreamMalformedError(f"Signal extraction returned invalid JSON: {e}") from e

        return self._to_signals(data, resume_text)

    def _to_signals(self, data: Dict[str, Any], resume_text: str) -> ResumeSignals:
        raw_keywords = data.get("keywords")
        if isinstance(raw_keywords, str):
            raw_keywords = raw_keywords.split(",")
        keywords = normalize_keywords(raw_keywords or [], self.max_keywords)
        if not keywords:
            raise UpstreamMalformedError("Signal extraction returned no keywords")

        location = data.get("location")
        if not isinstance(location, str) or not location.strip():
            location = None
        locations = [loc for loc in (data.get("locations") or []) if isinstance(loc, str) and loc.strip()]

        # Prefer the model's location, fall back to whatever the text states
        if not location:
            found = find_locations(resume_text)
            location = found[0] if found else None
            locations = locations or found
        if location and location not in locations:
            locations.insert(0, location)

        return ResumeSignals(
            keywords=keywords,
            location=location.strip() if location else None,
            locations=locations,
            extraction_method="llm",
        )


def _has_keywords(signals: Optional[ResumeSignals]) -> bool:
    return signals is not None and bool(signals.keywords)


class SignalExtractor:
    """
    Resume text -> ResumeSignals with LLM primary and local fallback.

    Usage:
        extractor = SignalExtractor(llm_extractor=LLMSignalExtractor())
        signals = await extractor.extract(resume_text)
        signals.extraction_method  # "llm", "local" or "none"
    """

    def __init__(
        self,
        llm_extractor: Optional[LLMSignalExtractor] = None,
        local_parser: Optional[LocalResumeParser] = None,
        max_keywords: int = DEFAULT_MAX_KEYWORDS,
    ):
        self.llm_extractor = llm_extractor
        self.local_parser = local_parser or LocalResumeParser(max_keywords=max_keywords)

    def _strategies(self) -> List[Strategy]:
        strategies = []
        if self.llm_extractor is not None and self.llm_extractor.available:
            strategies.append(Strategy("llm", self.llm_extractor.extract))
        strategies.append(Strategy("local", self.local_parser.extract))
        return strategies

    async def extract(self, resume_text: str) -> ResumeSignals:
        """
        Extract ranked keywords and location. Never raises.

        Args:
            resume_text: Plain resume text (may be empty)

        Returns:
            ResumeSignals; empty with extraction_method="none" when nothing
            could be extracted
        """
        if not isinstance(resume_text, str) or not resume_text.strip():
            logger.info("Signal extraction skipped: empty resume text")
            return ResumeSignals()

        outcome = await first_success(self._strategies(), resume_text, accept=_has_keywords)

        if not outcome.succeeded:
            logger.warning(
                f"Signal extraction failed for all strategies: {outcome.failed_strategies}"
            )
            return ResumeSignals()

        signals: ResumeSignals = outcome.value
        if outcome.failed_strategies:
            logger.info(
                f"Signal extraction fell back to '{outcome.strategy}' "
                f"after {outcome.failed_strategies}"
            )
        logger.info(
            f"Extracted {len(signals.keywords)} keywords via {signals.extraction_method}, "
            f"location={signals.location}"
        )
        return signals
