"""
Job Search Routes

Resume-driven job search over the tiered cache and live sources.

Endpoints:
    POST /jobs/search-by-resume         - Search with a stored resume or raw text
    GET  /jobs/search-by-resume/stats   - Cache statistics
    GET  /jobs/search-cache             - Keyword search over cached listings
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.common.error_handling import InvalidSearchInputError
from src.common.repositories import resume_signals_of, resume_text_of
from src.common.types import ResumeSignals
from src.services.relevance_scorer import match_tier

from ..auth import verify_token
from ..dependencies import ServiceContainer, enforce_rate_limit, get_container
from ..models import (
    CacheSearchResponse,
    SearchByResumeRequest,
    SearchByResumeResponse,
    SearchMetadata,
    StatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])

# Listings fetched per requested result before score filtering
CACHE_SEARCH_OVERFETCH = 4


def _error(status_code: int, error: str, details: Optional[str] = None) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, "details": details})


async def _resolve_signals(
    request: SearchByResumeRequest,
    container: ServiceContainer,
) -> ResumeSignals:
    """Stored signals for a resume id (extracting and saving them if missing), or fresh ones for raw text."""
    if request.resume_id:
        repository = container.resume_repository
        if repository is None:
            raise _error(500, "Resume storage is not configured")

        resume = await asyncio.to_thread(repository.find_resume, request.resume_id)
        if not resume:
            raise _error(404, "Resume not found", f"No resume with id {request.resume_id}")

        signals = resume_signals_of(resume)
        if signals is not None:
            return signals

        text = resume_text_of(resume)
        if not text:
            raise _error(400, "Resume has not been analyzed", "The resume has no stored signals or text")

        signals = await container.signal_extractor.extract(text)
        if signals.keywords:
            await asyncio.to_thread(repository.save_signals, request.resume_id, signals)
        return signals

    if request.resume_text and request.resume_text.strip():
        return await container.signal_extractor.extract(request.resume_text)

    raise _error(400, "Resume ID or resume text is required")


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/search-by-resume",
    response_model=SearchByResumeResponse,
    dependencies=[Depends(verify_token), Depends(enforce_rate_limit)],
)
async def search_by_resume(
    request: SearchByResumeRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Search jobs matching a resume.

    **Example request:**
    ```json
    {"resumeId": "65f1c0ffee", "radiusKm": 70, "maxResults": 100}
    ```
    """
    request_id = uuid.uuid4().hex
    signals = await _resolve_signals(request, container)
    if not signals.keywords:
        raise _error(400, "No keywords could be extracted from resume")

    location = (request.location or signals.location or "").strip()

    try:
        outcome = await container.aggregator.search_by_resume_keywords(
            signals.keywords,
            location=location,
            radius_km=request.radius_km,
            max_results=request.max_results,
            request_id=request_id,
        )
    except InvalidSearchInputError:
        raise
    except Exception as e:
        logger.exception(f"[req:{request_id[:8]}] Job search failed: {e}")
        raise _error(500, "Job search failed", str(e))

    return SearchByResumeResponse(
        success=True,
        jobs=outcome.job_dicts(),
        metadata=SearchMetadata(
            source=outcome.source,
            cached=outcome.cached,
            duration=outcome.duration_ms,
            search_count=outcome.search_count,
            timestamp=datetime.utcnow(),
            keywords=outcome.keywords,
            location=outcome.location,
            radius_km=outcome.radius_km,
            source_mix=outcome.source_mix,
            errors=outcome.errors,
            match_statistics=container.scorer.match_statistics(outcome.jobs),
            extraction_method=signals.extraction_method,
        ),
    )


@router.get(
    "/search-by-resume/stats",
    response_model=StatsResponse,
    dependencies=[Depends(verify_token)],
)
async def search_stats(container: ServiceContainer = Depends(get_container)):
    """Fast cache, document cache and listing counts."""
    return StatsResponse(stats=await container.aggregator.get_cache_stats())


@router.get(
    "/search-cache",
    response_model=CacheSearchResponse,
    dependencies=[Depends(verify_token), Depends(enforce_rate_limit)],
)
async def search_cache(
    keywords: Optional[str] = Query(None, description="Comma-separated keywords"),
    location: Optional[str] = Query(None, description="City or province to match"),
    limit: int = Query(50, ge=1, le=200),
    min_score: float = Query(5, ge=0, le=100, alias="minScore"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Search previously downloaded listings without hitting any source.

    Listings are scored against the keywords; those below minScore are dropped.
    """
    keyword_list: List[str] = [k.strip() for k in (keywords or "").split(",") if k.strip()]
    if not keyword_list:
        raise _error(400, "Keywords are required", "Pass keywords as a comma-separated list")

    listings = []
    if container.cache_repository is not None:
        listings = await asyncio.to_thread(
            container.cache_repository.find_jobs,
            keyword_list,
            location,
            min(limit * CACHE_SEARCH_OVERFETCH, 1000),
        )

    ranked = [
        scored for scored in container.scorer.rank(listings, keyword_list, location)
        if scored.score >= min_score
    ][:limit]

    return CacheSearchResponse(
        jobs=[scored.to_response(match_tier(scored.score)) for scored in ranked],
        total=len(ranked),
        metadata={
            "keywords": keyword_list,
            "location": location,
            "minScore": min_score,
            "scanned": len(listings),
        },
    )
