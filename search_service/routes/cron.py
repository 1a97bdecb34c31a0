"""
Cron Routes

Endpoints:
    GET /cron/prefetch-jobs - Warm caches for recently analyzed resumes
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from src.services.job_aggregator import PrefetchTarget

from ..auth import verify_cron_secret
from ..config import get_settings
from ..dependencies import ServiceContainer, get_container
from ..models import PrefetchResponse, PrefetchResults

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


@router.get(
    "/prefetch-jobs",
    response_model=PrefetchResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def prefetch_jobs(container: ServiceContainer = Depends(get_container)):
    """
    Pre-download listings for analyzed resumes so user searches hit the cache.

    Resumes whose cache entry is still fresh are skipped.
    """
    if container.resume_repository is None:
        return PrefetchResponse(results=PrefetchResults(total=0, success=0, failed=0, skipped=0))

    analyzed = await asyncio.to_thread(
        container.resume_repository.list_analyzed, get_settings().prefetch_max_profiles
    )
    targets = [
        PrefetchTarget(keywords=signals.keywords, location=signals.location or "", label=resume_id)
        for resume_id, signals in analyzed
    ]
    logger.info(f"Prefetch starting for {len(targets)} resumes")

    results = await container.aggregator.prefetch(targets)
    return PrefetchResponse(results=PrefetchResults(**results))
