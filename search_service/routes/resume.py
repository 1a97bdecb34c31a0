"""
Resume Routes

Endpoints:
    POST /resume/extract-signals - Ranked keywords and location from resume text
"""

import logging

from fastapi import APIRouter, Depends

from ..auth import verify_token
from ..dependencies import ServiceContainer, enforce_rate_limit, get_container
from ..models import ExtractSignalsRequest, SignalsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resume", tags=["resume"])


@router.post(
    "/extract-signals",
    response_model=SignalsResponse,
    dependencies=[Depends(verify_token), Depends(enforce_rate_limit)],
)
async def extract_signals(
    request: ExtractSignalsRequest,
    container: ServiceContainer = Depends(get_container),
):
    """Extract search signals; falls back to the local parser when the LLM is unavailable."""
    signals = await container.signal_extractor.extract(request.resume_text)
    return SignalsResponse(
        signals=signals.to_dict(),
        extraction_method=signals.extraction_method,
    )
