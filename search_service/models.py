"""
Shared Pydantic models for the search service.

Wire format is camelCase (resumeId, radiusKm, ...); Python attributes stay
snake_case through an alias generator.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Requests
# =============================================================================

class SearchByResumeRequest(CamelModel):
    """Request body for resume-driven search."""

    resume_id: Optional[str] = Field(None, description="Stored resume identifier.")
    resume_text: Optional[str] = Field(
        None, max_length=100_000, description="Raw resume text (used when no resumeId)."
    )
    location: Optional[str] = Field(None, description="Override for the resume's location.")
    radius_km: int = Field(70, ge=1, le=500, description="Search radius in kilometres.")
    max_results: int = Field(100, ge=1, le=200, description="Maximum listings returned.")


class ExtractSignalsRequest(CamelModel):
    """Request body for signal extraction."""

    resume_text: str = Field(..., min_length=1, max_length=100_000)


# =============================================================================
# Responses
# =============================================================================

class SearchMetadata(CamelModel):
    """Metadata describing how a search was served."""

    source: str
    cached: bool
    duration: int = Field(..., description="Search duration in milliseconds.")
    search_count: int
    timestamp: datetime
    keywords: List[str]
    location: str
    radius_km: int
    source_mix: Dict[str, int] = Field(default_factory=dict)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    match_statistics: Dict[str, Any] = Field(default_factory=dict)
    extraction_method: Optional[str] = None


class SearchByResumeResponse(CamelModel):
    success: bool = True
    jobs: List[Dict[str, Any]]
    metadata: SearchMetadata


class CacheSearchResponse(CamelModel):
    success: bool = True
    jobs: List[Dict[str, Any]]
    total: int
    metadata: Dict[str, Any]


class SignalsResponse(CamelModel):
    success: bool = True
    signals: Dict[str, Any]
    extraction_method: str


class StatsResponse(CamelModel):
    success: bool = True
    stats: Dict[str, Any]


class PrefetchResults(CamelModel):
    total: int
    success: int
    failed: int
    skipped: int
    errors: List[str] = Field(default_factory=list)


class PrefetchResponse(CamelModel):
    success: bool = True
    results: PrefetchResults


class HealthResponse(CamelModel):
    """Health check response."""

    status: str
    timestamp: datetime
    sources: List[str] = Field(default_factory=list)
    fast_cache: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str
    details: Optional[Any] = None
