"""
Canonical Types for the Job Aggregation Pipeline

Every source adapter normalizes its raw records into JobListing at the
adapter boundary. Caches, the deduplicator and the scorer only ever see
these types.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.common.dedupe import canonical_key, generate_external_id


# Fields counted by the "more complete wins" merge rule
COMPLETENESS_FIELDS = (
    "title",
    "company",
    "location",
    "description",
    "url",
    "salary_text",
    "posted_date",
    "skills",
    "work_type",
)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO string (or pass through a datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


@dataclass
class JobListing:
    """A single normalized job posting."""
    title: str
    company: str
    location: str
    description: str
    url: str
    source: str
    external_id: str = ""
    salary_text: Optional[str] = None
    posted_date: Optional[datetime] = None
    keywords: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    work_type: Optional[str] = None  # full-time, part-time, contract, remote
    city: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None
    last_seen_at: Optional[datetime] = None

    def __post_init__(self):
        self.title = (self.title or "").strip()
        self.company = (self.company or "").strip()
        self.location = (self.location or "").strip()
        self.description = (self.description or "").strip()
        self.url = (self.url or "").strip()
        if not self.external_id:
            self.external_id = generate_external_id(self.dedupe_key)

    @property
    def dedupe_key(self) -> str:
        """Canonical key used to detect duplicates."""
        return canonical_key(
            company=self.company,
            title=self.title,
            url=self.url,
            description=self.description,
        )

    def completeness(self) -> int:
        """Count of non-empty completeness fields."""
        return sum(1 for name in COMPLETENESS_FIELDS if getattr(self, name))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dictionary (dates as ISO strings)."""
        data = asdict(self)
        for key in ("posted_date", "last_seen_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobListing":
        """Rebuild a listing from to_dict() output or a cached document."""
        return cls(
            title=data.get("title") or "",
            company=data.get("company") or "",
            location=data.get("location") or "",
            description=data.get("description") or "",
            url=data.get("url") or "",
            source=data.get("source") or "unknown",
            external_id=data.get("external_id") or data.get("jobId") or "",
            salary_text=data.get("salary_text") or data.get("salary"),
            posted_date=parse_datetime(data.get("posted_date") or data.get("postedDate")),
            keywords=list(data.get("keywords") or []),
            skills=list(data.get("skills") or []),
            work_type=data.get("work_type") or data.get("workType"),
            city=data.get("city"),
            province=data.get("province"),
            country=data.get("country"),
            last_seen_at=parse_datetime(data.get("last_seen_at") or data.get("lastSeenAt")),
        )


@dataclass
class ResumeSignals:
    """Search signals derived once per resume version."""
    keywords: List[str] = field(default_factory=list)
    location: Optional[str] = None
    locations: List[str] = field(default_factory=list)
    extraction_method: str = "none"  # "llm", "local" or "none"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keywords": list(self.keywords),
            "location": self.location,
            "locations": list(self.locations),
            "extractionMethod": self.extraction_method,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResumeSignals":
        return cls(
            keywords=list(data.get("keywords") or []),
            location=data.get("location"),
            locations=list(data.get("locations") or []),
            extraction_method=data.get("extractionMethod") or data.get("extraction_method") or "none",
        )


@dataclass
class SearchParams:
    """Input passed to every source adapter."""
    keywords: List[str]
    location: str = ""
    radius_km: int = 70
    max_results: int = 100

    def search_terms(self, count: int) -> List[str]:
        """Top-N keywords, used to keep scraper fan-out bounded."""
        return [k for k in self.keywords if k][:count]

    @property
    def query(self) -> str:
        return " ".join(self.search_terms(3))


@dataclass
class CacheEntry:
    """
    A cached search result set.

    Entries are purged by TTL, never mutated, apart from the search counter.
    """
    cache_key: str
    query: List[str]
    location: str
    jobs: List[JobListing]
    created_at: datetime
    expires_at: datetime
    radius_km: int = 70
    source_mix: Dict[str, int] = field(default_factory=dict)
    search_count: int = 1

    def __post_init__(self):
        if self.expires_at <= self.created_at:
            raise ValueError(
                f"CacheEntry {self.cache_key} expires_at must be after created_at"
            )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_key": self.cache_key,
            "query": list(self.query),
            "location": self.location,
            "radius_km": self.radius_km,
            "jobs": [job.to_dict() for job in self.jobs],
            "source_mix": dict(self.source_mix),
            "search_count": self.search_count,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            cache_key=data["cache_key"],
            query=list(data.get("query") or []),
            location=data.get("location") or "",
            radius_km=int(data.get("radius_km") or 70),
            jobs=[JobListing.from_dict(job) for job in data.get("jobs") or []],
            source_mix=dict(data.get("source_mix") or {}),
            search_count=int(data.get("search_count") or 1),
            created_at=parse_datetime(data["created_at"]),
            expires_at=parse_datetime(data["expires_at"]),
        )


@dataclass
class ScoredJob:
    """Ephemeral (listing, score) pair; never persisted beyond a response."""
    job: JobListing
    score: float

    def to_response(self, tier: str) -> Dict[str, Any]:
        data = self.job.to_dict()
        data["relevanceScore"] = self.score
        data["matchTier"] = tier
        return data
