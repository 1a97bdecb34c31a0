"""
Job Search Configuration

Single home for the aggregation pipeline's tunables: cache TTL policy,
adapter timeouts, the global fetch budget, retry attempts, and the host
tables used to rank sources.

Usage:
    config = JobSearchConfig.from_env()
    expires_at = config.ttl.expires_at("global")
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional


# Source priority tiers (lower is better)
TIER_ATS = 0
TIER_BOARD = 1
TIER_GENERIC = 2

# Applicant tracking systems: postings straight from the employer
ATS_HOSTS: List[str] = [
    "greenhouse.io",
    "boards.greenhouse.io",
    "jobs.lever.co",
    "myworkdayjobs.com",
    "workday.com",
    "jobvite.com",
    "smartrecruiters.com",
]

# Aggregating job boards
BOARD_HOSTS: List[str] = [
    "indeed.com",
    "ca.indeed.com",
    "linkedin.com",
    "ziprecruiter.com",
    "jobbank.gc.ca",
    "workopolis.com",
    "glassdoor.com",
    "glassdoor.ca",
    "eluta.ca",
]


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


@dataclass
class CacheTTLPolicy:
    """
    Centralized cache lifetimes, in seconds.

    Tiers:
        fast: Redis / in-memory search results
        user: per-search document cache entries
        global: individual listings in GlobalJobsCache
        stale_grace: how long an expired search entry is kept as a fallback
        prefetch_fresh: entries younger than this are skipped by prefetch
    """
    fast_seconds: int = 3600
    user_seconds: int = 24 * 3600
    global_seconds: int = 14 * 24 * 3600
    stale_grace_seconds: int = 7 * 24 * 3600
    prefetch_fresh_seconds: int = 12 * 3600

    def seconds_for(self, tier: str) -> int:
        """TTL in seconds for a named tier ("fast", "user", "global")."""
        mapping = {
            "fast": self.fast_seconds,
            "user": self.user_seconds,
            "global": self.global_seconds,
        }
        if tier not in mapping:
            raise ValueError(f"Unknown cache tier: {tier}")
        return mapping[tier]

    def expires_at(self, tier: str, now: Optional[datetime] = None) -> datetime:
        return (now or datetime.utcnow()) + timedelta(seconds=self.seconds_for(tier))

    def purge_at(self, expires_at: datetime) -> datetime:
        """When an expired search entry is physically removed by Mongo TTL."""
        return expires_at + timedelta(seconds=self.stale_grace_seconds)

    @classmethod
    def from_env(cls) -> "CacheTTLPolicy":
        """
        Environment variables:
            CACHE_TTL_FAST_SECONDS (default: 3600)
            CACHE_TTL_USER_HOURS (default: 24)
            CACHE_TTL_GLOBAL_DAYS (default: 14)
            CACHE_STALE_GRACE_DAYS (default: 7)
            PREFETCH_FRESH_HOURS (default: 12)
        """
        return cls(
            fast_seconds=_env_int("CACHE_TTL_FAST_SECONDS", 3600),
            user_seconds=_env_int("CACHE_TTL_USER_HOURS", 24) * 3600,
            global_seconds=_env_int("CACHE_TTL_GLOBAL_DAYS", 14) * 24 * 3600,
            stale_grace_seconds=_env_int("CACHE_STALE_GRACE_DAYS", 7) * 24 * 3600,
            prefetch_fresh_seconds=_env_int("PREFETCH_FRESH_HOURS", 12) * 3600,
        )


@dataclass
class SourceConfig:
    """Configuration for a job source adapter."""
    id: str
    label: str
    tier: int
    timeout_seconds: float


DEFAULT_SOURCES: List[SourceConfig] = [
    SourceConfig(id="llm_search", label="Perplexity Search", tier=TIER_GENERIC, timeout_seconds=20.0),
    SourceConfig(id="search_engine", label="Search Engine (ATS)", tier=TIER_ATS, timeout_seconds=20.0),
    SourceConfig(id="eluta", label="Eluta.ca", tier=TIER_BOARD, timeout_seconds=15.0),
    SourceConfig(id="indeed", label="Indeed Canada", tier=TIER_BOARD, timeout_seconds=15.0),
    SourceConfig(id="linkedin", label="LinkedIn Jobs", tier=TIER_BOARD, timeout_seconds=15.0),
]


@dataclass
class JobSearchConfig:
    """
    Configuration for the job aggregation pipeline.

    Loads settings from environment variables with sensible defaults.
    """

    ttl: CacheTTLPolicy = field(default_factory=CacheTTLPolicy)

    # Fetch limits
    search_budget_seconds: float = 25.0
    retry_attempts: int = 3
    max_keywords: int = 20
    scraper_keyword_count: int = 3
    resume_keyword_count: int = 10
    max_results: int = 100
    llm_results_per_search: int = 25

    sources: List[SourceConfig] = field(default_factory=lambda: DEFAULT_SOURCES.copy())

    @classmethod
    def from_env(cls) -> "JobSearchConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            JOB_SEARCH_BUDGET_SECONDS: Overall live-fetch budget (default: 25)
            JOB_SEARCH_RETRY_ATTEMPTS: Attempts for transient errors (default: 3)
            JOB_SEARCH_MAX_KEYWORDS: Cap on extracted keywords (default: 20)
            JOB_SEARCH_MAX_RESULTS: Default response size (default: 100)
            JOB_SOURCE_TIMEOUT_<ID>: Per-adapter timeout override in seconds
        """
        sources = [
            SourceConfig(
                id=s.id,
                label=s.label,
                tier=s.tier,
                timeout_seconds=_env_float(f"JOB_SOURCE_TIMEOUT_{s.id.upper()}", s.timeout_seconds),
            )
            for s in DEFAULT_SOURCES
        ]

        return cls(
            ttl=CacheTTLPolicy.from_env(),
            search_budget_seconds=_env_float("JOB_SEARCH_BUDGET_SECONDS", 25.0),
            retry_attempts=_env_int("JOB_SEARCH_RETRY_ATTEMPTS", 3),
            max_keywords=_env_int("JOB_SEARCH_MAX_KEYWORDS", 20),
            max_results=_env_int("JOB_SEARCH_MAX_RESULTS", 100),
            sources=sources,
        )

    def get_source_by_id(self, source_id: str) -> Optional[SourceConfig]:
        """Get a source config by its ID."""
        for source in self.sources:
            if source.id == source_id:
                return source
        return None

    def source_timeouts(self) -> Dict[str, float]:
        return {s.id: s.timeout_seconds for s in self.sources}


def host_tier(host: str) -> Optional[int]:
    """
    Classify a host into a source priority tier.

    Returns None when the host is not a known ATS or board.
    """
    if not host:
        return None
    if any(host == h or host.endswith("." + h) for h in ATS_HOSTS):
        return TIER_ATS
    if any(host == h or host.endswith("." + h) for h in BOARD_HOSTS):
        return TIER_BOARD
    return None
