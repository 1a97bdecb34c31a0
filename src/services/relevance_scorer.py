"""
Relevance Scorer

Deterministic 0-100 relevance score for a listing against a keyword set.

Score breakdown:
    base      = (keyword credit / keyword count) * 80
                per keyword: title 1.0 + description 0.5 + company 0.25, capped at 1.0
    recency   = +15 (<= 1 day), +10 (<= 7 days), +5 (<= 30 days)
    length    = -5 (> 5,000 chars), -10 (> 10,000 chars)
    location  = +5 when the target city appears in the job location

Ranking order: score desc, posted date desc (undated last), source tier
(ATS direct before job boards before generic).
"""

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from src.common.dedupe import url_host
from src.common.job_search_config import TIER_GENERIC, host_tier
from src.common.locations import city_of
from src.common.types import JobListing, ScoredJob

logger = logging.getLogger(__name__)

BASE_WEIGHT = 80.0
TITLE_CREDIT = 1.0
DESCRIPTION_CREDIT = 0.5
COMPANY_CREDIT = 0.25

RECENCY_BOOSTS = ((1, 15.0), (7, 10.0), (30, 5.0))  # (max age in days, boost)
LENGTH_PENALTIES = ((10000, 10.0), (5000, 5.0))  # (min length, penalty)
LOCATION_BONUS = 5.0

MATCH_TIERS = (("excellent", 80.0), ("good", 60.0), ("fair", 40.0))


def _matches(keyword: str, text: str) -> bool:
    """Word-boundary match for single words, substring match for phrases."""
    if not text:
        return False
    if " " in keyword:
        return keyword in text
    return re.search(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])", text) is not None


def match_tier(score: float) -> str:
    """Bucket a score: excellent >= 80, good >= 60, fair >= 40, else poor."""
    for name, threshold in MATCH_TIERS:
        if score >= threshold:
            return name
    return "poor"


class RelevanceScorer:
    """
    Scores and ranks listings.

    Pure computation: no I/O, and the same inputs always produce the same
    score (``now`` is injectable for tests).
    """

    def __init__(
        self,
        source_tiers: Optional[Dict[str, int]] = None,
        now: Optional[datetime] = None,
    ):
        """
        Args:
            source_tiers: Adapter name -> priority tier, used when the URL
                host is not a known ATS or board
            now: Fixed reference time for recency (defaults to utcnow)
        """
        self.source_tiers = source_tiers or {}
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.utcnow()

    @staticmethod
    def _normalize_keywords(keywords: Iterable[str]) -> List[str]:
        seen = []
        for keyword in keywords or []:
            if not isinstance(keyword, str):
                continue
            normalized = re.sub(r"\s+", " ", keyword).strip().lower()
            if normalized and normalized not in seen:
                seen.append(normalized)
        return seen

    def score(self, job: JobListing, keywords: Iterable[str], location: Optional[str] = None) -> float:
        """
        Score one listing.

        Returns:
            Score in [0, 100], rounded to 2 decimals. 0 for an empty keyword set.
        """
        normalized = self._normalize_keywords(keywords)
        if not normalized:
            return 0.0

        title = job.title.lower()
        description = job.description.lower()
        company = job.company.lower()

        credit = 0.0
        for keyword in normalized:
            keyword_credit = 0.0
            if _matches(keyword, title):
                keyword_credit += TITLE_CREDIT
            if _matches(keyword, description):
                keyword_credit += DESCRIPTION_CREDIT
            if _matches(keyword, company):
                keyword_credit += COMPANY_CREDIT
            credit += min(keyword_credit, 1.0)

        score = credit / len(normalized) * BASE_WEIGHT
        score += self._recency_boost(job.posted_date)
        score -= self._length_penalty(job.description)
        score += self._location_bonus(job, location)

        return round(min(100.0, max(0.0, score)), 2)

    def _recency_boost(self, posted_date: Optional[datetime]) -> float:
        if posted_date is None:
            return 0.0
        age_days = (self.now - posted_date).total_seconds() / 86400
        if age_days < 0:
            age_days = 0
        for max_days, boost in RECENCY_BOOSTS:
            if age_days <= max_days:
                return boost
        return 0.0

    @staticmethod
    def _length_penalty(description: str) -> float:
        length = len(description or "")
        for min_length, penalty in LENGTH_PENALTIES:
            if length > min_length:
                return penalty
        return 0.0

    @staticmethod
    def _location_bonus(job: JobListing, location: Optional[str]) -> float:
        city = city_of(location)
        if not city:
            return 0.0
        job_location = f"{job.location} {job.city or ''}".lower()
        return LOCATION_BONUS if city in job_location else 0.0

    def source_tier(self, job: JobListing) -> int:
        """ATS (0) / board (1) / generic (2), from the URL host or the adapter."""
        tier = host_tier(url_host(job.url))
        if tier is not None:
            return tier
        return self.source_tiers.get(job.source, TIER_GENERIC)

    def rank(
        self,
        jobs: List[JobListing],
        keywords: Iterable[str],
        location: Optional[str] = None,
    ) -> List[ScoredJob]:
        """Score every listing and sort best first."""
        keywords = list(keywords or [])
        scored = [ScoredJob(job=job, score=self.score(job, keywords, location)) for job in jobs]

        def sort_key(item: ScoredJob):
            posted = item.job.posted_date
            return (
                -item.score,
                0 if posted else 1,
                -posted.timestamp() if posted else 0.0,
                self.source_tier(item.job),
            )

        scored.sort(key=sort_key)
        return scored

    @staticmethod
    def match_statistics(scored: List[ScoredJob]) -> Dict:
        """Summary of a ranked result set: count, average, tier histogram, top score."""
        tiers = {"excellent": 0, "good": 0, "fair": 0, "poor": 0}
        for item in scored:
            tiers[match_tier(item.score)] += 1

        total = len(scored)
        average = round(sum(item.score for item in scored) / total, 2) if total else 0.0
        return {
            "total": total,
            "average": average,
            "tiers": tiers,
            "top_score": max((item.score for item in scored), default=0.0),
        }
