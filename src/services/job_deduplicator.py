"""
Job Deduplicator

Collapses listings that describe the same posting into one record.

Two listings are duplicates when their canonical keys match (see
src.common.dedupe.canonical_key). On a collision the more complete record
wins, counted over COMPLETENESS_FIELDS; a tie keeps the first one seen.
The output preserves first-seen order, so dedupe is idempotent.
"""

import logging
import re
from collections import OrderedDict
from typing import Dict, List, Tuple

from src.common.dedupe import normalize_for_dedupe
from src.common.types import JobListing

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85


def _tokens(job: JobListing) -> set:
    text = f"{job.title} {job.company}".lower()
    return set(re.findall(r"[a-z0-9]+", text))


def jaccard_similarity(a: JobListing, b: JobListing) -> float:
    """Token-set Jaccard similarity over title + company."""
    tokens_a, tokens_b = _tokens(a), _tokens(b)
    if not tokens_a and not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


class JobDeduplicator:
    """Canonical-key deduplication with a completeness merge rule."""

    def dedupe(self, jobs: List[JobListing]) -> List[JobListing]:
        """
        Remove duplicates.

        Args:
            jobs: Listings from any number of sources, in arrival order

        Returns:
            One listing per canonical key, in first-seen key order
        """
        kept: "OrderedDict[str, JobListing]" = OrderedDict()
        replaced = 0

        for job in jobs:
            key = job.dedupe_key
            existing = kept.get(key)
            if existing is None:
                kept[key] = job
                continue

            if job.completeness() > existing.completeness():
                logger.debug(
                    f"Duplicate {key!r}: replacing {existing.source} record "
                    f"(completeness {existing.completeness()}) with {job.source} record "
                    f"(completeness {job.completeness()})"
                )
                kept[key] = job
                replaced += 1

        removed = len(jobs) - len(kept)
        if removed:
            logger.info(f"Deduplicated {len(jobs)} listings to {len(kept)} ({replaced} replaced)")
        return list(kept.values())

    @staticmethod
    def group_by_company(jobs: List[JobListing]) -> Dict[str, List[JobListing]]:
        """Group listings by normalized company name (empty names under "")."""
        groups: Dict[str, List[JobListing]] = {}
        for job in jobs:
            groups.setdefault(normalize_for_dedupe(job.company), []).append(job)
        return groups

    @staticmethod
    def find_similar(
        job: JobListing,
        candidates: List[JobListing],
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> List[Tuple[JobListing, float]]:
        """
        Listings whose title+company tokens overlap with ``job``.

        Returns:
            (candidate, similarity) pairs at or above threshold, most similar first
        """
        matches = []
        for candidate in candidates:
            if candidate is job:
                continue
            similarity = jaccard_similarity(job, candidate)
            if similarity >= threshold:
                matches.append((candidate, round(similarity, 4)))
        matches.sort(key=lambda pair: -pair[1])
        return matches
