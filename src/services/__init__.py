"""
Job search services.

Signal extraction, relevance scoring, deduplication and the tiered
aggregator that runs the source adapters in ``job_sources``.
"""

from src.services.job_aggregator import JobAggregator, PrefetchTarget, SearchOutcome
from src.services.job_deduplicator import JobDeduplicator
from src.services.relevance_scorer import RelevanceScorer, match_tier
from src.services.resume_parser import LocalResumeParser
from src.services.signal_extractor import LLMSignalExtractor, SignalExtractor

__all__ = [
    "JobAggregator",
    "PrefetchTarget",
    "SearchOutcome",
    "JobDeduplicator",
    "RelevanceScorer",
    "match_tier",
    "LocalResumeParser",
    "LLMSignalExtractor",
    "SignalExtractor",
]
