"""
Job Aggregator

Pull-on-demand job search across all sources with a tiered cache.

Architecture:
    - Tiers are tried in order until one yields listings:
        fast_cache -> document_cache -> live -> stale_cache
    - A live fetch runs every adapter concurrently, each bounded by its own
      timeout and all of them by the global search budget
    - Live results are deduplicated, scored and ranked, then written to both
      cache tiers (search entry + per-listing GlobalJobsCache documents)
    - Cached results are re-ranked on the way out so recency stays current
    - A degraded search never raises: the worst case is an empty result
      with source="none"

Usage:
    aggregator = JobAggregator(fast_cache, cache_repo, sources)
    outcome = await aggregator.search(["truck driver"], "Edmonton, AB")
    outcome.source   # "fast_cache", "document_cache", "live", "stale_cache" or "none"
"""

import asyncio
import hashlib
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from src.common.error_handling import ErrorCollector, InvalidSearchInputError
from src.common.fallback import Strategy, first_success
from src.common.fast_cache import FastCache
from src.common.job_search_config import JobSearchConfig
from src.common.logger import SearchLogger, get_logger
from src.common.repositories import JobsCacheRepositoryInterface
from src.common.types import CacheEntry, JobListing, ScoredJob, SearchParams
from src.services.job_deduplicator import JobDeduplicator
from src.services.job_sources import JobSource
from src.services.relevance_scorer import RelevanceScorer, match_tier
from src.services.resume_parser import normalize_keywords

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "jobs:"
DEFAULT_RADIUS_KM = 70

SOURCE_FAST_CACHE = "fast_cache"
SOURCE_DOCUMENT_CACHE = "document_cache"
SOURCE_LIVE = "live"
SOURCE_STALE_CACHE = "stale_cache"
SOURCE_NONE = "none"

CACHED_SOURCES = (SOURCE_FAST_CACHE, SOURCE_DOCUMENT_CACHE, SOURCE_STALE_CACHE)


@dataclass
class SearchOutcome:
    """Result from a search operation."""
    jobs: List[ScoredJob]
    source: str
    cache_key: str
    keywords: List[str]
    location: str
    radius_km: int
    duration_ms: int
    search_count: int = 1
    source_mix: Dict[str, int] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def cached(self) -> bool:
        return self.source in CACHED_SOURCES

    def job_dicts(self) -> List[Dict[str, Any]]:
        """Listings as response dictionaries with relevanceScore and matchTier."""
        return [scored.to_response(match_tier(scored.score)) for scored in self.jobs]


@dataclass
class PrefetchTarget:
    """A (keywords, location) pair whose cache should be kept warm."""
    keywords: List[str]
    location: str
    label: str = ""


@dataclass
class _SearchContext:
    """Per-request state shared by the tier strategies."""
    params: SearchParams
    cache_key: str
    log: SearchLogger
    errors: ErrorCollector = field(default_factory=ErrorCollector)
    search_count: int = 1
    source_mix: Dict[str, int] = field(default_factory=dict)


class JobAggregator:
    """
    Coordinates job searches across sources with tiered caching.

    Collections used (through the repository):
        - job_search_cache: one entry per search, TTL on purge_at
        - GlobalJobsCache: one document per listing, TTL on expiresAt
    """

    def __init__(
        self,
        fast_cache: FastCache,
        repository: Optional[JobsCacheRepositoryInterface],
        sources: List[JobSource],
        config: Optional[JobSearchConfig] = None,
        scorer: Optional[RelevanceScorer] = None,
        deduplicator: Optional[JobDeduplicator] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            fast_cache: Redis or in-memory fast cache
            repository: Document cache repository (None disables that tier)
            sources: Source adapters, in merge order
            config: Optional configuration (loads from env if not provided)
            scorer: Optional scorer (defaults to one aware of adapter tiers)
            deduplicator: Optional deduplicator
        """
        self.fast_cache = fast_cache
        self.repository = repository
        self.sources = sources
        self.config = config or JobSearchConfig.from_env()
        self.scorer = scorer or RelevanceScorer(
            source_tiers={s.name: s.priority_tier for s in sources}
        )
        self.deduplicator = deduplicator or JobDeduplicator()

    # =========================================================================
    # Cache key
    # =========================================================================

    @staticmethod
    def generate_cache_key(keywords: List[str], location: str, radius_km: int) -> str:
        """
        Generate a deterministic cache key from search parameters.

        Normalizes and sorts parameters so the same logical search always
        produces the same key.
        """
        normalized = {
            "keywords": sorted({k.lower().strip() for k in keywords if k and k.strip()}),
            "location": (location or "").lower().strip(),
            "radius_km": int(radius_km),
        }
        key_string = json.dumps(normalized, sort_keys=True)
        return CACHE_KEY_PREFIX + hashlib.sha256(key_string.encode()).hexdigest()[:32]

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        keywords: List[str],
        location: str = "",
        radius_km: int = DEFAULT_RADIUS_KM,
        max_results: Optional[int] = None,
        refresh: bool = False,
        request_id: Optional[str] = None,
    ) -> SearchOutcome:
        """
        Execute a job search.

        Args:
            keywords: Search keywords, most important first
            location: "City, XX" or free text (may be empty)
            radius_km: Search radius passed to adapters that support it
            max_results: Cap on returned listings (default from config)
            refresh: Skip the fresh cache tiers and fetch live
            request_id: Correlation id for log lines

        Returns:
            SearchOutcome (never raises for a degraded search)

        Raises:
            InvalidSearchInputError: No usable keywords
        """
        start = time.monotonic()
        keywords = normalize_keywords(keywords, self.config.max_keywords)
        if not keywords:
            raise InvalidSearchInputError("No keywords to search", "At least one keyword is required")

        location = (location or "").strip()
        max_results = max_results or self.config.max_results
        cache_key = self.generate_cache_key(keywords, location, radius_km)
        # The cache entry serves every max_results for this key, so fetch the full set
        fetch_limit = max(max_results, self.config.max_results)
        ctx = _SearchContext(
            params=SearchParams(keywords, location, radius_km, fetch_limit),
            cache_key=cache_key,
            log=get_logger(__name__, request_id=request_id or uuid.uuid4().hex),
        )

        strategies = [
            Strategy(SOURCE_FAST_CACHE, self._from_fast_cache),
            Strategy(SOURCE_DOCUMENT_CACHE, self._from_document_cache),
            Strategy(SOURCE_LIVE, self._from_live),
            Strategy(SOURCE_STALE_CACHE, self._from_stale_cache),
        ]
        if refresh:
            strategies = strategies[2:]

        outcome = await first_success(strategies, ctx, accept=bool)

        source = outcome.strategy or SOURCE_NONE
        listings: List[JobListing] = outcome.value or []
        ranked = self.scorer.rank(listings, keywords, location)[:max_results]
        duration_ms = int((time.monotonic() - start) * 1000)

        ctx.log.info(
            f"Search '{' '.join(keywords[:3])}' @ '{location}' served from {source}: "
            f"{len(ranked)} listings in {duration_ms}ms"
        )

        return SearchOutcome(
            jobs=ranked,
            source=source,
            cache_key=cache_key,
            keywords=keywords,
            location=location,
            radius_km=radius_km,
            duration_ms=duration_ms,
            search_count=ctx.search_count,
            source_mix=ctx.source_mix,
            errors=ctx.errors.to_list(),
        )

    async def search_by_resume_keywords(
        self,
        keywords: List[str],
        location: str = "",
        radius_km: int = DEFAULT_RADIUS_KM,
        max_results: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> SearchOutcome:
        """Search using the top resume keywords only."""
        return await self.search(
            keywords[:self.config.resume_keyword_count],
            location,
            radius_km,
            max_results,
            request_id=request_id,
        )

    # =========================================================================
    # Tier strategies
    # =========================================================================

    async def _from_fast_cache(self, ctx: _SearchContext) -> Optional[List[JobListing]]:
        payload = await self.fast_cache.get(ctx.cache_key)
        if not payload:
            ctx.log.bind(SOURCE_FAST_CACHE).debug("miss")
            return None

        try:
            entry = CacheEntry.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            ctx.log.bind(SOURCE_FAST_CACHE).warning(f"Discarding corrupt entry: {e}")
            await self.fast_cache.delete(ctx.cache_key)
            return None

        ctx.search_count = entry.search_count
        ctx.source_mix = entry.source_mix
        ctx.log.bind(SOURCE_FAST_CACHE).info(f"hit ({len(entry.jobs)} listings)")
        return entry.jobs

    async def _from_document_cache(self, ctx: _SearchContext) -> Optional[List[JobListing]]:
        if self.repository is None:
            return None

        entry = await asyncio.to_thread(self.repository.find_search, ctx.cache_key)
        if entry is None:
            ctx.log.bind(SOURCE_DOCUMENT_CACHE).debug("miss")
            return None

        count = await asyncio.to_thread(self.repository.increment_search_count, ctx.cache_key)
        entry.search_count = count or entry.search_count + 1
        ctx.search_count = entry.search_count
        ctx.source_mix = entry.source_mix

        # Refresh the fast tier, never beyond the entry's own expiry
        remaining = int((entry.expires_at - datetime.utcnow()).total_seconds())
        ttl_seconds = min(self.config.ttl.fast_seconds, remaining)
        if ttl_seconds > 0:
            await self.fast_cache.set(ctx.cache_key, entry.to_dict(), ttl_seconds=ttl_seconds)

        ctx.log.bind(SOURCE_DOCUMENT_CACHE).info(
            f"hit ({len(entry.jobs)} listings, searchCount={entry.search_count})"
        )
        return entry.jobs

    async def _from_live(self, ctx: _SearchContext) -> Optional[List[JobListing]]:
        by_source = await self._fetch_all(ctx)
        ctx.source_mix = {name: len(jobs) for name, jobs in by_source.items()}

        collected = [job for source in self.sources for job in by_source.get(source.name, [])]
        if not collected:
            ctx.log.bind(SOURCE_LIVE).warning(
                f"No listings from any source (failed: {ctx.errors.sources()})"
            )
            return None

        merged = self.deduplicator.dedupe(collected)
        ranked = self.scorer.rank(merged, ctx.params.keywords, ctx.params.location)
        listings = [scored.job for scored in ranked]

        await self._persist(ctx, listings)
        ctx.search_count = 1
        return listings

    async def _from_stale_cache(self, ctx: _SearchContext) -> Optional[List[JobListing]]:
        if self.repository is None:
            return None

        entry = await asyncio.to_thread(self.repository.find_search, ctx.cache_key, True)
        if entry is None:
            ctx.log.bind(SOURCE_STALE_CACHE).debug("miss")
            return None

        ctx.search_count = entry.search_count
        ctx.source_mix = entry.source_mix
        ctx.log.bind(SOURCE_STALE_CACHE).warning(
            f"Serving stale entry from {entry.created_at.isoformat()} ({len(entry.jobs)} listings)"
        )
        return entry.jobs

    # =========================================================================
    # Live fetch
    # =========================================================================

    async def _run_source(self, source: JobSource, ctx: _SearchContext) -> List[JobListing]:
        log = ctx.log.bind(source.name)
        start = time.monotonic()
        try:
            jobs = await asyncio.wait_for(source.search(ctx.params), timeout=source.timeout_seconds)
        except asyncio.TimeoutError as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            log.warning(f"timed out after {duration_ms}ms")
            ctx.errors.add_error(source.name, "search", f"Timed out after {source.timeout_seconds}s", duration_ms, e)
            return []
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            log.warning(f"failed after {duration_ms}ms: {type(e).__name__}: {e}")
            ctx.errors.add_error(source.name, "search", str(e) or type(e).__name__, duration_ms, e)
            return []

        duration_ms = int((time.monotonic() - start) * 1000)
        log.info(f"{len(jobs)} listings in {duration_ms}ms")
        return list(jobs or [])

    async def _fetch_all(self, ctx: _SearchContext) -> Dict[str, List[JobListing]]:
        """Run every adapter concurrently within the global budget."""
        if not self.sources:
            return {}

        start = time.monotonic()
        tasks = {
            asyncio.create_task(self._run_source(source, ctx)): source
            for source in self.sources
        }
        done, pending = await asyncio.wait(tasks, timeout=self.config.search_budget_seconds)

        for task in pending:
            task.cancel()
            source = tasks[task]
            ctx.log.bind(source.name).warning("cancelled at search budget")
            ctx.errors.add_error(
                source.name,
                "search",
                f"Cancelled at search budget ({self.config.search_budget_seconds}s)",
                int((time.monotonic() - start) * 1000),
            )
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        return {tasks[task].name: task.result() for task in done}

    async def _persist(self, ctx: _SearchContext, listings: List[JobListing]) -> None:
        """Write merged results to both cache tiers."""
        ttl = self.config.ttl
        now = datetime.utcnow()
        entry = CacheEntry(
            cache_key=ctx.cache_key,
            query=ctx.params.keywords,
            location=ctx.params.location,
            radius_km=ctx.params.radius_km,
            jobs=listings,
            source_mix=ctx.source_mix,
            created_at=now,
            expires_at=ttl.expires_at("user", now),
        )

        await self.fast_cache.set(ctx.cache_key, entry.to_dict(), ttl_seconds=ttl.seconds_for("fast"))

        if self.repository is None:
            return
        saved = await asyncio.to_thread(self.repository.save_search, entry, ttl.purge_at(entry.expires_at))
        written = await asyncio.to_thread(
            self.repository.upsert_jobs, listings, ctx.params.keywords, ttl.expires_at("global", now)
        )
        if not saved:
            ctx.errors.add_error(SOURCE_DOCUMENT_CACHE, "persist", "Search entry was not saved")
        ctx.log.bind(SOURCE_LIVE).debug(f"persisted entry (saved={saved}), {written} listings upserted")

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def prefetch(self, targets: List[PrefetchTarget]) -> Dict[str, Any]:
        """
        Warm the caches for each target.

        Targets whose search entry is younger than the prefetch freshness
        window are skipped.

        Returns:
            {"total", "success", "failed", "skipped", "errors"}
        """
        results: Dict[str, Any] = {
            "total": len(targets),
            "success": 0,
            "failed": 0,
            "skipped": 0,
            "errors": [],
        }
        fresh_after = datetime.utcnow() - timedelta(seconds=self.config.ttl.prefetch_fresh_seconds)

        for target in targets:
            label = target.label or ", ".join(target.keywords[:3])
            keywords = target.keywords[:self.config.resume_keyword_count]
            try:
                if self.repository is not None:
                    key = self.generate_cache_key(
                        normalize_keywords(keywords, self.config.max_keywords), target.location, DEFAULT_RADIUS_KM
                    )
                    entry = await asyncio.to_thread(self.repository.find_search, key)
                    if entry is not None and entry.created_at > fresh_after:
                        results["skipped"] += 1
                        continue

                outcome = await self.search(keywords, target.location, refresh=True)
                if outcome.source == SOURCE_LIVE:
                    results["success"] += 1
                else:
                    results["failed"] += 1
                    results["errors"].append(f"{label}: no live results ({outcome.source})")
            except Exception as e:
                logger.error(f"Prefetch failed for {label}: {e}")
                results["failed"] += 1
                results["errors"].append(f"{label}: {e}")

        logger.info(
            f"Prefetch complete: {results['success']} warmed, {results['skipped']} skipped, "
            f"{results['failed']} failed of {results['total']}"
        )
        return results

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Fast cache counters, document cache counts and configured sources."""
        document_stats: Dict[str, Any] = {}
        if self.repository is not None:
            document_stats = await asyncio.to_thread(self.repository.get_stats) or {}

        ttl = self.config.ttl
        return {
            "fastCache": await self.fast_cache.get_stats(),
            "documentCache": document_stats,
            "sources": [s.name for s in self.sources],
            "ttlSeconds": {
                "fast": ttl.fast_seconds,
                "user": ttl.user_seconds,
                "global": ttl.global_seconds,
                "staleGrace": ttl.stale_grace_seconds,
            },
        }

    async def clear_cache(self) -> Dict[str, int]:
        """Drop all cached searches from both tiers (listings expire on their own)."""
        fast_deleted = await self.fast_cache.delete_pattern(f"{CACHE_KEY_PREFIX}*")
        document_deleted = 0
        if self.repository is not None:
            document_deleted = await asyncio.to_thread(self.repository.clear_searches)
        logger.info(f"Cleared {fast_deleted} fast cache keys and {document_deleted} search entries")
        return {"fastCache": fast_deleted, "documentCache": document_deleted}

    async def close(self) -> None:
        """Release adapters and the fast cache."""
        results = await asyncio.gather(
            *(source.close() for source in self.sources), return_exceptions=True
        )
        for source, result in zip(self.sources, results):
            if isinstance(result, Exception):
                logger.warning(f"Error closing source {source.name}: {result}")
        await self.fast_cache.close()
