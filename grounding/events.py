"""Log adapters for the pure grounding algorithms.

Matching, allocation and merging return values describing what happened;
these helpers decide how that shows up in the logs.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from core import (
    AllocationResult,
    Confidence,
    FetchSourcesResult,
    MatchingResult,
    MergerResult,
    PreGenerationResult,
    TopicValidationResult,
)

logger = logging.getLogger("grounding.events")


def log_validation_results(results: Sequence[TopicValidationResult]) -> None:
    fictional = [result.topic for result in results if result.confidence == Confidence.NONE]
    unavailable = [result.topic for result in results if result.confidence == Confidence.UNKNOWN]
    if unavailable:
        logger.warning(
            f"[PreGeneration] {len(unavailable)} topic(s) could not be validated "
            f"(search unavailable), treating as valid: {', '.join(unavailable)}"
        )
    if fictional:
        logger.info(f"[PreGeneration] Fictional topic(s): {', '.join(fictional)}")


def log_fetch_result(result: FetchSourcesResult) -> None:
    for feed, status in result.per_feed_status.items():
        if status.status == "failed":
            logger.warning(f"[SourceFetching] {feed} failed: {status.error}")
    logger.info(f"[SourceFetching] Fetched {result.total_count} sources in {result.fetch_time_ms}ms")


def log_matching_result(result: MatchingResult, *, stage: str = "match") -> None:
    for title, url in result.missing_primary_sources.items():
        logger.warning(
            f"[SourceMatching] Primary source {url} for '{title}' not in pool, "
            f"falling back to keyword matching"
        )
    matched = len(result.mappings) - len(result.unmatched_topics)
    logger.info(
        f"[SourceMatching] {stage}: {matched}/{len(result.mappings)} topics matched, "
        f"{result.total_sources_cited} sources cited"
    )
    if result.unmatched_topics:
        logger.info(f"[SourceMatching] Unmatched: {', '.join(result.unmatched_topics)}")


def log_allocation_result(result: AllocationResult, *, min_diversity: Optional[float] = None) -> None:
    stats = result.stats
    logger.info(
        f"[SourceAllocation] {stats.total_allocations} allocations, "
        f"{stats.total_unique_sources} unique sources, diversity {result.diversity_score:.0f}%"
    )
    if result.reused_sources:
        logger.warning(f"[SourceAllocation] {len(result.reused_sources)} source(s) reused across audiences")
    if result.topics_without_sources:
        logger.warning(
            f"[SourceAllocation] No sources for: {', '.join(sorted(set(result.topics_without_sources)))}"
        )
    if min_diversity is not None and result.diversity_score < min_diversity:
        logger.warning(
            f"[SourceAllocation] Diversity {result.diversity_score:.0f}% is below minimum {min_diversity:.0f}%"
        )


def log_merger_result(result: MergerResult) -> None:
    stats = result.stats
    logger.info(
        f"[TopicMerger] Merged {stats.total_after_merge} of {stats.total_before_merge} topics "
        f"across {len(stats.per_audience)} audiences"
    )
    if stats.underrepresented:
        logger.warning(f"[TopicMerger] Underrepresented audiences: {', '.join(stats.underrepresented)}")


def log_pre_generation_result(result: PreGenerationResult) -> None:
    if result.can_proceed:
        allocations = len(result.allocation_result.allocations) if result.allocation_result else 0
        logger.info(
            f"[PreGeneration] Complete. can_proceed: True, sources: {len(result.enriched_sources)}, "
            f"allocations: {allocations}, time: {result.pipeline_time_ms}ms"
        )
    else:
        reason = result.block_reason.value if result.block_reason else "unknown"
        logger.warning(f"[PreGeneration] Blocked ({reason}): {result.user_message}")
