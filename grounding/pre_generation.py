"""
Pre-generation pipeline.

Validates topics, collects and matches sources, enriches unmatched topics
with web search and allocates sources across audiences before any content is
generated. Every stop condition is returned as a blocked
``PreGenerationResult``; nothing raised by a collaborator escapes.

Stages:
    1. normalize topics, split pre-sourced from needs-validation
    2. validate (pre-sourced topics are auto ``high``)
    3. guard: every validated topic fictional
    4. collect sources (caller pool or feeds, plus resource extraction)
    5. match topics to sources
    6. enrich unmatched topics via web search
    7. re-match when the pool grew
    8. guard: no sources at all
    9. allocate sources across audiences
    10. guard: diversity below the policy floor
    11. proceed
"""

from __future__ import annotations

from datetime import date
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from config.policy import GroundingPolicy, default_policy
from core import (
    AllocationResult,
    AnySource,
    AudienceConfig,
    BlockReason,
    Confidence,
    ExtractedArticle,
    ExtractionResult,
    FeedName,
    FetchSourcesOptions,
    FetchSourcesResult,
    MatchingResult,
    PreGenerationResult,
    SourceArticle,
    Topic,
    TopicInput,
    TopicValidationResult,
    normalize_topics,
)
from sources.extractor import extract_multiple_articles
from sources.feeds import fetch_all_sources
from sources.web_search import perform_web_search
from storage.outcome_store import OutcomeRecorder

from . import events
from .enrichment import enrich_unmatched_topics
from .source_allocation import allocate_sources_to_audiences, build_allocation_context
from .source_matching import build_topic_source_context, match_topics_to_sources
from .topic_validation import WebSearch, validate_topics

logger = logging.getLogger(__name__)

SourceFetcher = Callable[[FetchSourcesOptions], Awaitable[FetchSourcesResult]]
BatchExtractor = Callable[..., Awaitable[ExtractionResult]]

_SNIPPET_FROM_CONTENT = 500


class PreGenerationParams(BaseModel):
    """Input of one pre-generation run."""

    topics: List[TopicInput] = Field(default_factory=list)
    audiences: List[AudienceConfig] = Field(default_factory=list)
    existing_sources: List[AnySource] = Field(default_factory=list)
    skip_validation: bool = False
    skip_enrichment: bool = False


def _dedupe(values: Sequence[str], limit: int) -> List[str]:
    return list(dict.fromkeys(value for value in values if value))[:limit]


def _unique_pool(sources: Sequence[AnySource]) -> List[ExtractedArticle]:
    seen: Dict[str, ExtractedArticle] = {}
    for source in sources:
        if source.url not in seen:
            seen[source.url] = ExtractedArticle.from_source(source)
    return list(seen.values())


def build_fetch_options(
    topics: Sequence[Topic],
    audiences: Sequence[AudienceConfig],
    policy: GroundingPolicy,
) -> FetchSourcesOptions:
    """Aggregate feed hints from topic titles and audience profiles."""
    keywords: List[str] = [topic.title for topic in topics]
    subreddits: List[str] = []
    categories: List[str] = []
    for audience in audiences:
        if audience.generated is None:
            continue
        keywords.extend(audience.generated.relevance_keywords)
        subreddits.extend(audience.generated.subreddits)
        categories.extend(audience.generated.arxiv_categories)

    unique_subreddits = _dedupe(subreddits, policy.max_subreddits)
    unique_categories = _dedupe(categories, policy.max_categories)
    return FetchSourcesOptions(
        keywords=_dedupe(keywords, policy.max_keywords),
        subreddits=unique_subreddits or None,
        categories=unique_categories or None,
        limit=policy.fetch_limit,
    )


async def _validate(
    topics: Sequence[Topic],
    *,
    skip_validation: bool,
    search: WebSearch,
    policy: GroundingPolicy,
    today: Optional[date],
) -> List[TopicValidationResult]:
    needs_validation = [topic.title for topic in topics if not topic.is_pre_sourced]
    checked: Dict[str, TopicValidationResult] = {}

    if needs_validation and skip_validation:
        for title in needs_validation:
            checked[title] = TopicValidationResult(topic=title, is_valid=True, confidence=Confidence.MEDIUM)
    elif needs_validation:
        try:
            response = await validate_topics(needs_validation, search=search, policy=policy, today=today)
            checked = {result.topic: result for result in response.results}
        except Exception as exc:
            logger.error(f"[PreGeneration] Topic validation failed: {exc}")
            for title in needs_validation:
                checked[title] = TopicValidationResult(
                    topic=title,
                    is_valid=True,
                    confidence=Confidence.UNKNOWN,
                    error=str(exc),
                )

    results: List[TopicValidationResult] = []
    for topic in topics:
        if topic.is_pre_sourced:
            results.append(
                TopicValidationResult(
                    topic=topic.title,
                    is_valid=True,
                    confidence=Confidence.HIGH,
                    web_search_results=f"Pre-existing source: {topic.resource}",
                )
            )
        else:
            results.append(checked[topic.title])
    return results


async def _extract_resources(
    topics: Sequence[Topic],
    *,
    extract_articles: BatchExtractor,
    policy: GroundingPolicy,
) -> List[SourceArticle]:
    """Full text for declared resource URLs; failures become body-less stubs."""
    stubs = [
        SourceArticle(
            title=topic.title,
            url=topic.resource,
            origin_feed=FeedName.WEB,
            snippet=topic.summary or topic.what_it_is or f'Source for "{topic.title}"',
        )
        for topic in topics
        if topic.resource
    ]
    if not stubs:
        return []

    try:
        result = await extract_articles(
            stubs,
            max_articles=len(stubs),
            max_content_length=policy.resource_max_content_length,
            delay_ms=policy.resource_extraction_delay_ms,
        )
    except Exception as exc:
        logger.error(f"[PreGeneration] Resource extraction failed: {exc}")
        return stubs

    collected: List[SourceArticle] = []
    for stub, extracted in zip(stubs, result.extracted):
        if extracted.extraction_success and extracted.content:
            collected.append(extracted.model_copy(update={"snippet": extracted.content[:_SNIPPET_FROM_CONTENT]}))
        else:
            logger.info(f"[PreGeneration] Extraction failed for {stub.url}, using summary as fallback")
            collected.append(stub)
    # extractor may cap the batch; keep stubs for anything it skipped
    collected.extend(stubs[len(result.extracted):])
    logger.info(f"[PreGeneration] Extracted {result.success_count}/{len(stubs)} resource URLs")
    return collected


async def _fetch(
    topics: Sequence[Topic],
    audiences: Sequence[AudienceConfig],
    *,
    fetch_sources: SourceFetcher,
    policy: GroundingPolicy,
) -> List[SourceArticle]:
    options = build_fetch_options(topics, audiences, policy)
    try:
        result = await fetch_sources(options)
    except Exception as exc:
        logger.error(f"[PreGeneration] Source fetching failed: {exc}")
        return []
    events.log_fetch_result(result)
    return list(result.articles)


def _fictional_titles(validations: Sequence[TopicValidationResult]) -> List[str]:
    return [result.topic for result in validations if result.is_fictional and not result.is_valid]


def _suggestions(validations: Sequence[TopicValidationResult]) -> List[str]:
    return [result.suggested_alternative for result in validations if result.suggested_alternative]


def _fictional_message(validations: Sequence[TopicValidationResult]) -> str:
    described = ", ".join(
        f'"{result.topic}" ({result.error or "not found"})'
        for result in validations
        if result.is_fictional
    )
    return f"Cannot generate newsletter: {described}. Please enter valid, real topics."


def _record(recorder: Optional[OutcomeRecorder], result: PreGenerationResult, topics: Sequence[Topic]) -> None:
    if recorder is None:
        return
    try:
        outcome_id = recorder.record(result, topics)
        logger.debug(f"[PreGeneration] Outcome recorded: {outcome_id}")
    except Exception as exc:
        logger.error(f"[PreGeneration] Failed to record outcome: {exc}")


async def run_pre_generation_checks(
    params: PreGenerationParams,
    *,
    search: Optional[WebSearch] = None,
    fetch_sources: Optional[SourceFetcher] = None,
    extract_articles: Optional[BatchExtractor] = None,
    policy: Optional[GroundingPolicy] = None,
    recorder: Optional[OutcomeRecorder] = None,
    today: Optional[date] = None,
) -> PreGenerationResult:
    """Run every pre-generation stage and return the verdict.

    Args:
        params: topics, audiences, optional caller-supplied sources and skip flags
        search: web search collaborator (default: Brave)
        fetch_sources: multi-feed fetcher (default: ``sources.feeds.fetch_all_sources``)
        extract_articles: batch extractor (default: ``sources.extractor.extract_multiple_articles``)
        policy: thresholds, caps and delays (default: ``default_policy()``)
        recorder: optional outcome store; failures are logged and ignored
        today: reference date for time-scoped search queries

    Returns:
        ``PreGenerationResult``; blocked runs carry ``block_reason`` and ``user_message``.
    """
    started = time.perf_counter()
    search = search or perform_web_search
    fetch_sources = fetch_sources or fetch_all_sources
    extract_articles = extract_articles or extract_multiple_articles
    policy = policy or default_policy()

    audiences = list(params.audiences)
    topics = normalize_topics(
        params.topics,
        default_audience_id=audiences[0].id if audiences else None,
    )
    pre_sourced = [topic for topic in topics if topic.is_pre_sourced]
    logger.info(
        f"[PreGeneration] Starting checks for {len(topics)} topics "
        f"({len(pre_sourced)} pre-sourced, {len(topics) - len(pre_sourced)} need validation)"
    )

    def finish(**fields) -> PreGenerationResult:
        result = PreGenerationResult(pipeline_time_ms=int((time.perf_counter() - started) * 1000), **fields)
        events.log_pre_generation_result(result)
        _record(recorder, result, topics)
        return result

    validations = await _validate(
        topics,
        skip_validation=params.skip_validation,
        search=search,
        policy=policy,
        today=today,
    )
    events.log_validation_results(validations)

    fictional = _fictional_titles(validations)
    unavailable = [result for result in validations if result.is_unavailable]
    needs_validation = [topic for topic in topics if not topic.is_pre_sourced]
    if needs_validation and len(fictional) == len(needs_validation) and not pre_sourced and not unavailable:
        return finish(
            can_proceed=False,
            validated_topics=validations,
            block_reason=BlockReason.ALL_TOPICS_FICTIONAL,
            user_message=_fictional_message(validations),
            invalid_topics=fictional,
            suggestions=_suggestions(validations),
        )

    collected: List[AnySource] = list(params.existing_sources)
    collected.extend(await _extract_resources(pre_sourced, extract_articles=extract_articles, policy=policy))
    if not collected:
        collected = await _fetch(topics, audiences, fetch_sources=fetch_sources, policy=policy)
    pool = _unique_pool(collected)

    matching: MatchingResult = match_topics_to_sources(topics, pool, policy=policy)
    events.log_matching_result(matching)

    enriched = pool
    if pool and not params.skip_enrichment and matching.unmatched_topics:
        enriched = await enrich_unmatched_topics(
            matching.unmatched_topics,
            pool,
            search=search,
            validations=validations,
            policy=policy,
            today=today,
        )
        if len(enriched) > len(pool):
            matching = match_topics_to_sources(topics, enriched, policy=policy)
            events.log_matching_result(matching, stage="re-match")

    topic_source_context = build_topic_source_context(matching.mappings)

    if not pool:
        return finish(
            can_proceed=False,
            validated_topics=validations,
            source_mappings=matching.mappings,
            topic_source_context=topic_source_context,
            block_reason=BlockReason.NO_SOURCES_AVAILABLE,
            user_message=(
                "Cannot generate newsletter: no sources available from any feed. "
                "Please try again later."
            ),
            invalid_topics=fictional,
            suggestions=_suggestions(validations),
        )

    allocation: Optional[AllocationResult] = None
    allocation_context: Optional[str] = None
    if audiences:
        valid_topics = [topic for topic in topics if topic.title not in fictional]
        topic_audience_map = {topic.title: topic.audience_id for topic in valid_topics if topic.audience_id}
        allocation = allocate_sources_to_audiences(
            valid_topics,
            audiences,
            enriched,
            policy.sources_per_pair,
            topic_audience_map,
            policy=policy,
        )
        allocation_context = build_allocation_context(allocation.allocations)
        events.log_allocation_result(allocation, min_diversity=policy.min_diversity_score)

        if len(audiences) > 1 and allocation.diversity_score < policy.min_diversity_score:
            score = f"{allocation.diversity_score:.0f}%"
            return finish(
                can_proceed=False,
                validated_topics=validations,
                source_mappings=matching.mappings,
                enriched_sources=enriched,
                topic_source_context=topic_source_context,
                block_reason=BlockReason.DIVERSITY_TOO_LOW,
                user_message=(
                    f"Cannot generate newsletter: source diversity is only {score}, "
                    f"below the {policy.min_diversity_score:.0f}% minimum. "
                    "Audience sections would cite the same sources. "
                    "Try again for fresh sources, or pick topics with different sources."
                ),
                invalid_topics=fictional,
                allocation_result=allocation,
                allocation_context=allocation_context,
            )

    return finish(
        can_proceed=True,
        validated_topics=validations,
        source_mappings=matching.mappings,
        enriched_sources=enriched,
        topic_source_context=topic_source_context,
        user_message=(
            f"Note: {len(fictional)} fictional topic(s) will be skipped: {', '.join(fictional)}"
            if fictional
            else None
        ),
        invalid_topics=fictional,
        suggestions=_suggestions(validations),
        allocation_result=allocation,
        allocation_context=allocation_context,
    )
