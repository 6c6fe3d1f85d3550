"""
Parallel topic generation across audiences.

Audiences are grouped into batches by mode, a cost/latency estimate is
returned for confirmation, then one generation call per batch runs
concurrently. Failed batches are logged and excluded; the rest are merged
with equal per-audience representation.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from core import (
    AgentBatch,
    AudienceBreakdown,
    AudienceConfig,
    GenerationMode,
    GenerationTradeoffs,
    ParallelGenerationConfig,
    ParallelTrendingResult,
    PerAudienceResult,
    ResolvedAudience,
    TokenUsage,
    TopicMergerConfig,
    TradeoffAlternative,
)

from . import events
from .audiences import (
    CUSTOM_CATEGORY,
    category_display_name,
    group_audiences_by_category,
    resolve_all_audiences,
)
from .topic_merger import analyze_topic_distribution, merge_topics_with_balance

logger = logging.getLogger(__name__)

BatchGenerator = Callable[[AgentBatch, int], Awaitable[PerAudienceResult]]

# parallel batches finish together, so the estimate does not grow with batch count
ESTIMATED_SECONDS_PER_AGENT = 15
MAX_MERGED_TOPICS = 12
TOPICS_PER_AUDIENCE = 3
PER_AUDIENCE_ALTERNATIVE_LIMIT = 10


def _single(audience: ResolvedAudience) -> AgentBatch:
    return AgentBatch(
        batch_id=audience.id,
        batch_name=audience.name,
        audiences=[audience],
        parent_category=audience.parent_id,
    )


def _with_overflow(audiences: Sequence[ResolvedAudience], max_batches: int) -> List[AgentBatch]:
    """First ``max_batches - 1`` audiences alone, the rest share the last batch."""
    if len(audiences) <= max_batches:
        return [_single(audience) for audience in audiences]

    batches = [_single(audience) for audience in audiences[: max_batches - 1]]
    overflow = list(audiences[max_batches - 1:])
    batches.append(
        AgentBatch(
            batch_id="overflow-" + "-".join(audience.id for audience in overflow),
            batch_name="Mixed: " + ", ".join(audience.name for audience in overflow),
            audiences=overflow,
        )
    )
    return batches


def create_agent_batches(audiences: Sequence[ResolvedAudience], config: ParallelGenerationConfig) -> List[AgentBatch]:
    """Group audiences into generation batches for the configured mode."""
    if config.mode == GenerationMode.PER_AUDIENCE:
        return _with_overflow(audiences, config.max_parallel_agents or len(audiences))

    batches: List[AgentBatch] = []
    for category_id, members in group_audiences_by_category(audiences).items():
        if category_id == CUSTOM_CATEGORY and config.mode == GenerationMode.HYBRID:
            batches.extend(_single(audience) for audience in members)
        elif category_id == CUSTOM_CATEGORY:
            batches.append(
                AgentBatch(batch_id=CUSTOM_CATEGORY, batch_name="Custom Audiences", audiences=members)
            )
        else:
            batches.append(
                AgentBatch(
                    batch_id=category_id,
                    batch_name=category_display_name(category_id),
                    audiences=members,
                    parent_category=category_id,
                )
            )
    return batches


def calculate_tradeoffs(
    audiences: Sequence[ResolvedAudience],
    batches: Sequence[AgentBatch],
    config: ParallelGenerationConfig,
) -> GenerationTradeoffs:
    by_category: Dict[str, int] = {}
    for audience in audiences:
        category = audience.parent_id or CUSTOM_CATEGORY
        by_category[category] = by_category.get(category, 0) + 1

    alternatives: List[TradeoffAlternative] = []
    if config.mode != GenerationMode.PER_CATEGORY:
        count = len(create_agent_batches(audiences, config.model_copy(update={"mode": GenerationMode.PER_CATEGORY})))
        alternatives.append(
            TradeoffAlternative(
                mode=GenerationMode.PER_CATEGORY,
                agent_count=count,
                estimated_time_seconds=ESTIMATED_SECONDS_PER_AGENT,
                description=f"Faster: {count} agents (one per category)",
            )
        )
    if config.mode != GenerationMode.PER_AUDIENCE and len(audiences) <= PER_AUDIENCE_ALTERNATIVE_LIMIT:
        alternatives.append(
            TradeoffAlternative(
                mode=GenerationMode.PER_AUDIENCE,
                agent_count=len(audiences),
                estimated_time_seconds=ESTIMATED_SECONDS_PER_AGENT,
                description=f"More granular: {len(audiences)} agents (one per audience)",
            )
        )
    if config.mode != GenerationMode.HYBRID:
        count = len(create_agent_batches(audiences, config.model_copy(update={"mode": GenerationMode.HYBRID})))
        alternatives.append(
            TradeoffAlternative(
                mode=GenerationMode.HYBRID,
                agent_count=count,
                estimated_time_seconds=ESTIMATED_SECONDS_PER_AGENT,
                description=f"Balanced: {count} agents (category + custom)",
            )
        )

    return GenerationTradeoffs(
        audience_count=len(audiences),
        audience_breakdown=AudienceBreakdown(
            default_count=sum(1 for audience in audiences if not audience.is_custom),
            custom_count=sum(1 for audience in audiences if audience.is_custom),
            by_category=by_category,
        ),
        mode=config.mode,
        agent_count=len(batches),
        estimated_topics=len(batches) * config.topics_per_agent,
        estimated_time_seconds=ESTIMATED_SECONDS_PER_AGENT,
        estimated_api_calls=len(batches),
        alternatives=alternatives,
    )


def generate_cache_key(audience_ids: Sequence[str]) -> str:
    return ":".join(sorted(audience_ids))


async def _run_batch(
    batch: AgentBatch,
    *,
    generator: BatchGenerator,
    topics_per_agent: int,
    timeout: Optional[float],
) -> PerAudienceResult:
    call = generator(batch, topics_per_agent)
    if timeout:
        return await asyncio.wait_for(call, timeout=timeout)
    return await call


def _total_usage(results: Sequence[PerAudienceResult]) -> Optional[TokenUsage]:
    usages = [result.token_usage for result in results if result.token_usage]
    if not usages:
        return None
    usage = TokenUsage(
        input_tokens=sum(item.input_tokens for item in usages),
        output_tokens=sum(item.output_tokens for item in usages),
    )
    return usage if usage.input_tokens > 0 else None


async def generate_topics_parallel(
    audience_ids: Sequence[str],
    config: Optional[ParallelGenerationConfig] = None,
    *,
    generator: BatchGenerator,
    custom_audiences: Optional[Sequence[AudienceConfig]] = None,
    confirmed: bool = False,
    rng: Optional[random.Random] = None,
) -> ParallelTrendingResult:
    """Generate topics for every audience, one concurrent call per batch.

    When ``config.show_tradeoffs`` is set and the run is not ``confirmed`` the
    estimate is returned with ``needs_confirmation`` and nothing is generated.
    """
    config = config or ParallelGenerationConfig()
    started = time.perf_counter()
    logger.info(f"[ParallelOrchestrator] Starting with {len(audience_ids)} audiences, mode: {config.mode.value}")

    audiences = resolve_all_audiences(audience_ids, custom_audiences)
    if not audiences:
        return ParallelTrendingResult(success=False, error="No valid audiences provided")

    batches = create_agent_batches(audiences, config)
    for batch in batches:
        logger.info(
            f"[ParallelOrchestrator] Batch {batch.batch_id}: "
            f"{', '.join(audience.name for audience in batch.audiences)}"
        )
    tradeoffs = calculate_tradeoffs(audiences, batches, config)

    if config.show_tradeoffs and not confirmed:
        return ParallelTrendingResult(success=False, needs_confirmation=True, tradeoffs=tradeoffs)

    settled = await asyncio.gather(
        *[
            _run_batch(
                batch,
                generator=generator,
                topics_per_agent=config.topics_per_agent,
                timeout=config.batch_timeout_sec,
            )
            for batch in batches
        ],
        return_exceptions=True,
    )

    successful: List[PerAudienceResult] = []
    errors: List[str] = []
    for batch, outcome in zip(batches, settled):
        if isinstance(outcome, BaseException):
            reason = "timed out" if isinstance(outcome, asyncio.TimeoutError) else (str(outcome) or type(outcome).__name__)
            errors.append(f"Batch {batch.batch_id}: {reason}")
            logger.error(f"[ParallelOrchestrator] Batch {batch.batch_id} rejected: {reason}")
        elif not outcome.success:
            errors.append(f"Batch {batch.batch_id}: {outcome.error}")
            logger.error(f"[ParallelOrchestrator] Batch {batch.batch_id} failed: {outcome.error}")
        else:
            successful.append(outcome)
            logger.info(f"[ParallelOrchestrator] Batch {batch.batch_id}: {len(outcome.topics)} topics")

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    if not successful:
        return ParallelTrendingResult(
            success=False,
            tradeoffs=tradeoffs,
            error=f"All agents failed: {'; '.join(errors)}",
            total_duration_ms=elapsed_ms,
        )

    merged = merge_topics_with_balance(
        successful,
        TopicMergerConfig(target_count=min(MAX_MERGED_TOPICS, len(audiences) * TOPICS_PER_AUDIENCE)),
        rng=rng,
    )
    events.log_merger_result(merged)
    distribution = analyze_topic_distribution(merged.topics)
    logger.info(f"[ParallelOrchestrator] Topic distribution: {distribution.per_audience}")

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.info(f"[ParallelOrchestrator] Complete: {len(merged.topics)} merged topics in {elapsed_ms}ms")

    return ParallelTrendingResult(
        success=True,
        tradeoffs=tradeoffs,
        topics=merged.topics,
        per_audience_results=successful,
        total_duration_ms=elapsed_ms,
        total_token_usage=_total_usage(successful),
        cache_key=generate_cache_key(audience_ids),
    )


async def generate_topics_with_confirmation(
    audience_ids: Sequence[str],
    config: Optional[ParallelGenerationConfig] = None,
    *,
    generator: BatchGenerator,
    custom_audiences: Optional[Sequence[AudienceConfig]] = None,
) -> ParallelTrendingResult:
    """First half of the confirm protocol: always returns the estimate only."""
    config = (config or ParallelGenerationConfig()).model_copy(update={"show_tradeoffs": True})
    return await generate_topics_parallel(
        audience_ids,
        config,
        generator=generator,
        custom_audiences=custom_audiences,
        confirmed=False,
    )


async def execute_confirmed_parallel_generation(
    audience_ids: Sequence[str],
    config: Optional[ParallelGenerationConfig] = None,
    *,
    generator: BatchGenerator,
    custom_audiences: Optional[Sequence[AudienceConfig]] = None,
    rng: Optional[random.Random] = None,
) -> ParallelTrendingResult:
    config = (config or ParallelGenerationConfig()).model_copy(update={"show_tradeoffs": False})
    return await generate_topics_parallel(
        audience_ids,
        config,
        generator=generator,
        custom_audiences=custom_audiences,
        confirmed=True,
        rng=rng,
    )
