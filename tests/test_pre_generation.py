from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

import pytest

from config.policy import apply_policy_defaults
from core import (
    AudienceConfig,
    AudienceProfile,
    BlockReason,
    Confidence,
    ExtractedArticle,
    ExtractionResult,
    FetchSourcesOptions,
    FetchSourcesResult,
    SourceArticle,
    Topic,
)
from grounding.pre_generation import PreGenerationParams, build_fetch_options, run_pre_generation_checks
from sources.web_search import rate_limited_message
from storage.outcome_store import InMemoryOutcomeStore

POLICY = apply_policy_defaults(
    {"validation_stagger_ms": 0, "enrichment_delay_ms": 0, "resource_extraction_delay_ms": 0}
)
TODAY = date(2026, 10, 18)

CLAUDE = SourceArticle(title="Claude 3 capabilities overview", url="https://anthropic.example/claude-3")

RESEARCH = AudienceConfig(id="ai-research", name="AI Research")
BUSINESS = AudienceConfig(id="biz", name="Business")

RUST_RESULTS = (
    "1. **Rust embedded HAL guide** (https://rust.example/hal)\n"
    "   Embedded HAL traits explained"
)


def _results(count: int) -> str:
    return "\n".join(f"{index}. **Result {index}** (https://site{index}.example/guide)" for index in range(1, count + 1))


async def _never_search(query: str) -> str:
    raise AssertionError(f"search should not run: {query}")


async def _never_fetch(options: FetchSourcesOptions) -> FetchSourcesResult:
    raise AssertionError("feeds should not be fetched")


async def _never_extract(*args: Any, **kwargs: Any) -> ExtractionResult:
    raise AssertionError("extraction should not run")


def _fetch_returning(*articles: SourceArticle):
    calls: List[FetchSourcesOptions] = []

    async def _fetch(options: FetchSourcesOptions) -> FetchSourcesResult:
        calls.append(options)
        return FetchSourcesResult(articles=list(articles), total_count=len(articles))

    return _fetch, calls


async def _run(params: PreGenerationParams, **kwargs: Any):
    kwargs.setdefault("search", _never_search)
    kwargs.setdefault("fetch_sources", _never_fetch)
    kwargs.setdefault("extract_articles", _never_extract)
    return await run_pre_generation_checks(params, policy=POLICY, today=TODAY, **kwargs)


@pytest.mark.asyncio
async def test_all_fictional_topics_block() -> None:
    result = await _run(PreGenerationParams(topics=["ChatGPT 9.0"]))

    assert result.can_proceed is False
    assert result.block_reason == BlockReason.ALL_TOPICS_FICTIONAL
    assert result.invalid_topics == ["ChatGPT 9.0"]
    assert result.suggestions == ["ChatGPT"]
    assert '"ChatGPT 9.0"' in result.user_message
    assert result.user_message.endswith("Please enter valid, real topics.")


@pytest.mark.asyncio
async def test_fictional_topic_is_skipped_when_others_are_real() -> None:
    async def _search(query: str) -> str:
        if "fictional product v99" in query:
            return "No results found"
        return _results(3)

    fetch, calls = _fetch_returning(CLAUDE)

    result = await _run(
        PreGenerationParams(topics=["Claude 3 capabilities", "fictional product v99"]),
        search=_search,
        fetch_sources=fetch,
    )

    assert result.can_proceed is True
    assert result.invalid_topics == ["fictional product v99"]
    assert result.user_message == "Note: 1 fictional topic(s) will be skipped: fictional product v99"
    assert result.source_mappings[0].has_match
    assert result.source_mappings[0].matched_sources[0].url == CLAUDE.url
    assert result.allocation_result is None
    assert calls[0].keywords == ["Claude 3 capabilities", "fictional product v99"]


@pytest.mark.asyncio
async def test_unknown_validation_never_blocks() -> None:
    async def _search(query: str) -> str:
        return rate_limited_message(query)

    fetch, _ = _fetch_returning(CLAUDE)

    result = await _run(
        PreGenerationParams(topics=["ChatGPT 9.0", "Claude 3 capabilities"], skip_enrichment=True),
        search=_search,
        fetch_sources=fetch,
    )

    assert result.can_proceed is True
    assert [item.confidence for item in result.validated_topics] == [Confidence.NONE, Confidence.UNKNOWN]
    assert result.invalid_topics == ["ChatGPT 9.0"]


@pytest.mark.asyncio
async def test_separate_audiences_proceed_with_full_diversity() -> None:
    topics = [
        Topic(title="Transformer attention research", audience_id="ai-research"),
        Topic(title="Invoice automation workflows", audience_id="biz"),
    ]
    sources = [
        SourceArticle(title="Transformer attention research explained", url="https://a.example/transformer-attention"),
        SourceArticle(title="Invoice automation workflows with n8n", url="https://b.example/invoice-automation"),
    ]

    result = await _run(
        PreGenerationParams(
            topics=topics,
            audiences=[RESEARCH, BUSINESS],
            existing_sources=sources,
            skip_validation=True,
        )
    )

    assert result.can_proceed is True
    assert result.allocation_result.diversity_score == 100.0
    assert "## AI RESEARCH SECTION (ai-research)" in result.allocation_context
    assert [item.confidence for item in result.validated_topics] == [Confidence.MEDIUM, Confidence.MEDIUM]
    assert len(result.source_allocations) == 2


@pytest.mark.asyncio
async def test_shared_sources_block_on_low_diversity() -> None:
    topics = [
        Topic(title="Invoice automation tips", audience_id="ai-research"),
        Topic(title="Invoice automation workflows", audience_id="biz"),
    ]
    shared = SourceArticle(title="Invoice automation workflows with n8n", url="https://b.example/invoice-automation")

    result = await _run(
        PreGenerationParams(
            topics=topics,
            audiences=[RESEARCH, BUSINESS],
            existing_sources=[shared],
            skip_validation=True,
        )
    )

    assert result.can_proceed is False
    assert result.block_reason == BlockReason.DIVERSITY_TOO_LOW
    assert result.allocation_result.diversity_score == 0.0
    assert "0%" in result.user_message


@pytest.mark.asyncio
async def test_single_audience_skips_diversity_gate() -> None:
    topics = [Topic(title="Invoice automation tips"), Topic(title="Invoice automation workflows")]
    shared = SourceArticle(title="Invoice automation workflows with n8n", url="https://b.example/invoice-automation")

    result = await _run(
        PreGenerationParams(
            topics=topics,
            audiences=[BUSINESS],
            existing_sources=[shared],
            skip_validation=True,
        )
    )

    assert result.can_proceed is True
    assert {item.audience_id for item in result.source_allocations} == {"biz"}


@pytest.mark.asyncio
async def test_empty_feeds_block() -> None:
    fetch, _ = _fetch_returning()

    result = await _run(
        PreGenerationParams(topics=["Claude 3 capabilities"], skip_validation=True),
        fetch_sources=fetch,
    )

    assert result.can_proceed is False
    assert result.block_reason == BlockReason.NO_SOURCES_AVAILABLE
    assert "no sources available" in result.user_message


@pytest.mark.asyncio
async def test_failing_fetcher_blocks_instead_of_raising() -> None:
    async def _fetch(options: FetchSourcesOptions) -> FetchSourcesResult:
        raise RuntimeError("all feeds down")

    result = await _run(
        PreGenerationParams(topics=["Claude 3 capabilities"], skip_validation=True),
        fetch_sources=_fetch,
    )

    assert result.block_reason == BlockReason.NO_SOURCES_AVAILABLE


@pytest.mark.asyncio
async def test_pre_sourced_topic_uses_extracted_resource() -> None:
    calls: List[Dict[str, Any]] = []
    resource = "https://example.com/primary"
    content = "Long article text about event loops. " * 40

    async def _extract(articles, **kwargs: Any) -> ExtractionResult:
        calls.append(kwargs)
        extracted = ExtractedArticle(
            **articles[0].model_dump(),
            content=content,
            content_length=len(content),
            extraction_success=True,
        )
        return ExtractionResult(extracted=[extracted], success_count=1)

    result = await _run(
        PreGenerationParams(topics=[Topic(title="Python asyncio tutorial", resource=resource)]),
        extract_articles=_extract,
    )

    assert result.can_proceed is True
    assert calls[0]["max_content_length"] == 3000
    assert calls[0]["max_articles"] == 1
    validation = result.validated_topics[0]
    assert validation.confidence == Confidence.HIGH
    assert validation.web_search_results == f"Pre-existing source: {resource}"
    mapping = result.source_mappings[0]
    assert mapping.primary_source.url == resource
    assert mapping.relevance_score == 1.0
    assert result.enriched_sources[0].snippet == content[:500]


@pytest.mark.asyncio
async def test_failed_resource_extraction_falls_back_to_summary() -> None:
    async def _extract(articles, **kwargs: Any) -> ExtractionResult:
        raise RuntimeError("extractor crashed")

    topic = Topic(title="Python asyncio tutorial", resource="https://example.com/primary", summary="Event loops 101")

    result = await _run(PreGenerationParams(topics=[topic]), extract_articles=_extract)

    assert result.can_proceed is True
    assert result.enriched_sources[0].snippet == "Event loops 101"
    assert result.source_mappings[0].primary_source is not None


@pytest.mark.asyncio
async def test_enrichment_grows_pool_and_rematches() -> None:
    queries: List[str] = []

    async def _search(query: str) -> str:
        queries.append(query)
        return RUST_RESULTS

    fetch, _ = _fetch_returning(CLAUDE)

    result = await _run(
        PreGenerationParams(topics=["Claude 3 capabilities", "Rust embedded HAL"], skip_validation=True),
        search=_search,
        fetch_sources=fetch,
    )

    assert queries == ["Rust embedded HAL AI tools tutorial guide 2026"]
    assert result.can_proceed is True
    assert len(result.enriched_sources) == 2
    assert result.source_mappings[1].has_match
    assert result.source_mappings[1].matched_sources[0].url == "https://rust.example/hal"


@pytest.mark.asyncio
async def test_skip_enrichment_leaves_topic_unmatched() -> None:
    fetch, _ = _fetch_returning(CLAUDE)

    result = await _run(
        PreGenerationParams(
            topics=["Claude 3 capabilities", "Rust embedded HAL"],
            skip_validation=True,
            skip_enrichment=True,
        ),
        fetch_sources=fetch,
    )

    assert result.can_proceed is True
    assert result.source_mappings[1].has_match is False
    assert "Status: NO SOURCES FOUND" in result.topic_source_context


@pytest.mark.asyncio
async def test_outcomes_are_recorded() -> None:
    store = InMemoryOutcomeStore()

    await _run(PreGenerationParams(topics=["ChatGPT 9.0"]), recorder=store)

    summary = store.summary()
    assert summary.total == 1
    assert summary.by_reason == {"all_topics_fictional": 1}
    assert store.list_recent()[0].topics == ["ChatGPT 9.0"]


@pytest.mark.asyncio
async def test_failing_recorder_is_ignored() -> None:
    class _Broken:
        def record(self, result, topics) -> str:
            raise RuntimeError("disk full")

    result = await _run(PreGenerationParams(topics=["ChatGPT 9.0"]), recorder=_Broken())

    assert result.block_reason == BlockReason.ALL_TOPICS_FICTIONAL


def test_fetch_options_are_capped() -> None:
    topics = [Topic(title=f"topic {index}") for index in range(12)]
    audience = AudienceConfig(
        id="custom-1",
        name="Custom",
        is_custom=True,
        generated=AudienceProfile(
            relevance_keywords=["extra"],
            subreddits=[f"sub{index}" for index in range(7)],
            arxiv_categories=[f"cs.{index}" for index in range(6)],
        ),
    )

    options = build_fetch_options(topics, [audience], POLICY)

    assert len(options.keywords) == 10
    assert options.subreddits == [f"sub{index}" for index in range(5)]
    assert options.categories == [f"cs.{index}" for index in range(4)]
    assert options.limit == 5


def test_fetch_options_without_audience_hints() -> None:
    options = build_fetch_options([Topic(title="Claude 3")], [RESEARCH], POLICY)
    assert options.keywords == ["Claude 3"]
    assert options.subreddits is None
    assert options.categories is None


@pytest.mark.asyncio
async def test_blank_topic_entries_are_dropped() -> None:
    fetch, calls = _fetch_returning(CLAUDE)

    result = await _run(
        PreGenerationParams(topics=["  ", "Claude 3 capabilities"], skip_validation=True, skip_enrichment=True),
        fetch_sources=fetch,
    )

    assert result.can_proceed is True
    assert [mapping.topic for mapping in result.source_mappings] == ["Claude 3 capabilities"]
    assert calls[0].keywords == ["Claude 3 capabilities"]
