from __future__ import annotations

import asyncio
from datetime import date

import pytest

from config.policy import apply_policy_defaults
from core import Confidence
from grounding.topic_validation import (
    analyze_search_results,
    build_validation_query,
    check_for_fictional_version,
    is_obviously_fictional,
    validate_single_topic,
    validate_topics,
)
from sources.web_search import api_error_message, no_results_message, rate_limited_message

NO_STAGGER = apply_policy_defaults({"validation_stagger_ms": 0})


def _results(count: int, extra: str = "") -> str:
    lines = []
    for index in range(1, count + 1):
        lines.append(f"{index}. **Result {index}** (https://site{index}.example/page)")
        lines.append(f"   {extra}")
    return "\n".join(lines)


async def _never_called(query: str) -> str:
    raise AssertionError(f"search should not run: {query}")


def test_version_ceiling_detects_fictional_versions() -> None:
    assert "9.0" in check_for_fictional_version("ChatGPT 9.0")
    assert is_obviously_fictional("Gemini 3 ultra")
    assert not is_obviously_fictional("Claude 3 capabilities")
    assert not is_obviously_fictional("GPT-4 function calling")


def test_version_ceilings_follow_policy() -> None:
    policy = apply_policy_defaults(
        {"version_ceilings": [{"pattern": r"claude\s*(\d+(?:\.\d+)?)", "max_known_version": 2.0}]}
    )
    assert is_obviously_fictional("Claude 3 capabilities", policy)


def test_analyze_high_medium_low_none() -> None:
    high = _results(5, "official announcement, docs on openai.com, techcrunch blog")
    assert analyze_search_results(high).confidence == Confidence.HIGH
    assert analyze_search_results(_results(3, "a short guide")).confidence == Confidence.MEDIUM
    assert analyze_search_results(_results(1)).confidence == Confidence.LOW
    assert analyze_search_results("plain text without items").confidence == Confidence.NONE


def test_analyze_empty_result_markers() -> None:
    assert analyze_search_results("No results found for query").confidence == Confidence.NONE
    assert analyze_search_results(no_results_message("x")).confidence == Confidence.NONE


def test_analyze_unavailable_markers_are_unknown() -> None:
    assert analyze_search_results(rate_limited_message("x")).confidence == Confidence.UNKNOWN
    # contains "search temporarily unavailable" but the marker wins
    assert analyze_search_results(api_error_message("x")).confidence == Confidence.UNKNOWN


def test_validation_query_spans_two_years() -> None:
    query = build_validation_query("Claude 3", date(2026, 10, 18))
    assert query == '"Claude 3" news OR announcement OR release 2025 2026'


@pytest.mark.asyncio
async def test_fictional_version_skips_search() -> None:
    result = await validate_single_topic("ChatGPT 9.0", search=_never_called)
    assert result.confidence == Confidence.NONE
    assert result.is_valid is False
    assert result.suggested_alternative == "ChatGPT"
    assert result.is_fictional


@pytest.mark.asyncio
async def test_search_exception_is_unknown_not_fictional() -> None:
    async def _boom(query: str) -> str:
        raise RuntimeError("connection reset")

    result = await validate_single_topic("Claude 3 capabilities", search=_boom)
    assert result.confidence == Confidence.UNKNOWN
    assert result.is_valid is True
    assert result.error == "connection reset"


@pytest.mark.asyncio
async def test_rate_limited_search_is_unknown() -> None:
    async def _limited(query: str) -> str:
        return rate_limited_message(query)

    result = await validate_single_topic("Claude 3 capabilities", search=_limited)
    assert result.is_unavailable
    assert result.is_valid is True


@pytest.mark.asyncio
async def test_validate_topics_keeps_input_order() -> None:
    delays = {"slow topic": 0.05, "fast topic": 0.0}

    async def _search(query: str) -> str:
        for topic, delay in delays.items():
            if topic in query:
                await asyncio.sleep(delay)
        if "missing topic" in query:
            return "No results found"
        return _results(3, "guide")

    response = await validate_topics(
        ["slow topic", "fast topic", "missing topic", "ChatGPT 9.0"],
        search=_search,
        policy=NO_STAGGER,
    )

    assert [result.topic for result in response.results] == ["slow topic", "fast topic", "missing topic", "ChatGPT 9.0"]
    assert response.invalid_topics == ["missing topic", "ChatGPT 9.0"]
    assert response.all_valid is False


@pytest.mark.asyncio
async def test_unknown_topics_are_not_invalid() -> None:
    async def _search(query: str) -> str:
        return api_error_message(query)

    response = await validate_topics(["a topic", "another topic"], search=_search, policy=NO_STAGGER)
    assert response.all_valid is True
    assert response.invalid_topics == []
