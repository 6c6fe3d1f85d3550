from __future__ import annotations

import pytest

from config.policy import RelevanceWeights
from core import ExtractedArticle, SourceArticle
from grounding.keywords import calculate_relevance_score, extract_keywords


def _source(title: str, url: str, snippet: str | None = None) -> SourceArticle:
    return SourceArticle(title=title, url=url, snippet=snippet)


def test_extract_keywords_drops_stop_words_short_tokens_and_punctuation() -> None:
    assert extract_keywords("How to use the GPT-4 API for Data!") == ["gpt-4", "api", "data"]


def test_extract_keywords_empty_input() -> None:
    assert extract_keywords("") == []
    assert extract_keywords("the a of to") == []


def test_full_overlap_scores_one() -> None:
    source = _source(
        "Python asyncio tutorial",
        "https://example.com/python-asyncio-tutorial",
        "A python asyncio tutorial for beginners",
    )
    assert calculate_relevance_score("Python asyncio tutorial", source) == pytest.approx(1.0)


def test_partial_title_overlap_is_weighted() -> None:
    source = _source("Python tips", "https://x.io/a")
    assert calculate_relevance_score("python rust", source) == pytest.approx(0.25)


def test_no_overlap_scores_zero() -> None:
    source = _source("Cooking pasta at home", "https://food.example/pasta")
    assert calculate_relevance_score("Transformer attention research", source) == 0.0


def test_topic_without_keywords_scores_zero() -> None:
    source = _source("The thing", "https://example.com/the")
    assert calculate_relevance_score("the of and", source) == 0.0


def test_extracted_content_counts_as_body() -> None:
    source = ExtractedArticle(
        title="Weekly digest",
        url="https://example.com/digest",
        content="A long read about kubernetes autoscaling.",
    )
    assert calculate_relevance_score("kubernetes autoscaling", source) == pytest.approx(0.3)


def test_scoring_is_pure() -> None:
    source = _source("Claude 3 capabilities overview", "https://anthropic.example/claude-3")
    first = calculate_relevance_score("Claude 3 capabilities", source)
    second = calculate_relevance_score("Claude 3 capabilities", source)
    assert first == second


def test_custom_weights() -> None:
    source = _source("Rust embedded", "https://example.com/x")
    weights = RelevanceWeights(title=1.0, content=0.0, url=0.0)
    assert calculate_relevance_score("rust embedded", source, weights=weights) == pytest.approx(1.0)
