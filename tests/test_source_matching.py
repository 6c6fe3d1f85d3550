from __future__ import annotations

import pytest
from pydantic import ValidationError

from core import ExtractedArticle, SourceArticle, Topic, TopicSourceMapping
from grounding.source_matching import (
    MATCH_THRESHOLD,
    build_topic_source_context,
    get_sources_for_topic,
    match_single_topic,
    match_single_topic_with_primary,
    match_topics_to_sources,
    urls_match,
)


def _source(title: str, url: str, snippet: str | None = None) -> SourceArticle:
    return SourceArticle(title=title, url=url, snippet=snippet)


ASYNCIO = _source("Python asyncio tutorial", "https://example.com/python-asyncio")
ASYNCIO_DEEP = _source("Asyncio deep dive", "https://blog.example/deep")
PASTA = _source("Cooking pasta at home", "https://food.example/pasta")
PRIMARY = _source("Unrelated headline", "https://example.com/primary")
POOL = [ASYNCIO, ASYNCIO_DEEP, PASTA, PRIMARY]


def test_urls_match_is_lenient() -> None:
    assert urls_match("HTTPS://Example.com/primary/", "https://example.com/primary")
    assert urls_match("https://example.com/primary", "https://example.com/primary?ref=feed")
    assert not urls_match("", "https://example.com")
    assert not urls_match("https://a.example/x", "https://b.example/y")


def test_match_single_topic_respects_threshold() -> None:
    mapping = match_single_topic("Python asyncio tutorial", POOL)

    urls = [source.url for source in mapping.matched_sources]
    assert urls == [ASYNCIO.url]
    assert mapping.has_match
    assert mapping.relevance_score >= MATCH_THRESHOLD
    # "Asyncio deep dive" only shares one of three keywords in its title
    assert ASYNCIO_DEEP.url not in urls


def test_primary_source_leads_with_full_score() -> None:
    topic = Topic(title="Python asyncio tutorial", resource="HTTPS://Example.com/primary/")

    mapping, missing = match_single_topic_with_primary(topic, POOL)

    assert missing is False
    assert mapping.matched_sources[0].url == PRIMARY.url
    assert mapping.relevance_score == 1.0
    assert mapping.primary_source is not None
    assert [source.url for source in mapping.matched_sources[1:]] == [ASYNCIO.url]


def test_primary_source_caps_secondaries() -> None:
    extras = [_source(f"Python asyncio tutorial part {index}", f"https://example.com/part-{index}") for index in range(4)]
    topic = Topic(title="Python asyncio tutorial", resource=PRIMARY.url)

    mapping, _ = match_single_topic_with_primary(topic, [PRIMARY] + extras)

    assert len(mapping.matched_sources) == 3


def test_missing_primary_falls_back_and_is_reported() -> None:
    topic = Topic(title="Python asyncio tutorial", resource="https://missing.example/post")

    result = match_topics_to_sources([topic], POOL)

    assert result.missing_primary_sources == {"Python asyncio tutorial": "https://missing.example/post"}
    assert result.mappings[0].primary_source is None
    assert result.mappings[0].matched_sources[0].url == ASYNCIO.url


def test_unmatched_topics_are_listed() -> None:
    topics = [Topic(title="Python asyncio tutorial"), Topic(title="Quantum basket weaving")]

    result = match_topics_to_sources(topics, POOL)

    assert result.unmatched_topics == ["Quantum basket weaving"]
    assert result.all_matched is False
    assert result.total_sources_cited == 1
    assert get_sources_for_topic("Quantum basket weaving", result.mappings) == []
    assert get_sources_for_topic("Python asyncio tutorial", result.mappings)[0].url == ASYNCIO.url


def test_context_marks_primary_and_unmatched_topics() -> None:
    topics = [
        Topic(title="Python asyncio tutorial", resource=PRIMARY.url),
        Topic(title="Quantum basket weaving"),
    ]
    result = match_topics_to_sources(topics, POOL)

    context = build_topic_source_context(result.mappings)

    assert "*** PRIMARY SOURCE (MANDATORY - MUST BE THE MAIN CITATION) ***" in context
    assert f"URL: {PRIMARY.url}" in context
    assert "Status: NO SOURCES FOUND" in context
    assert "Do NOT write about this topic" in context
    assert context == build_topic_source_context(result.mappings)


def test_context_lists_keyword_matches() -> None:
    result = match_topics_to_sources([Topic(title="Python asyncio tutorial")], POOL)
    context = build_topic_source_context(result.mappings)
    assert "Status: MATCHED" in context
    assert "Available Sources (use ONLY these for this topic):" in context


def test_mapping_rejects_primary_not_first() -> None:
    primary = ExtractedArticle(title="P", url="https://example.com/p")
    other = ExtractedArticle(title="O", url="https://example.com/o")
    with pytest.raises(ValidationError):
        TopicSourceMapping(
            topic="t",
            matched_sources=[other, primary],
            relevance_score=1.0,
            has_match=True,
            primary_source=primary,
        )
