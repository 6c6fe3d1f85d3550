"""Topic-to-source matching with primary-source enforcement."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set, Tuple

from config.policy import GroundingPolicy, default_policy
from core import (
    AnySource,
    ExtractedArticle,
    MatchingResult,
    Topic,
    TopicSourceMapping,
)

from .keywords import calculate_relevance_score, extract_keywords

MATCH_THRESHOLD = 0.3


def normalize_url(url: str) -> str:
    return str(url or "").strip().lower().rstrip("/")


def urls_match(declared: str, candidate: str) -> bool:
    """Trailing-slash and case insensitive; either URL may contain the other."""
    left, right = normalize_url(declared), normalize_url(candidate)
    if not left or not right:
        return False
    return left == right or left in right or right in left


def find_source_by_url(url: str, sources: Sequence[AnySource]) -> Optional[AnySource]:
    for source in sources:
        if urls_match(url, source.url):
            return source
    return None


def _as_extracted(source: AnySource) -> ExtractedArticle:
    return ExtractedArticle.from_source(source)


def _ranked(
    title: str,
    sources: Sequence[AnySource],
    policy: GroundingPolicy,
) -> List[Tuple[AnySource, float]]:
    scored = [(source, calculate_relevance_score(title, source, weights=policy.relevance_weights)) for source in sources]
    kept = [item for item in scored if item[1] >= policy.match_threshold]
    # stable sort keeps pool order among equal scores
    kept.sort(key=lambda item: item[1], reverse=True)
    return kept


def match_single_topic(
    title: str,
    sources: Sequence[AnySource],
    *,
    policy: Optional[GroundingPolicy] = None,
) -> TopicSourceMapping:
    """Keyword matching: every source at or above the threshold, best first."""
    policy = policy or default_policy()
    ranked = _ranked(title, sources, policy)
    return TopicSourceMapping(
        topic=title,
        matched_sources=[_as_extracted(source) for source, _ in ranked],
        relevance_score=ranked[0][1] if ranked else 0.0,
        has_match=bool(ranked),
        topic_keywords=extract_keywords(title),
    )


def match_single_topic_with_primary(
    topic: Topic,
    sources: Sequence[AnySource],
    *,
    policy: Optional[GroundingPolicy] = None,
) -> Tuple[TopicSourceMapping, bool]:
    """Match one topic, putting its declared resource first when it is in the pool.

    Returns the mapping and whether a declared resource was missing from the pool.
    """
    policy = policy or default_policy()

    if not topic.resource:
        return match_single_topic(topic.title, sources, policy=policy), False

    primary = find_source_by_url(topic.resource, sources)
    if primary is None:
        return match_single_topic(topic.title, sources, policy=policy), True

    others = [source for source in sources if source.url != primary.url]
    secondaries = [source for source, _ in _ranked(topic.title, others, policy)][: policy.max_secondary_sources]
    primary_article = _as_extracted(primary)

    mapping = TopicSourceMapping(
        topic=topic.title,
        matched_sources=[primary_article] + [_as_extracted(source) for source in secondaries],
        relevance_score=1.0,
        has_match=True,
        topic_keywords=extract_keywords(topic.title),
        primary_source_url=topic.resource,
        primary_source=primary_article,
    )
    return mapping, False


def match_topics_to_sources(
    topics: Sequence[Topic],
    sources: Sequence[AnySource],
    *,
    policy: Optional[GroundingPolicy] = None,
) -> MatchingResult:
    policy = policy or default_policy()

    mappings: List[TopicSourceMapping] = []
    missing: Dict[str, str] = {}
    for topic in topics:
        mapping, primary_missing = match_single_topic_with_primary(topic, sources, policy=policy)
        mappings.append(mapping)
        if primary_missing and topic.resource:
            missing[topic.title] = topic.resource

    unmatched = [mapping.topic for mapping in mappings if not mapping.has_match]
    cited: Set[str] = {source.url for mapping in mappings for source in mapping.matched_sources}

    return MatchingResult(
        mappings=mappings,
        unmatched_topics=unmatched,
        all_matched=not unmatched,
        total_sources_cited=len(cited),
        missing_primary_sources=missing,
    )


def _preview(text: Optional[str], limit: int) -> str:
    return f"{text[:limit]}..." if text else "No content available"


def build_topic_source_context(
    mappings: Sequence[TopicSourceMapping],
    max_sources_per_topic: int = 3,
) -> str:
    """Render mappings as grounding instructions for the generation layer."""
    sections: List[str] = []

    for mapping in mappings:
        lines = [
            f'TOPIC: "{mapping.topic}"',
            f"Keywords: {', '.join(mapping.topic_keywords)}",
        ]

        if mapping.has_match and mapping.primary_source is not None:
            primary = mapping.primary_source
            lines.extend(
                [
                    "Status: PRIMARY SOURCE ASSIGNED (MUST BE CITED)",
                    "",
                    "*** PRIMARY SOURCE (MANDATORY - MUST BE THE MAIN CITATION) ***",
                    f"   Title: {primary.title}",
                    f"   URL: {primary.url}",
                    f"   Content: {_preview(primary.body, 500)}",
                    "",
                    "   ENFORCEMENT: This article MUST cite the PRIMARY SOURCE above as its main reference.",
                    f"   The PRIMARY SOURCE URL ({primary.url}) MUST appear in the sources array.",
                ]
            )
            secondaries = [source for source in mapping.matched_sources if source.url != primary.url]
            if secondaries:
                lines.append("")
                lines.append("   Secondary Sources (optional, only if directly relevant to PRIMARY):")
                for index, source in enumerate(secondaries[:2], start=1):
                    lines.append(f"     {index}. {source.title} ({source.url})")
        elif mapping.has_match:
            lines.append(f"Status: MATCHED (relevance: {mapping.relevance_score * 100:.0f}%)")
            lines.append("Available Sources (use ONLY these for this topic):")
            for index, source in enumerate(mapping.matched_sources[:max_sources_per_topic], start=1):
                lines.append(f"  {index}. {source.title}")
                lines.append(f"     URL: {source.url}")
                lines.append(f"     Snippet: {_preview(source.body, 200)}")
        else:
            lines.append("Status: NO SOURCES FOUND")
            lines.append('Action: Do NOT write about this topic. Note "No current information available."')

        sections.append("\n".join(lines) + "\n")

    return "\n---\n\n".join(sections)


def get_sources_for_topic(topic: str, mappings: Sequence[TopicSourceMapping]) -> List[ExtractedArticle]:
    for mapping in mappings:
        if mapping.topic == topic:
            return list(mapping.matched_sources)
    return []
