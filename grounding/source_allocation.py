"""Partition-then-allocate source assignment across audiences.

Each source is first claimed by exactly one audience (the one whose topics it
fits best). Topics then draw only from their own audience's partition, so two
audience sections are built from disjoint evidence unless the allocator is
forced into an explicit, counted cross-audience reuse.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from config.policy import GroundingPolicy, default_policy
from core import (
    AllocationResult,
    AllocationStats,
    AnySource,
    AudienceConfig,
    ExtractedArticle,
    SourceAllocation,
    Topic,
)

from .keywords import calculate_relevance_score


@dataclass
class DiversityCheck:
    is_valid: bool
    issues: List[str] = field(default_factory=list)


def _unique_by_url(sources: Sequence[AnySource]) -> List[ExtractedArticle]:
    seen: Set[str] = set()
    unique: List[ExtractedArticle] = []
    for source in sources:
        if source.url in seen:
            continue
        seen.add(source.url)
        unique.append(ExtractedArticle.from_source(source))
    return unique


def _assign_topics(
    topics: Sequence[Topic],
    audience_ids: List[str],
    topic_audience_map: Optional[Mapping[str, str]],
) -> Dict[str, List[str]]:
    """Topic titles per audience.

    The explicit map wins, then the topic's own ``audience_id``; topics with
    neither pointing at a known audience are dealt round-robin.
    """
    assigned: Dict[str, List[str]] = {audience_id: [] for audience_id in audience_ids}
    known = set(audience_ids)
    cursor = 0
    for topic in topics:
        audience_id = (topic_audience_map or {}).get(topic.title)
        if audience_id not in known:
            audience_id = topic.audience_id
        if audience_id not in known:
            audience_id = audience_ids[cursor % len(audience_ids)]
            cursor += 1
        assigned[audience_id].append(topic.title)
    return assigned


def _partition(
    sources: List[ExtractedArticle],
    assigned: Dict[str, List[str]],
    scores: Dict[str, Dict[str, float]],
    floor: float,
) -> Dict[str, List[str]]:
    audience_ids = list(assigned.keys())
    partitions: Dict[str, List[str]] = {audience_id: [] for audience_id in audience_ids}
    unclaimed: List[str] = []

    for source in sources:
        best_audience: Optional[str] = None
        best_score = 0.0
        for audience_id in audience_ids:
            audience_best = max((scores[title][source.url] for title in assigned[audience_id]), default=0.0)
            # strict comparison: ties stay with the first audience
            if audience_best > best_score:
                best_audience, best_score = audience_id, audience_best
        if best_audience is not None and best_score >= floor:
            partitions[best_audience].append(source.url)
        else:
            unclaimed.append(source.url)

    receivers = [audience_id for audience_id in audience_ids if assigned[audience_id]] or audience_ids
    for index, url in enumerate(unclaimed):
        partitions[receivers[index % len(receivers)]].append(url)

    return partitions


def _ranked(urls: List[str], topic_scores: Dict[str, float]) -> List[Tuple[str, float]]:
    ranked = [(url, topic_scores[url]) for url in urls]
    ranked.sort(key=lambda item: item[1], reverse=True)
    return ranked


def allocate_sources_to_audiences(
    topics: Sequence[Topic],
    audiences: Sequence[AudienceConfig],
    sources: Sequence[AnySource],
    sources_per_pair: Optional[int] = None,
    topic_audience_map: Optional[Mapping[str, str]] = None,
    *,
    policy: Optional[GroundingPolicy] = None,
) -> AllocationResult:
    """Assign up to ``sources_per_pair`` sources to each topic within its audience."""
    policy = policy or default_policy()
    per_pair = sources_per_pair or policy.sources_per_pair
    floor = policy.partition_floor

    if not audiences:
        return AllocationResult(
            all_topics_have_sources=not topics,
            topics_without_sources=[topic.title for topic in topics],
        )

    audience_ids = [audience.id for audience in audiences]
    audience_names = {audience.id: audience.name for audience in audiences}
    pool = _unique_by_url(sources)
    by_url = {source.url: source for source in pool}

    scores: Dict[str, Dict[str, float]] = {
        topic.title: {
            source.url: calculate_relevance_score(topic.title, source, weights=policy.relevance_weights)
            for source in pool
        }
        for topic in topics
    }

    assigned = _assign_topics(topics, audience_ids, topic_audience_map)
    partitions = _partition(pool, assigned, scores, floor)

    allocations: List[SourceAllocation] = []
    # insertion-ordered sets of URLs each audience ended up citing
    audience_urls: Dict[str, Dict[str, None]] = {audience_id: {} for audience_id in audience_ids}

    for audience_id in audience_ids:
        used = audience_urls[audience_id]
        others = [url for other in audience_ids if other != audience_id for url in partitions[other]]

        for title in assigned[audience_id]:
            topic_scores = scores[title]
            ranked = _ranked(partitions[audience_id], topic_scores)
            chosen: List[str] = []
            reused = False

            for url, score in ranked:
                if len(chosen) >= per_pair:
                    break
                if score >= floor and url not in used:
                    chosen.append(url)

            # reuse within the same audience is not penalized
            for url, score in ranked:
                if len(chosen) >= per_pair:
                    break
                if score >= floor and url in used and url not in chosen:
                    chosen.append(url)

            if not chosen and ranked and ranked[0][1] > 0:
                chosen.append(ranked[0][0])

            if not chosen and policy.allow_cross_audience_reuse:
                foreign = _ranked(others, topic_scores)
                if foreign and foreign[0][1] >= floor:
                    chosen.append(foreign[0][0])
                    reused = True

            used.update(dict.fromkeys(chosen))
            picked = [by_url[url] for url in chosen]
            allocations.append(
                SourceAllocation(
                    topic=title,
                    audience_id=audience_id,
                    audience_name=audience_names[audience_id],
                    sources=picked,
                    primary_source=picked[0] if picked else None,
                    relevance_score=topic_scores[chosen[0]] if chosen else 0.0,
                    has_reused_sources=reused,
                )
            )

    seen_in: Dict[str, int] = {}
    ordered_urls: List[str] = []
    for audience_id in audience_ids:
        for url in audience_urls[audience_id]:
            if url not in seen_in:
                ordered_urls.append(url)
            seen_in[url] = seen_in.get(url, 0) + 1
    cross_reused = [url for url in ordered_urls if seen_in[url] > 1]
    unique_count = len(ordered_urls)

    diversity = 100.0 if unique_count == 0 else max(0.0, 100.0 - (len(cross_reused) / unique_count) * 100.0)

    without_sources = [allocation.topic for allocation in allocations if not allocation.sources]
    non_empty = [allocation for allocation in allocations if allocation.sources]
    stats = AllocationStats(
        total_allocations=len(non_empty),
        total_unique_sources=unique_count,
        total_reused_sources=len(cross_reused),
        average_sources_per_allocation=(
            sum(len(allocation.sources) for allocation in non_empty) / len(non_empty) if non_empty else 0.0
        ),
    )

    return AllocationResult(
        allocations=allocations,
        reused_sources=cross_reused,
        diversity_score=diversity,
        all_topics_have_sources=not without_sources,
        topics_without_sources=without_sources,
        partitions=partitions,
        stats=stats,
    )


def get_allocation_for_topic_audience(
    topic: str,
    audience_id: str,
    allocations: Sequence[SourceAllocation],
) -> Optional[SourceAllocation]:
    for allocation in allocations:
        if allocation.topic == topic and allocation.audience_id == audience_id:
            return allocation
    return None


def get_allocations_for_audience(audience_id: str, allocations: Sequence[SourceAllocation]) -> List[SourceAllocation]:
    return [allocation for allocation in allocations if allocation.audience_id == audience_id]


_ALLOCATION_HEADER = """
## MANDATORY SOURCE ASSIGNMENTS

Each audience section MUST use ONLY its assigned sources. DO NOT reuse sources across sections.
If a topic has no assigned sources for an audience, do not write about that topic for that audience.

"""


def build_allocation_context(allocations: Sequence[SourceAllocation]) -> str:
    """Per-audience source assignments rendered for the generation layer."""
    grouped: Dict[Tuple[str, str], List[SourceAllocation]] = {}
    for allocation in allocations:
        grouped.setdefault((allocation.audience_id, allocation.audience_name), []).append(allocation)

    sections: List[str] = []
    for (audience_id, audience_name), items in grouped.items():
        lines = [
            "",
            f"## {audience_name.upper()} SECTION ({audience_id})",
            "MANDATORY: Use ONLY the sources listed below for this audience section.",
            "",
        ]
        for allocation in items:
            lines.append(f'### Topic: "{allocation.topic}"')
            if allocation.sources:
                lines.append("ASSIGNED SOURCES (must cite at least one):")
                for index, source in enumerate(allocation.sources, start=1):
                    lines.append(f"  {index}. [{source.origin_feed.value.upper()}] {source.title}")
                    lines.append(f"     URL: {source.url}")
                    if source.body:
                        lines.append(f"     Excerpt: {source.body[:300]}...")
            else:
                lines.append("NO SOURCES ASSIGNED - Do not write about this topic for this audience.")
            lines.append("")
        sections.append("\n".join(lines) + "\n")

    return _ALLOCATION_HEADER + "\n---\n".join(sections)


def validate_allocation_diversity(allocations: Sequence[SourceAllocation]) -> DiversityCheck:
    """Report every pair of audiences whose allocated source sets overlap."""
    audience_urls: Dict[str, Set[str]] = {}
    for allocation in allocations:
        audience_urls.setdefault(allocation.audience_id, set()).update(source.url for source in allocation.sources)

    issues: List[str] = []
    audience_ids = list(audience_urls.keys())
    for i, first in enumerate(audience_ids):
        for second in audience_ids[i + 1:]:
            shared = audience_urls[first] & audience_urls[second]
            if shared:
                issues.append(f"Audiences {first} and {second} share {len(shared)} source(s)")

    return DiversityCheck(is_valid=not issues, issues=issues)
