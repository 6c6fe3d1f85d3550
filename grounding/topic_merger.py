"""Merge per-audience topic batches with guaranteed representation."""

from __future__ import annotations

import random
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from core import (
    MergerResult,
    MergerStats,
    PerAudienceResult,
    TopicDistribution,
    TopicMergerConfig,
    TrendingTopic,
)

from .audiences import shuffle_list

UNKNOWN_AUDIENCE = "unknown"
BALANCED_RATIO = 2.0


def _group_by_audience(results: Sequence[PerAudienceResult]) -> Tuple[Dict[str, List[TrendingTopic]], int]:
    """Topics of successful results keyed by audience, in arrival order."""
    grouped: Dict[str, List[TrendingTopic]] = {}
    total = 0
    for result in results:
        if not result.success:
            continue
        if result.topics_by_audience:
            for audience_id, topics in result.topics_by_audience.items():
                grouped.setdefault(audience_id, []).extend(topics)
                total += len(topics)
        else:
            for topic in result.topics:
                grouped.setdefault(topic.audience_id or UNKNOWN_AUDIENCE, []).append(topic)
                total += 1
    return grouped, total


def _round_robin(
    grouped: Dict[str, List[TrendingTopic]],
    order: List[str],
    cursors: Dict[str, int],
    counts: Dict[str, int],
    merged: List[TrendingTopic],
    target: int,
) -> None:
    while len(merged) < target:
        progressed = False
        for audience_id in order:
            if len(merged) >= target:
                break
            index = cursors[audience_id]
            if index < len(grouped[audience_id]):
                merged.append(grouped[audience_id][index])
                cursors[audience_id] = index + 1
                counts[audience_id] += 1
                progressed = True
        if not progressed:
            return


def merge_topics_with_balance(
    results: Sequence[PerAudienceResult],
    config: Optional[TopicMergerConfig] = None,
    *,
    rng: Optional[random.Random] = None,
) -> MergerResult:
    """Round-robin merge; strict mode first gives every audience an equal share.

    With K audiences and target T every audience that has enough topics ends
    within one of ``T // K``.
    """
    config = config or TopicMergerConfig()
    grouped, total_before = _group_by_audience(results)
    if not grouped:
        return MergerResult()

    order = list(grouped.keys())
    if config.shuffle_audiences:
        order = shuffle_list(order, rng)

    target = config.target_count
    cursors = {audience_id: 0 for audience_id in order}
    counts = {audience_id: 0 for audience_id in order}
    merged: List[TrendingTopic] = []

    if config.strict_balance:
        ideal = target // len(order)
        share = max(config.min_per_audience, ideal)
        # a minimum that cannot fit for every audience falls back to the equal share
        if share * len(order) > target:
            share = ideal
        for audience_id in order:
            taken = grouped[audience_id][:share]
            merged.extend(taken)
            cursors[audience_id] = len(taken)
            counts[audience_id] = len(taken)

    _round_robin(grouped, order, cursors, counts, merged, target)

    if config.shuffle_final:
        merged = shuffle_list(merged, rng)

    return MergerResult(
        topics=merged,
        stats=MergerStats(
            total_before_merge=total_before,
            total_after_merge=len(merged),
            per_audience=counts,
            underrepresented=[audience_id for audience_id in order if counts[audience_id] < config.min_per_audience],
        ),
    )


def merge_with_priority(
    results: Sequence[PerAudienceResult],
    weights: Mapping[str, float],
    target_count: int = 10,
    *,
    rng: Optional[random.Random] = None,
    shuffle_final: bool = True,
) -> MergerResult:
    """Proportional shares by weight (default 1.0); remainder goes to the heaviest audiences."""
    grouped, total_before = _group_by_audience(results)
    if not grouped:
        return MergerResult()

    audience_ids = list(grouped.keys())
    weight_of = {audience_id: float(weights.get(audience_id, 1.0)) for audience_id in audience_ids}
    total_weight = sum(weight_of.values())

    shares: Dict[str, int] = {}
    for audience_id in audience_ids:
        proportion = weight_of[audience_id] / total_weight if total_weight > 0 else 1.0 / len(audience_ids)
        shares[audience_id] = int(target_count * proportion)

    by_weight = sorted(audience_ids, key=lambda audience_id: weight_of[audience_id], reverse=True)
    allocated = sum(shares.values())
    index = 0
    while allocated < target_count:
        shares[by_weight[index % len(by_weight)]] += 1
        allocated += 1
        index += 1

    merged: List[TrendingTopic] = []
    counts: Dict[str, int] = {}
    for audience_id in audience_ids:
        taken = grouped[audience_id][: shares[audience_id]]
        merged.extend(taken)
        counts[audience_id] = len(taken)

    if shuffle_final:
        merged = shuffle_list(merged, rng)

    return MergerResult(
        topics=merged,
        stats=MergerStats(
            total_before_merge=total_before,
            total_after_merge=len(merged),
            per_audience=counts,
        ),
    )


def normalize_title(title: str) -> str:
    text = re.sub(r"how to ", "", str(title or "").lower())
    return re.sub(r"[^a-z0-9\s]", "", text).strip()


def title_similarity(first: str, second: str) -> float:
    """Word-level Jaccard similarity of two normalized titles."""
    left, right = set(first.split()), set(second.split())
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def deduplicate_similar_topics(topics: Sequence[TrendingTopic], threshold: float = 0.8) -> List[TrendingTopic]:
    """Keep the first of every group of near-duplicate titles."""
    kept: List[TrendingTopic] = []
    seen: List[str] = []
    for topic in topics:
        normalized = normalize_title(topic.title)
        if any(title_similarity(normalized, other) >= threshold for other in seen):
            continue
        kept.append(topic)
        seen.append(normalized)
    return kept


def analyze_topic_distribution(topics: Sequence[TrendingTopic]) -> TopicDistribution:
    per_audience: Dict[str, int] = {}
    for topic in topics:
        audience_id = topic.audience_id or UNKNOWN_AUDIENCE
        per_audience[audience_id] = per_audience.get(audience_id, 0) + 1

    total = len(topics)
    percentages = {
        audience_id: f"{count / total * 100:.1f}%" for audience_id, count in per_audience.items()
    }
    counts = list(per_audience.values())
    ratio = max(counts) / min(counts) if counts else 1.0

    return TopicDistribution(
        total=total,
        per_audience=per_audience,
        percentages=percentages,
        is_balanced=ratio <= BALANCED_RATIO,
        imbalance_ratio=ratio,
    )
