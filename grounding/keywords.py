"""Keyword extraction and topic/source relevance scoring."""

from __future__ import annotations

import re
from typing import FrozenSet, List, Optional

from config.policy import RelevanceWeights
from core import AnySource

STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
        "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare", "ought",
        "use", "uses", "used", "using", "case", "cases", "how", "what", "when",
        "where", "why", "which", "who", "whom", "this", "that", "these", "those",
        "it", "its", "they", "them", "their", "we", "us", "our", "you", "your",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s-]")

DEFAULT_WEIGHTS = RelevanceWeights()


def extract_keywords(text: str) -> List[str]:
    """Lowercased, punctuation-free tokens longer than two chars, minus stop words."""
    cleaned = _PUNCTUATION.sub(" ", str(text or "").lower())
    return [token for token in cleaned.split() if len(token) > 2 and token not in STOP_WORDS]


def _count_matches(text: Optional[str], keywords: List[str]) -> int:
    if not text:
        return 0
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def calculate_relevance_score(
    topic: str,
    source: AnySource,
    *,
    weights: Optional[RelevanceWeights] = None,
) -> float:
    """Score in [0, 1] from keyword overlap with the source title, body and URL."""
    keywords = extract_keywords(topic)
    if not keywords:
        return 0.0

    weights = weights or DEFAULT_WEIGHTS
    total = float(len(keywords))
    score = 0.0

    title_hits = _count_matches(source.title, keywords)
    if title_hits:
        score += weights.title * (title_hits / total)

    body_hits = _count_matches(source.body, keywords)
    if body_hits:
        score += weights.content * min(body_hits / total, 1.0)

    url_hits = _count_matches(source.url, keywords)
    if url_hits:
        score += weights.url * (url_hits / total)

    return min(score, 1.0)
