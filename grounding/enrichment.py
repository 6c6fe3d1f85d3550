"""Web-search enrichment for topics the source pool could not cover."""

from __future__ import annotations

import asyncio
from datetime import date
import logging
import re
from typing import Dict, List, Optional, Sequence

from config.policy import GroundingPolicy, default_policy
from core import ExtractedArticle, FeedName, SourceArticle, TopicValidationResult

from .topic_validation import WebSearch

logger = logging.getLogger(__name__)

_NUMBERED_RESULT = re.compile(
    r"\d+\.\s+\*\*([^*]+)\*\*\s+\(([^)]+)\)\s*\n\s*(.+?)(?=\n\d+\.|$)",
    re.DOTALL,
)
_BARE_URL = re.compile(r"https?://[^\s)]+")
_MAX_BARE_URLS = 5


def parse_web_search_to_sources(search_results: str, topic: str) -> List[SourceArticle]:
    """Turn numbered ``N. **Title** (URL)`` blocks into sources.

    Falls back to up to five bare URLs when no block is recognised.
    """
    text = str(search_results or "")
    sources: List[SourceArticle] = []

    for title, url, description in _NUMBERED_RESULT.findall(text):
        url = url.strip()
        if not title.strip() or not url.startswith("http"):
            continue
        sources.append(
            SourceArticle(
                title=title.strip(),
                url=url,
                origin_feed=FeedName.WEB,
                snippet=description.strip() or f'Search result for "{topic}"',
            )
        )

    if sources:
        return sources

    for url in _BARE_URL.findall(text)[:_MAX_BARE_URLS]:
        sources.append(
            SourceArticle(
                title=f"Web result for {topic}",
                url=url,
                origin_feed=FeedName.WEB,
                snippet=f'Search result for "{topic}"',
            )
        )
    return sources


def build_enrichment_query(topic: str, today: Optional[date] = None) -> str:
    year = (today or date.today()).year
    return f"{topic} AI tools tutorial guide {year}"


async def enrich_unmatched_topics(
    unmatched_topics: Sequence[str],
    pool: Sequence[ExtractedArticle],
    *,
    search: WebSearch,
    validations: Sequence[TopicValidationResult] = (),
    policy: Optional[GroundingPolicy] = None,
    today: Optional[date] = None,
) -> List[ExtractedArticle]:
    """Search once per unmatched, non-fictional topic and return the grown pool.

    The input pool is not modified. Search failures are logged and skipped.
    """
    policy = policy or default_policy()
    delay = policy.enrichment_delay_ms / 1000.0
    by_topic: Dict[str, TopicValidationResult] = {result.topic: result for result in validations}

    enriched: List[ExtractedArticle] = list(pool)
    known_urls = {source.url for source in enriched}
    searched = 0

    for topic in unmatched_topics:
        validation = by_topic.get(topic)
        if validation is not None and validation.is_fictional:
            logger.info(f"[Enrichment] Skipping fictional topic: '{topic}'")
            continue

        if searched and delay:
            await asyncio.sleep(delay)
        searched += 1

        try:
            search_results = await search(build_enrichment_query(topic, today))
        except Exception as exc:
            logger.error(f"[Enrichment] Web search failed for '{topic}': {exc}")
            continue

        parsed = parse_web_search_to_sources(search_results, topic)
        fresh = [source for source in parsed if source.url not in known_urls]
        for source in fresh:
            known_urls.add(source.url)
            enriched.append(ExtractedArticle.from_source(source))
        if fresh:
            logger.info(f"[Enrichment] Found {len(fresh)} web sources for '{topic}'")

    return enriched
