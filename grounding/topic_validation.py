"""Topic validation: decide whether a topic is real, fictional, or unverifiable."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date
import logging
import re
import time
from typing import Awaitable, Callable, List, Optional, Sequence

from config.policy import GroundingPolicy, default_policy
from core import Confidence, TopicValidationResult, ValidateTopicsResponse
from sources.web_search import API_ERROR_MARKER, RATE_LIMITED_MARKER

logger = logging.getLogger(__name__)

WebSearch = Callable[[str], Awaitable[str]]

_UNAVAILABLE_MARKERS = (RATE_LIMITED_MARKER, API_ERROR_MARKER)

_EMPTY_RESULT_PATTERNS = [
    re.compile(r"no results found", re.IGNORECASE),
    re.compile(r"did you mean", re.IGNORECASE),
    re.compile(r"search temporarily unavailable", re.IGNORECASE),
    re.compile(r"training knowledge", re.IGNORECASE),
]

_QUALITY_PATTERNS = [
    re.compile(r"official|announced|released|launched", re.IGNORECASE),
    re.compile(r"documentation|docs|guide|tutorial", re.IGNORECASE),
    re.compile(r"github\.com|microsoft\.com|google\.com|anthropic\.com|openai\.com", re.IGNORECASE),
    re.compile(r"techcrunch|verge|arstechnica|wired", re.IGNORECASE),
    re.compile(r"blog|news|article", re.IGNORECASE),
]

_ITEMIZED_RESULT = re.compile(r"\d+\.\s+\*\*")
_FIRST_NUMBER = re.compile(r"\d+(\.\d+)?")


@dataclass(frozen=True)
class SearchAnalysis:
    confidence: Confidence
    result_count: int
    quality_score: int

    @property
    def has_authoritative(self) -> bool:
        return self.quality_score >= 2


def check_for_fictional_version(topic: str, policy: Optional[GroundingPolicy] = None) -> Optional[str]:
    """Return a reason string when the topic names a version above the known ceiling."""
    policy = policy or default_policy()
    for ceiling in policy.version_ceilings:
        match = re.search(ceiling.pattern, topic, flags=re.IGNORECASE)
        if not match or not match.group(1):
            continue
        try:
            version = float(match.group(1))
        except ValueError:
            continue
        if version > ceiling.max_known_version:
            return f"Version {match.group(1)} appears to be fictional (latest known: {ceiling.max_known_version})"
    return None


def is_obviously_fictional(topic: str, policy: Optional[GroundingPolicy] = None) -> bool:
    """Heuristic pre-screen; never touches the network."""
    return check_for_fictional_version(topic, policy) is not None


def analyze_search_results(search_results: str) -> SearchAnalysis:
    """Map raw search text to a confidence tier."""
    text = str(search_results or "")

    if any(marker in text for marker in _UNAVAILABLE_MARKERS):
        return SearchAnalysis(confidence=Confidence.UNKNOWN, result_count=0, quality_score=0)

    if any(pattern.search(text) for pattern in _EMPTY_RESULT_PATTERNS):
        return SearchAnalysis(confidence=Confidence.NONE, result_count=0, quality_score=0)

    quality_score = sum(1 for pattern in _QUALITY_PATTERNS if pattern.search(text))
    result_count = len(_ITEMIZED_RESULT.findall(text))

    if result_count >= 5 and quality_score >= 3:
        confidence = Confidence.HIGH
    elif result_count >= 3 and quality_score >= 1:
        confidence = Confidence.MEDIUM
    elif result_count >= 1:
        confidence = Confidence.LOW
    else:
        confidence = Confidence.NONE

    return SearchAnalysis(confidence=confidence, result_count=result_count, quality_score=quality_score)


def build_validation_query(topic: str, today: Optional[date] = None) -> str:
    year = (today or date.today()).year
    return f'"{topic}" news OR announcement OR release {year - 1} {year}'


async def validate_single_topic(
    topic: str,
    *,
    search: WebSearch,
    policy: Optional[GroundingPolicy] = None,
    today: Optional[date] = None,
) -> TopicValidationResult:
    """Classify one topic. Search failures yield ``unknown``, never ``none``."""
    policy = policy or default_policy()
    started = time.perf_counter()

    reason = check_for_fictional_version(topic, policy)
    if reason:
        logger.info(f"[TopicValidation] Fictional version detected for '{topic}': {reason}")
        return TopicValidationResult(
            topic=topic,
            is_valid=False,
            confidence=Confidence.NONE,
            suggested_alternative=_FIRST_NUMBER.sub("", topic, count=1).strip(),
            error=reason,
        )

    try:
        search_results = await search(build_validation_query(topic, today))
    except Exception as exc:
        logger.error(f"[TopicValidation] Search failed for '{topic}': {exc}")
        return TopicValidationResult(
            topic=topic,
            is_valid=True,
            confidence=Confidence.UNKNOWN,
            error=str(exc),
        )

    analysis = analyze_search_results(search_results)
    is_valid = analysis.confidence != Confidence.NONE
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    if analysis.confidence == Confidence.UNKNOWN:
        logger.warning(f"[TopicValidation] Validation unavailable for '{topic}', assuming valid")
    else:
        logger.info(
            f"[TopicValidation] '{topic}' - valid: {is_valid}, "
            f"confidence: {analysis.confidence.value}, time: {elapsed_ms}ms"
        )

    return TopicValidationResult(
        topic=topic,
        is_valid=is_valid,
        confidence=analysis.confidence,
        web_search_results=search_results,
        error="validation unavailable" if analysis.confidence == Confidence.UNKNOWN else None,
    )


async def validate_topics(
    topics: Sequence[str],
    *,
    search: WebSearch,
    policy: Optional[GroundingPolicy] = None,
    today: Optional[date] = None,
) -> ValidateTopicsResponse:
    """Validate concurrently with staggered starts; results keep input order."""
    policy = policy or default_policy()
    started = time.perf_counter()
    stagger = policy.validation_stagger_ms / 1000.0

    async def _staggered(index: int, topic: str) -> TopicValidationResult:
        if stagger and index:
            await asyncio.sleep(stagger * index)
        return await validate_single_topic(topic, search=search, policy=policy, today=today)

    results: List[TopicValidationResult] = list(
        await asyncio.gather(*[_staggered(index, topic) for index, topic in enumerate(topics)])
    )

    invalid_topics = [result.topic for result in results if result.confidence == Confidence.NONE]
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        f"[TopicValidation] Complete. Valid: {len(results) - len(invalid_topics)}/{len(results)}, "
        f"time: {elapsed_ms}ms"
    )

    return ValidateTopicsResponse(
        results=results,
        all_valid=not invalid_topics,
        invalid_topics=invalid_topics,
        validation_time_ms=elapsed_ms,
    )
