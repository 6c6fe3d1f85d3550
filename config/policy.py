"""Explicit grounding policy threaded through every pipeline call."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .settings import Settings


class VersionCeiling(BaseModel):
    """Highest publicly known version for a product name pattern."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    max_known_version: float


class RelevanceWeights(BaseModel):
    """Weights applied to title, body and URL keyword overlap."""

    model_config = ConfigDict(frozen=True)

    title: float = 0.5
    content: float = 0.3
    url: float = 0.2


DEFAULT_VERSION_CEILINGS: Tuple[VersionCeiling, ...] = (
    VersionCeiling(pattern=r"chatgpt\s*(\d+(?:\.\d+)?)", max_known_version=4.5),
    VersionCeiling(pattern=r"gpt-?(\d+(?:\.\d+)?)", max_known_version=4.5),
    VersionCeiling(pattern=r"claude\s*(\d+(?:\.\d+)?)", max_known_version=4.5),
    VersionCeiling(pattern=r"gemini\s*(\d+(?:\.\d+)?)", max_known_version=2.5),
)


class GroundingPolicy(BaseModel):
    """Tunable thresholds, caps and courtesy delays for one pipeline request.

    These are heuristics, not derived constants. Deployments are expected to
    recalibrate them by passing overrides to ``apply_policy_defaults``.
    """

    model_config = ConfigDict(frozen=True)

    match_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    partition_floor: float = Field(default=0.1, ge=0.0, le=1.0)
    min_diversity_score: float = Field(default=50.0, ge=0.0, le=100.0)
    sources_per_pair: int = Field(default=2, ge=1)
    max_secondary_sources: int = Field(default=2, ge=0)
    allow_cross_audience_reuse: bool = True

    validation_stagger_ms: int = Field(default=200, ge=0)
    enrichment_delay_ms: int = Field(default=200, ge=0)
    resource_extraction_delay_ms: int = Field(default=200, ge=0)
    resource_max_content_length: int = Field(default=3000, ge=1)

    max_keywords: int = Field(default=10, ge=1)
    max_subreddits: int = Field(default=5, ge=0)
    max_categories: int = Field(default=4, ge=0)
    fetch_limit: int = Field(default=5, ge=1)

    version_ceilings: List[VersionCeiling] = Field(default_factory=lambda: list(DEFAULT_VERSION_CEILINGS))
    relevance_weights: RelevanceWeights = Field(default_factory=RelevanceWeights)


def default_policy() -> GroundingPolicy:
    return GroundingPolicy()


def apply_policy_defaults(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    base: Optional[GroundingPolicy] = None,
) -> GroundingPolicy:
    """Return a new policy with ``overrides`` layered on ``base`` (or the defaults).

    Pure: neither argument is modified, and no module state is touched.
    """
    seed = base or GroundingPolicy()
    if not overrides:
        return seed
    merged: Dict[str, Any] = seed.model_dump()
    merged.update(dict(overrides))
    return GroundingPolicy.model_validate(merged)


def policy_from_settings(settings: Settings) -> GroundingPolicy:
    """Build a policy from the GROUNDING_* / FEEDS_* environment settings."""
    grounding = settings.grounding
    return apply_policy_defaults(
        {
            "match_threshold": grounding.match_threshold,
            "partition_floor": grounding.partition_floor,
            "min_diversity_score": grounding.min_diversity_score,
            "sources_per_pair": grounding.sources_per_pair,
            "max_secondary_sources": grounding.max_secondary_sources,
            "validation_stagger_ms": grounding.validation_stagger_ms,
            "enrichment_delay_ms": grounding.enrichment_delay_ms,
            "resource_extraction_delay_ms": grounding.resource_extraction_delay_ms,
            "resource_max_content_length": grounding.resource_max_content_length,
            "fetch_limit": settings.feeds.limit,
            "max_subreddits": settings.feeds.max_subreddits,
        }
    )
