"""Canonical data contracts for the pre-generation grounding pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Confidence(str, Enum):
    """How certain the validator is that a topic is real."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"
    UNKNOWN = "unknown"


class FeedName(str, Enum):
    """Content feed a source article came from."""

    GDELT = "gdelt"
    ARXIV = "arxiv"
    HACKERNEWS = "hackernews"
    REDDIT = "reddit"
    GITHUB = "github"
    DEVTO = "devto"
    WEB = "web"


class BlockReason(str, Enum):
    """Machine-readable reason a pipeline run was blocked."""

    ALL_TOPICS_FICTIONAL = "all_topics_fictional"
    NO_SOURCES_AVAILABLE = "no_sources_available"
    DIVERSITY_TOO_LOW = "diversity_too_low"


class Topic(BaseModel):
    """A user topic normalized to its rich shape. Never mutated by the pipeline."""

    model_config = ConfigDict(frozen=True)

    title: str
    audience_id: Optional[str] = None
    resource: Optional[str] = None
    summary: Optional[str] = None
    what_it_is: Optional[str] = None
    why_it_matters: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _non_empty_title(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("topic title is required")
        return text

    @field_validator("audience_id", "resource", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        text = str(value or "").strip()
        return text or None

    @property
    def is_pre_sourced(self) -> bool:
        return bool(self.resource)


TopicInput = Union[str, Topic]


def normalize_topic(value: TopicInput, *, default_audience_id: Optional[str] = None) -> Topic:
    """Lift a bare title into a ``Topic``; rich topics pass through unchanged."""
    if isinstance(value, Topic):
        return value
    return Topic(title=value, audience_id=default_audience_id)


def normalize_topics(
    values: Sequence[TopicInput],
    *,
    default_audience_id: Optional[str] = None,
) -> List[Topic]:
    """Normalize a topic list, skipping bare titles that are blank."""
    return [
        normalize_topic(value, default_audience_id=default_audience_id)
        for value in values
        if isinstance(value, Topic) or str(value or "").strip()
    ]


class AudienceProfile(BaseModel):
    """Generated retrieval hints for an audience."""

    persona: str = ""
    relevance_keywords: List[str] = Field(default_factory=list)
    subreddits: List[str] = Field(default_factory=list)
    arxiv_categories: List[str] = Field(default_factory=list)
    search_templates: List[str] = Field(default_factory=list)


class AudienceConfig(BaseModel):
    """Audience a newsletter section is written for."""

    id: str
    name: str
    description: str = ""
    is_custom: bool = False
    generated: Optional[AudienceProfile] = None


class SourceArticle(BaseModel):
    """Raw article metadata from a content feed. ``url`` is the identity key."""

    title: str
    url: str
    origin_feed: FeedName = FeedName.WEB
    snippet: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None

    @property
    def body(self) -> Optional[str]:
        return self.snippet


class ExtractedArticle(SourceArticle):
    """Source article with (optionally) extracted full text."""

    content: Optional[str] = None
    content_length: int = 0
    extraction_success: bool = False
    extraction_error: Optional[str] = None
    extraction_time_ms: Optional[int] = None

    @property
    def body(self) -> Optional[str]:
        return self.content or self.snippet

    @classmethod
    def from_source(cls, source: SourceArticle) -> "ExtractedArticle":
        """Promote a plain source without content; ``body`` falls back to its snippet."""
        if isinstance(source, ExtractedArticle):
            return source
        return cls(**source.model_dump())


AnySource = Union[ExtractedArticle, SourceArticle]


class TopicValidationResult(BaseModel):
    """Outcome of validating one topic."""

    topic: str
    is_valid: bool
    confidence: Confidence
    web_search_results: Optional[str] = None
    suggested_alternative: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_fictional(self) -> bool:
        return self.confidence == Confidence.NONE

    @property
    def is_unavailable(self) -> bool:
        return self.confidence == Confidence.UNKNOWN


class ValidateTopicsResponse(BaseModel):
    """Batch validation results, in input order."""

    results: List[TopicValidationResult] = Field(default_factory=list)
    all_valid: bool = True
    invalid_topics: List[str] = Field(default_factory=list)
    validation_time_ms: int = 0


class TopicSourceMapping(BaseModel):
    """Sources matched to one topic."""

    topic: str
    matched_sources: List[ExtractedArticle] = Field(default_factory=list)
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    has_match: bool = False
    topic_keywords: List[str] = Field(default_factory=list)
    primary_source_url: Optional[str] = None
    primary_source: Optional[ExtractedArticle] = None

    @model_validator(mode="after")
    def _primary_source_leads(self) -> "TopicSourceMapping":
        if self.primary_source is None:
            return self
        if not self.matched_sources or self.matched_sources[0].url != self.primary_source.url:
            raise ValueError("primary source must be the first matched source")
        if self.relevance_score != 1.0:
            raise ValueError("primary source mappings must score 1.0")
        return self


class MatchingResult(BaseModel):
    """Topic-to-source matching for a whole topic set."""

    mappings: List[TopicSourceMapping] = Field(default_factory=list)
    unmatched_topics: List[str] = Field(default_factory=list)
    all_matched: bool = True
    total_sources_cited: int = 0
    missing_primary_sources: Dict[str, str] = Field(
        default_factory=dict,
        description="topic title -> declared resource URL absent from the pool",
    )


class SourceAllocation(BaseModel):
    """Sources assigned to one topic for one audience."""

    topic: str
    audience_id: str
    audience_name: str
    sources: List[ExtractedArticle] = Field(default_factory=list)
    primary_source: Optional[ExtractedArticle] = None
    relevance_score: float = 0.0
    has_reused_sources: bool = False


class AllocationStats(BaseModel):
    total_allocations: int = 0
    total_unique_sources: int = 0
    total_reused_sources: int = 0
    average_sources_per_allocation: float = 0.0


class AllocationResult(BaseModel):
    """All allocations of a run plus diversity metrics."""

    allocations: List[SourceAllocation] = Field(default_factory=list)
    reused_sources: List[str] = Field(default_factory=list)
    diversity_score: float = Field(default=100.0, ge=0.0, le=100.0)
    all_topics_have_sources: bool = True
    topics_without_sources: List[str] = Field(default_factory=list)
    partitions: Dict[str, List[str]] = Field(default_factory=dict)
    stats: AllocationStats = Field(default_factory=AllocationStats)


class FetchSourcesOptions(BaseModel):
    """Query hints for the multi-feed fetcher."""

    keywords: List[str] = Field(default_factory=list)
    subreddits: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    limit: int = Field(default=5, ge=1)


class FeedStatus(BaseModel):
    status: Literal["success", "failed"] = "success"
    count: int = 0
    error: Optional[str] = None


class FetchSourcesResult(BaseModel):
    """Articles from every feed plus each feed's own status."""

    articles: List[SourceArticle] = Field(default_factory=list)
    per_feed_status: Dict[str, FeedStatus] = Field(default_factory=dict)
    total_count: int = 0
    fetch_time_ms: int = 0


class ArticleExtraction(BaseModel):
    """Single-URL extraction outcome."""

    content: Optional[str] = None
    title: Optional[str] = None
    success: bool = False
    error: Optional[str] = None
    time_ms: int = 0


class ExtractionResult(BaseModel):
    extracted: List[ExtractedArticle] = Field(default_factory=list)
    success_count: int = 0
    failed_count: int = 0
    total_extraction_time_ms: int = 0


class PreGenerationResult(BaseModel):
    """Verdict handed to the generation layer."""

    can_proceed: bool
    validated_topics: List[TopicValidationResult] = Field(default_factory=list)
    source_mappings: List[TopicSourceMapping] = Field(default_factory=list)
    enriched_sources: List[ExtractedArticle] = Field(default_factory=list)
    topic_source_context: str = ""
    block_reason: Optional[BlockReason] = None
    user_message: Optional[str] = None
    invalid_topics: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    pipeline_time_ms: int = 0
    allocation_result: Optional[AllocationResult] = None
    allocation_context: Optional[str] = None

    @model_validator(mode="after")
    def _blocked_runs_explain_themselves(self) -> "PreGenerationResult":
        if not self.can_proceed and (self.block_reason is None or not self.user_message):
            raise ValueError("blocked results require block_reason and user_message")
        return self

    @property
    def source_allocations(self) -> Optional[List[SourceAllocation]]:
        if self.allocation_result is None:
            return None
        return self.allocation_result.allocations
