"""Core contracts and shared types for the grounding pipeline."""

from .contracts import (
    AllocationResult,
    AllocationStats,
    AnySource,
    ArticleExtraction,
    AudienceConfig,
    AudienceProfile,
    BlockReason,
    Confidence,
    ExtractedArticle,
    ExtractionResult,
    FeedName,
    FeedStatus,
    FetchSourcesOptions,
    FetchSourcesResult,
    MatchingResult,
    PreGenerationResult,
    SourceAllocation,
    SourceArticle,
    Topic,
    TopicInput,
    TopicSourceMapping,
    TopicValidationResult,
    ValidateTopicsResponse,
    normalize_topic,
    normalize_topics,
)
from .parallel import (
    AgentBatch,
    AudienceBreakdown,
    GenerationMode,
    GenerationTradeoffs,
    MergerResult,
    MergerStats,
    ParallelGenerationConfig,
    ParallelTrendingResult,
    PerAudienceResult,
    ResolvedAudience,
    TokenUsage,
    TopicDistribution,
    TopicMergerConfig,
    TradeoffAlternative,
    TrendingTopic,
)

__all__ = [
    "AgentBatch",
    "AllocationResult",
    "AllocationStats",
    "AnySource",
    "ArticleExtraction",
    "AudienceBreakdown",
    "AudienceConfig",
    "AudienceProfile",
    "BlockReason",
    "Confidence",
    "ExtractedArticle",
    "ExtractionResult",
    "FeedName",
    "FeedStatus",
    "FetchSourcesOptions",
    "FetchSourcesResult",
    "GenerationMode",
    "GenerationTradeoffs",
    "MatchingResult",
    "MergerResult",
    "MergerStats",
    "ParallelGenerationConfig",
    "ParallelTrendingResult",
    "PerAudienceResult",
    "PreGenerationResult",
    "ResolvedAudience",
    "SourceAllocation",
    "SourceArticle",
    "TokenUsage",
    "Topic",
    "TopicDistribution",
    "TopicInput",
    "TopicMergerConfig",
    "TopicSourceMapping",
    "TopicValidationResult",
    "TradeoffAlternative",
    "TrendingTopic",
    "ValidateTopicsResponse",
    "normalize_topic",
    "normalize_topics",
]
