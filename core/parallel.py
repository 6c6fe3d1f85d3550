"""Contracts for parallel per-audience topic generation and merging."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class GenerationMode(str, Enum):
    """How audiences are grouped into concurrent generation batches."""

    PER_CATEGORY = "per-category"
    PER_AUDIENCE = "per-audience"
    HYBRID = "hybrid"


class ParallelGenerationConfig(BaseModel):
    mode: GenerationMode = GenerationMode.PER_CATEGORY
    max_parallel_agents: Optional[int] = Field(default=None, ge=1)
    topics_per_agent: int = Field(default=4, ge=1)
    show_tradeoffs: bool = True
    batch_timeout_sec: Optional[float] = Field(default=None, gt=0)


class ResolvedAudience(BaseModel):
    """Built-in specialization or caller-defined audience with a consistent shape."""

    id: str
    name: str
    description: str = ""
    domain_examples: str = ""
    topic_titles: List[str] = Field(default_factory=list)
    source_preferences: List[str] = Field(default_factory=list)
    parent_id: Optional[str] = None
    is_custom: bool = False


class AgentBatch(BaseModel):
    """Audiences handled by one generation call."""

    batch_id: str
    batch_name: str
    audiences: List[ResolvedAudience] = Field(default_factory=list)
    parent_category: Optional[str] = None

    @property
    def audience_ids(self) -> List[str]:
        return [audience.id for audience in self.audiences]


class TrendingTopic(BaseModel):
    title: str
    summary: str = ""
    audience_id: Optional[str] = None


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class PerAudienceResult(BaseModel):
    """Output of one batch generation call."""

    batch_id: str
    audience_ids: List[str] = Field(default_factory=list)
    topics: List[TrendingTopic] = Field(default_factory=list)
    topics_by_audience: Dict[str, List[TrendingTopic]] = Field(default_factory=dict)
    success: bool = True
    error: Optional[str] = None
    duration_ms: int = 0
    token_usage: Optional[TokenUsage] = None


class TradeoffAlternative(BaseModel):
    mode: GenerationMode
    agent_count: int
    estimated_time_seconds: int
    description: str


class AudienceBreakdown(BaseModel):
    default_count: int = 0
    custom_count: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)


class GenerationTradeoffs(BaseModel):
    """Cost and latency estimate shown before a run is confirmed."""

    audience_count: int
    audience_breakdown: AudienceBreakdown = Field(default_factory=AudienceBreakdown)
    mode: GenerationMode
    agent_count: int
    estimated_topics: int
    estimated_time_seconds: int
    estimated_api_calls: int
    alternatives: List[TradeoffAlternative] = Field(default_factory=list)


class ParallelTrendingResult(BaseModel):
    success: bool
    needs_confirmation: bool = False
    tradeoffs: Optional[GenerationTradeoffs] = None
    topics: List[TrendingTopic] = Field(default_factory=list)
    per_audience_results: List[PerAudienceResult] = Field(default_factory=list)
    error: Optional[str] = None
    total_duration_ms: Optional[int] = None
    total_token_usage: Optional[TokenUsage] = None
    cache_key: Optional[str] = None


class TopicMergerConfig(BaseModel):
    target_count: int = Field(default=10, ge=0)
    min_per_audience: int = Field(default=2, ge=0)
    strict_balance: bool = True
    shuffle_audiences: bool = True
    shuffle_final: bool = True


class MergerStats(BaseModel):
    total_before_merge: int = 0
    total_after_merge: int = 0
    per_audience: Dict[str, int] = Field(default_factory=dict)
    underrepresented: List[str] = Field(default_factory=list)


class MergerResult(BaseModel):
    topics: List[TrendingTopic] = Field(default_factory=list)
    stats: MergerStats = Field(default_factory=MergerStats)


class TopicDistribution(BaseModel):
    """Per-audience spread of a topic list. ``imbalance_ratio`` is max/min."""

    total: int = 0
    per_audience: Dict[str, int] = Field(default_factory=dict)
    percentages: Dict[str, str] = Field(default_factory=dict)
    is_balanced: bool = True
    imbalance_ratio: float = 1.0
