"""
Settings Configuration
Environment-backed settings for the grounding pipeline and its collaborators.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class BraveSearchSettings(BaseSettings):
    """Brave Search API settings"""
    api_key: Optional[str] = Field(default=None, description="Brave Search subscription token")
    timeout_sec: float = Field(default=10.0, description="Request timeout (seconds)")
    result_count: int = Field(default=10, description="Results requested per query")
    freshness: str = Field(default="pm", description="Freshness window (pd, pw, pm, py)")

    class Config:
        env_prefix = "BRAVE_"


class FeedSettings(BaseSettings):
    """Multi-feed fetcher settings"""
    limit: int = Field(default=5, description="Articles per feed")
    request_timeout: float = Field(default=12.0, description="Per-request timeout (seconds)")
    user_agent: str = Field(default="GroundingPipeline/1.0", description="User Agent")
    subreddit_delay_ms: int = Field(default=200, description="Delay between subreddit requests")
    max_subreddits: int = Field(default=5, description="Subreddits fetched per call")
    github_token: Optional[str] = Field(default=None, description="GitHub token (optional)")

    class Config:
        env_prefix = "FEEDS_"


class ExtractionSettings(BaseSettings):
    """Full-text extraction settings"""
    max_articles: int = Field(default=15, description="Articles extracted per batch")
    max_content_length: int = Field(default=5000, description="Characters kept per article")
    delay_ms: int = Field(default=300, description="Delay between extraction requests")
    request_timeout: float = Field(default=15.0, description="Per-request timeout (seconds)")

    class Config:
        env_prefix = "EXTRACT_"


class GroundingSettings(BaseSettings):
    """Grounding policy thresholds (see config.policy.GroundingPolicy)"""
    match_threshold: float = Field(default=0.3, description="Minimum relevance for a topic-source match")
    partition_floor: float = Field(default=0.1, description="Minimum relevance to claim a source for an audience")
    min_diversity_score: float = Field(default=50.0, description="Diversity floor for multi-audience runs")
    sources_per_pair: int = Field(default=2, description="Sources allocated per topic-audience pair")
    max_secondary_sources: int = Field(default=2, description="Secondary sources next to a primary source")
    validation_stagger_ms: int = Field(default=200, description="Stagger between topic validations")
    enrichment_delay_ms: int = Field(default=200, description="Delay between enrichment searches")
    resource_extraction_delay_ms: int = Field(default=200, description="Delay between resource extractions")
    resource_max_content_length: int = Field(default=3000, description="Characters kept per resource extraction")

    class Config:
        env_prefix = "GROUNDING_"


class StorageSettings(BaseSettings):
    """Cache and outcome store settings"""
    search_cache_ttl: int = Field(default=3600, description="Search cache TTL (seconds)")
    search_cache_size: int = Field(default=500, description="Maximum cached queries")
    outcome_history_size: int = Field(default=200, description="Pipeline outcomes kept in memory")

    class Config:
        env_prefix = "STORAGE_"


class Settings(BaseSettings):
    """Top-level settings aggregating every group"""

    brave: BraveSearchSettings = Field(default_factory=BraveSearchSettings)
    feeds: FeedSettings = Field(default_factory=FeedSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    grounding: GroundingSettings = Field(default_factory=GroundingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings after reading the given .env file (default: config/.env)."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            brave=BraveSearchSettings(),
            feeds=FeedSettings(),
            extraction=ExtractionSettings(),
            grounding=GroundingSettings(),
            storage=StorageSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loaded from the environment."""
    return Settings.load_from_env_file()


def get_brave_settings() -> BraveSearchSettings:
    return get_settings().brave


def get_feed_settings() -> FeedSettings:
    return get_settings().feeds


def get_extraction_settings() -> ExtractionSettings:
    return get_settings().extraction


def get_grounding_settings() -> GroundingSettings:
    return get_settings().grounding


def get_storage_settings() -> StorageSettings:
    return get_settings().storage
