"""
Grounding Module
Topic validation, source matching and allocation, the pre-generation
pipeline and parallel topic generation.
"""
from .keywords import STOP_WORDS, calculate_relevance_score, extract_keywords
from .topic_validation import (
    analyze_search_results,
    is_obviously_fictional,
    validate_single_topic,
    validate_topics,
)
from .source_matching import (
    MATCH_THRESHOLD,
    build_topic_source_context,
    get_sources_for_topic,
    match_single_topic,
    match_single_topic_with_primary,
    match_topics_to_sources,
)
from .source_allocation import (
    allocate_sources_to_audiences,
    build_allocation_context,
    get_allocation_for_topic_audience,
    get_allocations_for_audience,
    validate_allocation_diversity,
)
from .enrichment import enrich_unmatched_topics, parse_web_search_to_sources
from .pre_generation import PreGenerationParams, run_pre_generation_checks
from .topic_merger import (
    analyze_topic_distribution,
    deduplicate_similar_topics,
    merge_topics_with_balance,
    merge_with_priority,
)
from .audiences import resolve_all_audiences, group_audiences_by_category
from .parallel_orchestrator import (
    calculate_tradeoffs,
    create_agent_batches,
    execute_confirmed_parallel_generation,
    generate_topics_parallel,
    generate_topics_with_confirmation,
)

__all__ = [
    "STOP_WORDS",
    "calculate_relevance_score",
    "extract_keywords",
    "analyze_search_results",
    "is_obviously_fictional",
    "validate_single_topic",
    "validate_topics",
    "MATCH_THRESHOLD",
    "build_topic_source_context",
    "get_sources_for_topic",
    "match_single_topic",
    "match_single_topic_with_primary",
    "match_topics_to_sources",
    "allocate_sources_to_audiences",
    "build_allocation_context",
    "get_allocation_for_topic_audience",
    "get_allocations_for_audience",
    "validate_allocation_diversity",
    "enrich_unmatched_topics",
    "parse_web_search_to_sources",
    "PreGenerationParams",
    "run_pre_generation_checks",
    "analyze_topic_distribution",
    "deduplicate_similar_topics",
    "merge_topics_with_balance",
    "merge_with_priority",
    "resolve_all_audiences",
    "group_audiences_by_category",
    "calculate_tradeoffs",
    "create_agent_batches",
    "execute_confirmed_parallel_generation",
    "generate_topics_parallel",
    "generate_topics_with_confirmation",
]
