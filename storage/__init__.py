"""
Storage Module
Search-result cache and pipeline outcome history
"""
from .cache import (
    BaseCache,
    MemoryCache,
    get_search_cache,
    search_cache_key,
)
from .outcome_store import (
    InMemoryOutcomeStore,
    OutcomeRecord,
    OutcomeRecorder,
    OutcomeSummary,
)

__all__ = [
    # Cache
    "BaseCache",
    "MemoryCache",
    "get_search_cache",
    "search_cache_key",
    # Outcomes
    "InMemoryOutcomeStore",
    "OutcomeRecord",
    "OutcomeRecorder",
    "OutcomeSummary",
]
