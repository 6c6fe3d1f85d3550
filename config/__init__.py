"""
Configuration Management Module
Environment settings plus the explicit per-request grounding policy.
"""
from .policy import (
    GroundingPolicy,
    RelevanceWeights,
    VersionCeiling,
    apply_policy_defaults,
    default_policy,
    policy_from_settings,
)
from .settings import (
    Settings,
    get_settings,
    get_brave_settings,
    get_feed_settings,
    get_extraction_settings,
    get_grounding_settings,
    get_storage_settings,
)

__all__ = [
    "GroundingPolicy",
    "RelevanceWeights",
    "VersionCeiling",
    "apply_policy_defaults",
    "default_policy",
    "policy_from_settings",
    "Settings",
    "get_settings",
    "get_brave_settings",
    "get_feed_settings",
    "get_extraction_settings",
    "get_grounding_settings",
    "get_storage_settings",
]
