from __future__ import annotations

import pytest
from pydantic import ValidationError

from config.policy import GroundingPolicy, apply_policy_defaults, default_policy, policy_from_settings
from config.settings import FeedSettings, GroundingSettings, Settings


def test_defaults() -> None:
    policy = default_policy()
    assert policy.match_threshold == 0.3
    assert policy.min_diversity_score == 50.0
    assert policy.sources_per_pair == 2
    assert policy.allow_cross_audience_reuse is True


def test_overrides_do_not_touch_the_base() -> None:
    base = default_policy()

    derived = apply_policy_defaults({"match_threshold": 0.5}, base=base)

    assert derived.match_threshold == 0.5
    assert base.match_threshold == 0.3
    assert apply_policy_defaults().match_threshold == 0.3


def test_invalid_override_is_rejected() -> None:
    with pytest.raises(ValidationError):
        apply_policy_defaults({"min_diversity_score": 150})


def test_policy_is_frozen() -> None:
    policy = GroundingPolicy()
    with pytest.raises(ValidationError):
        policy.match_threshold = 0.9


def test_policy_from_settings() -> None:
    settings = Settings(
        grounding=GroundingSettings(match_threshold=0.4, enrichment_delay_ms=0),
        feeds=FeedSettings(limit=7, max_subreddits=2),
    )

    policy = policy_from_settings(settings)

    assert policy.match_threshold == 0.4
    assert policy.enrichment_delay_ms == 0
    assert policy.fetch_limit == 7
    assert policy.max_subreddits == 2


def test_feed_subreddit_cap_matches_policy_default() -> None:
    assert FeedSettings().max_subreddits == default_policy().max_subreddits
