"""Audience catalogue: parent categories, built-in specializations and custom audiences."""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional, Sequence, TypeVar

from core import AudienceConfig, ResolvedAudience

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUDIENCE_CATEGORIES: Dict[str, List[str]] = {
    "academic": ["forensic-anthropology", "computational-archaeology"],
    "business": ["business-administration", "business-intelligence"],
}

CATEGORY_DISPLAY_NAMES: Dict[str, str] = {
    "academic": "Academic Researchers",
    "business": "Business Professionals",
}

CUSTOM_CATEGORY = "custom"
OTHER_CATEGORY = "other"

SPECIALIZATIONS: Dict[str, ResolvedAudience] = {
    "forensic-anthropology": ResolvedAudience(
        id="forensic-anthropology",
        parent_id="academic",
        name="Forensic Anthropology",
        description=(
            "Forensic anthropology researchers working on skeletal analysis, trauma interpretation, "
            "taphonomy and disaster victim identification with AI-assisted morphometrics."
        ),
        domain_examples=(
            "skeletal analysis AI for bone measurements, trauma pattern recognition, "
            "age/sex/ancestry estimation, commingled remains sorting"
        ),
        topic_titles=[
            "Build a Skeletal Analysis Pipeline Using Claude Vision API and Python",
            "Configure Automated Trauma Pattern Recognition System with TensorFlow and Medical Imaging",
            "Automate Age Estimation from Skeletal Features Using Deep Learning",
            "Create a Commingled Remains Sorting Tool with Claude and Morphometric Analysis",
        ],
        source_preferences=["arxiv", "github", "devto"],
    ),
    "computational-archaeology": ResolvedAudience(
        id="computational-archaeology",
        parent_id="academic",
        name="Computational Archaeology",
        description=(
            "Digital archaeology researchers applying LiDAR, photogrammetry, 3D reconstruction "
            "and remote sensing to site discovery and heritage preservation."
        ),
        domain_examples=(
            "LiDAR site discovery, photogrammetry pipelines for artifacts, "
            "artifact classification with computer vision, GIS analysis"
        ),
        topic_titles=[
            "Deploy LiDAR Point Cloud Processing Pipeline Using CloudCompare and Python for Site Discovery",
            "Create a Photogrammetry Workflow for Artifact Documentation with Meshroom and AliceVision",
            "Build an Artifact Classification System Using Claude Vision and Transfer Learning",
            "Automate GIS Analysis for Archaeological Surveys with QGIS and Python",
        ],
        source_preferences=["arxiv", "github", "devto"],
    ),
    "business-administration": ResolvedAudience(
        id="business-administration",
        parent_id="business",
        name="Business Administration",
        description=(
            "Administrators and operations professionals automating workflows, document processing, "
            "meeting transcription and routine office tasks."
        ),
        domain_examples=(
            "workflow orchestration with n8n and Zapier, invoice and contract processing, "
            "meeting intelligence, RPA with UiPath and Power Automate"
        ),
        topic_titles=[
            "Automate Business Workflows Using n8n Cloud and Claude Integration",
            "Configure Document Intelligence Workflow Using Claude 3.5 and LangChain",
            "Automate Meeting Notes with Whisper API and Claude Summarization",
            "Build an Invoice Processing System with Claude Vision and Zapier",
        ],
        source_preferences=["hackernews", "reddit", "devto"],
    ),
    "business-intelligence": ResolvedAudience(
        id="business-intelligence",
        parent_id="business",
        name="Business Intelligence & Analytics",
        description=(
            "Analytics, logistics and data professionals using forecasting, supply chain "
            "optimization and dashboards to turn data into decisions."
        ),
        domain_examples=(
            "demand forecasting with time series, inventory optimization, "
            "predictive analytics dashboards, churn prediction"
        ),
        topic_titles=[
            "Automate Supply Chain Forecasting with Prophet, Pandas, and Streamlit",
            "Optimize Inventory Predictions Using XGBoost and Historical Sales Data",
            "Build a Real-Time Analytics Dashboard with Streamlit and Plotly",
            "Create a Customer Churn Prediction Model with Scikit-learn and Claude Analysis",
        ],
        source_preferences=["hackernews", "reddit", "github", "devto"],
    ),
}

# older combined ids, checked before category ids
LEGACY_AUDIENCE_IDS: Dict[str, List[str]] = {
    "academics": ["forensic-anthropology", "computational-archaeology"],
    "business": ["business-administration", "business-intelligence"],
    "analysts": ["business-intelligence"],
}


def shuffle_list(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Shuffled copy; the input is left untouched."""
    result = list(items)
    (rng or random).shuffle(result)
    return result


def category_display_name(category_id: str) -> str:
    return CATEGORY_DISPLAY_NAMES.get(category_id, category_id)


def expand_audience_id(audience_id: str) -> List[str]:
    """Specialization ids for a legacy, category or specialization id."""
    if audience_id in LEGACY_AUDIENCE_IDS:
        return list(LEGACY_AUDIENCE_IDS[audience_id])
    if audience_id in AUDIENCE_CATEGORIES:
        return list(AUDIENCE_CATEGORIES[audience_id])
    if audience_id in SPECIALIZATIONS:
        return [audience_id]
    logger.warning(f"[Audiences] Unknown audience ID: {audience_id}")
    return []


def _resolve_custom(audience: AudienceConfig) -> ResolvedAudience:
    return ResolvedAudience(
        id=audience.id,
        name=audience.name,
        description=audience.description,
        domain_examples=audience.description,
        topic_titles=[
            f"Build an AI Solution for {audience.name}",
            f"Automate {audience.name} Workflows with Claude",
            f"Create a {audience.name} Dashboard with Streamlit",
        ],
        source_preferences=["hackernews", "github", "devto"],
        is_custom=True,
    )


def resolve_all_audiences(
    audience_ids: Sequence[str],
    custom_audiences: Optional[Sequence[AudienceConfig]] = None,
) -> List[ResolvedAudience]:
    """Resolve ids to audiences; duplicates are dropped, input order is kept."""
    custom_by_id = {audience.id: audience for audience in (custom_audiences or [])}
    resolved: Dict[str, ResolvedAudience] = {}

    for audience_id in audience_ids:
        if audience_id in SPECIALIZATIONS:
            resolved.setdefault(audience_id, SPECIALIZATIONS[audience_id])
        elif audience_id in custom_by_id:
            resolved.setdefault(audience_id, _resolve_custom(custom_by_id[audience_id]))
        else:
            for expanded in expand_audience_id(audience_id):
                resolved.setdefault(expanded, SPECIALIZATIONS[expanded])

    return list(resolved.values())


def group_audiences_by_category(audiences: Sequence[ResolvedAudience]) -> Dict[str, List[ResolvedAudience]]:
    groups: Dict[str, List[ResolvedAudience]] = {}
    for audience in audiences:
        category = audience.parent_id or (CUSTOM_CATEGORY if audience.is_custom else OTHER_CATEGORY)
        groups.setdefault(category, []).append(audience)
    return groups
