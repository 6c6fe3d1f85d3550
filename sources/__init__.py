"""External collaborators: web search, content feeds and full-text extraction."""

from .extractor import extract_article, extract_multiple_articles, transform_url
from .feeds import (
    fetch_all_sources,
    fetch_arxiv,
    fetch_devto,
    fetch_gdelt,
    fetch_github,
    fetch_hackernews,
    fetch_reddit,
)
from .web_search import (
    API_ERROR_MARKER,
    RATE_LIMITED_MARKER,
    BraveSearchClient,
    format_brave_results,
    perform_web_search,
)

__all__ = [
    "API_ERROR_MARKER",
    "RATE_LIMITED_MARKER",
    "BraveSearchClient",
    "extract_article",
    "extract_multiple_articles",
    "fetch_all_sources",
    "fetch_arxiv",
    "fetch_devto",
    "fetch_gdelt",
    "fetch_github",
    "fetch_hackernews",
    "fetch_reddit",
    "format_brave_results",
    "perform_web_search",
    "transform_url",
]
