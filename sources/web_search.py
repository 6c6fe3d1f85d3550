"""Brave Search client returning markdown-formatted result text."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from config import get_brave_settings
from config.settings import BraveSearchSettings
from storage.cache import MemoryCache, get_search_cache, search_cache_key

logger = logging.getLogger(__name__)

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"

RATE_LIMITED_MARKER = "[RATE_LIMITED]"
API_ERROR_MARKER = "[API_ERROR]"


def no_results_message(query: str) -> str:
    return (
        f'No current web search results available for "{query}". '
        "Please use your training knowledge to provide accurate, helpful information about this topic."
    )


def rate_limited_message(query: str) -> str:
    return f'{RATE_LIMITED_MARKER} Search temporarily rate limited for "{query}". Unable to validate topic.'


def api_error_message(query: str) -> str:
    return f'{API_ERROR_MARKER} Search temporarily unavailable for "{query}". Unable to validate topic.'


def is_unavailable(text: str) -> bool:
    """True for rate-limit and API-error markers, which say nothing about the topic."""
    return RATE_LIMITED_MARKER in text or API_ERROR_MARKER in text


def format_brave_results(payload: Any) -> str:
    """Render web (top 10) and news (top 5) results as numbered markdown blocks."""
    if not isinstance(payload, dict) or (not payload.get("web") and not payload.get("news")):
        return "No search results found."

    lines = ["## Web Search Results", ""]

    web_results = list((payload.get("web") or {}).get("results") or [])
    if web_results:
        lines.append("### Web Results:")
        for index, result in enumerate(web_results[:10], start=1):
            lines.append("")
            lines.append(f"{index}. **{result.get('title', '')}** ({result.get('url', '')})")
            if result.get("description"):
                lines.append(f"   {result['description']}")

    news_results = list((payload.get("news") or {}).get("results") or [])
    if news_results:
        lines.append("")
        lines.append("### News Results:")
        for index, result in enumerate(news_results[:5], start=1):
            lines.append("")
            lines.append(f"{index}. **{result.get('title', '')}** ({result.get('url', '')})")
            if result.get("description"):
                lines.append(f"   {result['description']}")
            if result.get("date"):
                lines.append(f"   Published: {result['date']}")

    return "\n".join(lines) + "\n"


async def _brave_get(
    url: str,
    *,
    params: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
) -> httpx.Response:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        return await client.get(url, params=params, headers=headers)


class BraveSearchClient:
    """Web-search collaborator. Never raises; failures come back as marker text."""

    def __init__(
        self,
        settings: Optional[BraveSearchSettings] = None,
        cache: Optional[MemoryCache] = None,
    ) -> None:
        self._settings = settings or get_brave_settings()
        self._cache = cache

    @property
    def name(self) -> str:
        return "BraveSearch"

    def is_configured(self) -> bool:
        return bool(self._settings.api_key)

    async def fetch(self, query: str) -> str:
        """Query Brave once, without the cache."""
        if not self.is_configured():
            logger.warning("[BraveSearch] API key not configured")
            return api_error_message(query)

        params = {
            "q": query,
            "count": self._settings.result_count,
            "freshness": self._settings.freshness,
        }
        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": str(self._settings.api_key),
        }

        try:
            response = await _brave_get(
                BRAVE_SEARCH_URL,
                params=params,
                headers=headers,
                timeout=self._settings.timeout_sec,
            )
        except httpx.TimeoutException:
            logger.warning(f"[BraveSearch] Request timeout for '{query}'")
            return api_error_message(query)
        except httpx.HTTPError as e:
            logger.warning(f"[BraveSearch] Transport error for '{query}': {e}")
            return api_error_message(query)

        if response.status_code == 429:
            logger.warning("[BraveSearch] Rate limit exceeded")
            return rate_limited_message(query)
        if response.status_code in (401, 403):
            logger.warning("[BraveSearch] Authentication failed - check API key")
            return api_error_message(query)
        if response.status_code >= 400:
            logger.warning(f"[BraveSearch] API error: {response.status_code}")
            return api_error_message(query)

        try:
            payload = response.json()
        except ValueError:
            logger.warning("[BraveSearch] Response was not JSON")
            return api_error_message(query)

        if not isinstance(payload, dict) or (not payload.get("web") and not payload.get("news")):
            logger.info("[BraveSearch] Empty results received")
            return no_results_message(query)

        return format_brave_results(payload)

    async def search(self, query: str) -> str:
        """Cached search. Unavailable markers are never cached."""
        cache = self._cache if self._cache is not None else get_search_cache()
        key = search_cache_key(query)

        cached = cache.get(key)
        if cached is not None:
            return cached

        logger.info(f"[WebSearch] Fetching: {query}")
        result = await self.fetch(query)
        if not is_unavailable(result):
            cache.set(key, result)
        return result


_default_client: Optional[BraveSearchClient] = None


def get_search_client() -> BraveSearchClient:
    global _default_client

    if _default_client is None:
        _default_client = BraveSearchClient()
    return _default_client


async def perform_web_search(query: str) -> str:
    """Default ``WebSearch`` collaborator used by the pipeline."""
    return await get_search_client().search(query)
