"""Multi-feed article fetcher: GDELT, arXiv, Hacker News, Reddit, GitHub, Dev.to."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import json
import logging
import re
import time
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import get_feed_settings
from config.settings import FeedSettings
from core import FeedName, FeedStatus, FetchSourcesOptions, FetchSourcesResult, SourceArticle
from utils.exceptions import FeedError

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS = ["artificial intelligence", "machine learning"]
DEFAULT_SUBREDDITS = ["MachineLearning", "artificial"]
DEFAULT_ARXIV_CATEGORIES = ["cs.AI", "cs.LG"]

_GDELT_URL = "https://api.gdeltproject.org/api/v2/doc/doc"
_ARXIV_URL = "http://export.arxiv.org/api/query"
_HN_FIREBASE = "https://hacker-news.firebaseio.com/v0"
_GITHUB_SEARCH = "https://api.github.com/search/repositories"
_DEVTO_URL = "https://dev.to/api/articles"
_ATOM = "{http://www.w3.org/2005/Atom}"


def _collapse(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip()


def _truncate(value: Any, max_len: int) -> Optional[str]:
    text = _collapse(value)
    return text[:max_len] if text else None


def _iso_from_epoch(value: Any) -> Optional[str]:
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc).isoformat()
    except (TypeError, ValueError):
        return None


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
async def _http_get_json(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 12.0,
) -> Any:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
async def _http_get_text(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 12.0,
) -> str:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return str(response.text or "")


async def fetch_gdelt(keywords: Sequence[str], limit: int = 10, *, settings: Optional[FeedSettings] = None) -> List[SourceArticle]:
    settings = settings or get_feed_settings()
    # multi-word keywords must be quoted
    query = " OR ".join(f'"{k}"' if " " in k else k for k in list(keywords)[:3])
    params = {
        "query": query,
        "mode": "ArtList",
        "format": "json",
        "maxrecords": limit,
        "timespan": "7d",
    }
    text = await _http_get_text(_GDELT_URL, params=params, timeout=settings.request_timeout)
    # GDELT sometimes answers with an HTML error page
    if not text.lstrip().startswith("{"):
        raise FeedError("GDELT returned non-JSON response", source=FeedName.GDELT.value)

    try:
        payload = json.loads(text)
    except ValueError as e:
        raise FeedError(f"GDELT returned malformed JSON: {e}", source=FeedName.GDELT.value)

    articles: List[SourceArticle] = []
    for item in list(payload.get("articles") or [])[:limit]:
        url = str(item.get("url") or "").strip()
        if not url:
            continue
        articles.append(
            SourceArticle(
                title=_collapse(item.get("title")) or "Untitled",
                url=url,
                origin_feed=FeedName.GDELT,
                date=item.get("seendate"),
                snippet=item.get("domain"),
            )
        )
    return articles


async def fetch_arxiv(categories: Sequence[str], limit: int = 10, *, settings: Optional[FeedSettings] = None) -> List[SourceArticle]:
    settings = settings or get_feed_settings()
    params = {
        "search_query": " OR ".join(f"cat:{category}" for category in categories),
        "sortBy": "submittedDate",
        "sortOrder": "descending",
        "max_results": limit,
    }
    xml_text = await _http_get_text(_ARXIV_URL, params=params, timeout=settings.request_timeout)
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise FeedError(f"arXiv returned malformed XML: {e}", source=FeedName.ARXIV.value)

    articles: List[SourceArticle] = []
    for entry in root.findall(f"{_ATOM}entry")[:limit]:
        title = _collapse(entry.findtext(f"{_ATOM}title"))
        url = _collapse(entry.findtext(f"{_ATOM}id"))
        if not title or not url:
            continue
        articles.append(
            SourceArticle(
                title=title,
                url=url,
                origin_feed=FeedName.ARXIV,
                snippet=_truncate(entry.findtext(f"{_ATOM}summary"), 300),
                author=_collapse(entry.findtext(f"{_ATOM}author/{_ATOM}name")) or None,
                date=_collapse(entry.findtext(f"{_ATOM}published")) or None,
            )
        )
    return articles


async def fetch_hackernews(limit: int = 10, *, settings: Optional[FeedSettings] = None) -> List[SourceArticle]:
    settings = settings or get_feed_settings()
    story_ids = await _http_get_json(f"{_HN_FIREBASE}/topstories.json", timeout=settings.request_timeout)
    candidates = list(story_ids or [])[: limit * 2]

    stories = await asyncio.gather(
        *[_http_get_json(f"{_HN_FIREBASE}/item/{story_id}.json", timeout=settings.request_timeout) for story_id in candidates],
        return_exceptions=True,
    )

    articles: List[SourceArticle] = []
    for story in stories:
        if isinstance(story, BaseException) or not isinstance(story, dict):
            continue
        # only stories pointing at an external URL
        if not story.get("url") or not story.get("title"):
            continue
        articles.append(
            SourceArticle(
                title=str(story["title"]),
                url=str(story["url"]),
                origin_feed=FeedName.HACKERNEWS,
                date=_iso_from_epoch(story.get("time")),
                author=story.get("by"),
            )
        )
        if len(articles) >= limit:
            break
    return articles


async def fetch_reddit(subreddits: Sequence[str], limit: int = 10, *, settings: Optional[FeedSettings] = None) -> List[SourceArticle]:
    settings = settings or get_feed_settings()
    selected = list(subreddits)[: settings.max_subreddits]
    if not selected:
        return []

    per_subreddit = max(1, -(-limit // len(selected)))
    delay = settings.subreddit_delay_ms / 1000.0
    articles: List[SourceArticle] = []

    for index, subreddit in enumerate(selected):
        if len(articles) >= limit:
            break
        if index and delay:
            await asyncio.sleep(delay)
        try:
            payload = await _http_get_json(
                f"https://www.reddit.com/r/{subreddit}/hot.json",
                params={"limit": per_subreddit},
                headers={"User-Agent": settings.user_agent},
                timeout=settings.request_timeout,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[SourceFetching] r/{subreddit} failed: {e}")
            continue

        for child in list(((payload or {}).get("data") or {}).get("children") or []):
            post = child.get("data") or {}
            url = str(post.get("url") or "")
            # external links only
            if not url or "reddit.com" in url:
                continue
            articles.append(
                SourceArticle(
                    title=str(post.get("title") or "Untitled"),
                    url=url,
                    origin_feed=FeedName.REDDIT,
                    date=_iso_from_epoch(post.get("created_utc")),
                    author=post.get("author"),
                    snippet=_truncate(post.get("selftext"), 200),
                )
            )

    return articles[:limit]


async def fetch_github(limit: int = 5, *, settings: Optional[FeedSettings] = None) -> List[SourceArticle]:
    settings = settings or get_feed_settings()
    week_ago = (datetime.now(timezone.utc) - timedelta(days=7)).strftime("%Y-%m-%d")
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": settings.user_agent,
    }
    if settings.github_token:
        headers["Authorization"] = f"Bearer {settings.github_token}"

    payload = await _http_get_json(
        _GITHUB_SEARCH,
        params={
            "q": f"topic:machine-learning created:>{week_ago}",
            "sort": "stars",
            "order": "desc",
            "per_page": limit,
        },
        headers=headers,
        timeout=settings.request_timeout,
    )

    articles: List[SourceArticle] = []
    for repo in list((payload or {}).get("items") or [])[:limit]:
        if not repo.get("html_url"):
            continue
        articles.append(
            SourceArticle(
                title=str(repo.get("full_name") or repo["html_url"]),
                url=str(repo["html_url"]),
                origin_feed=FeedName.GITHUB,
                snippet=_truncate(repo.get("description"), 200),
                author=(repo.get("owner") or {}).get("login"),
                date=repo.get("created_at"),
            )
        )
    return articles


async def fetch_devto(limit: int = 5, *, settings: Optional[FeedSettings] = None) -> List[SourceArticle]:
    settings = settings or get_feed_settings()
    payload = await _http_get_json(
        _DEVTO_URL,
        params={"tag": "ai", "per_page": limit, "top": 7},
        timeout=settings.request_timeout,
    )
    if not isinstance(payload, list):
        raise FeedError("Dev.to returned an unexpected payload", source=FeedName.DEVTO.value)

    articles: List[SourceArticle] = []
    for item in payload[:limit]:
        if not item.get("url"):
            continue
        articles.append(
            SourceArticle(
                title=str(item.get("title") or "Untitled"),
                url=str(item["url"]),
                origin_feed=FeedName.DEVTO,
                snippet=_truncate(item.get("description"), 200),
                author=(item.get("user") or {}).get("username"),
                date=item.get("published_at"),
            )
        )
    return articles


async def fetch_all_sources(
    options: Optional[FetchSourcesOptions] = None,
    *,
    settings: Optional[FeedSettings] = None,
) -> FetchSourcesResult:
    """Fetch every feed concurrently. One feed failing never fails the call."""
    options = options or FetchSourcesOptions()
    settings = settings or get_feed_settings()
    started = time.perf_counter()

    keywords = list(options.keywords) or DEFAULT_KEYWORDS
    subreddits = list(options.subreddits or []) or DEFAULT_SUBREDDITS
    categories = list(options.categories or []) or DEFAULT_ARXIV_CATEGORIES
    limit = options.limit

    feeds = [
        (FeedName.GDELT, fetch_gdelt(keywords, limit, settings=settings)),
        (FeedName.ARXIV, fetch_arxiv(categories, limit, settings=settings)),
        (FeedName.HACKERNEWS, fetch_hackernews(limit, settings=settings)),
        (FeedName.REDDIT, fetch_reddit(subreddits, limit, settings=settings)),
        (FeedName.GITHUB, fetch_github(limit, settings=settings)),
        (FeedName.DEVTO, fetch_devto(limit, settings=settings)),
    ]
    outcomes = await asyncio.gather(*[coro for _, coro in feeds], return_exceptions=True)

    articles: List[SourceArticle] = []
    per_feed_status: Dict[str, FeedStatus] = {}
    for (feed, _), outcome in zip(feeds, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(f"[SourceFetching] {feed.value} failed: {outcome}")
            per_feed_status[feed.value] = FeedStatus(status="failed", count=0, error=str(outcome) or type(outcome).__name__)
            continue
        articles.extend(outcome)
        per_feed_status[feed.value] = FeedStatus(status="success", count=len(outcome))

    fetch_time_ms = int((time.perf_counter() - started) * 1000)
    logger.info(f"[SourceFetching] Fetched {len(articles)} articles in {fetch_time_ms}ms")

    return FetchSourcesResult(
        articles=articles,
        per_feed_status=per_feed_status,
        total_count=len(articles),
        fetch_time_ms=fetch_time_ms,
    )
