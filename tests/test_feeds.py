from __future__ import annotations

import json
from typing import Any, Dict, List

import httpx
import pytest

from config.settings import FeedSettings
from core import FeedName, FetchSourcesOptions
from sources import feeds
from utils.exceptions import FeedError

SETTINGS = FeedSettings(subreddit_delay_ms=0, max_subreddits=3)

GDELT_PAYLOAD = json.dumps(
    {
        "articles": [
            {"url": "https://news.example/1", "title": "  Claude   3 news ", "seendate": "20261018", "domain": "news.example"},
            {"title": "no url"},
        ]
    }
)

ARXIV_FEED = """<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/abs/2410.00001v1</id>
    <title>Attention
      Paper</title>
    <summary>Abstract text</summary>
    <published>2026-10-17T00:00:00Z</published>
    <author><name>A. Author</name></author>
  </entry>
</feed>
"""

HN_ITEMS: Dict[str, Any] = {
    "1": {"title": "Show HN: thing", "url": "https://hn.example/1", "time": 0, "by": "pg"},
    "2": {"title": "Ask HN: question"},
    "4": {"title": "Launch", "url": "https://hn.example/4"},
}

REDDIT_GOOD = {
    "data": {
        "children": [
            {"data": {"url": "https://www.reddit.com/r/good/comments/self", "title": "self post"}},
            {"data": {"url": "https://ext.example/a", "title": "External", "author": "u1", "created_utc": 0}},
        ]
    }
}

GITHUB_PAYLOAD = {
    "items": [
        {"html_url": "https://github.com/o/r", "full_name": "o/r", "description": "repo", "owner": {"login": "o"}},
        {"full_name": "missing/url"},
    ]
}


def _install_fakes(monkeypatch, requested: List[str], devto: Any = None) -> None:
    async def fake_json(url: str, *, params=None, headers=None, timeout: float = 12.0) -> Any:
        requested.append(url)
        if url == f"{feeds._HN_FIREBASE}/topstories.json":
            return [1, 2, 3, 4]
        if url.startswith(f"{feeds._HN_FIREBASE}/item/"):
            story_id = url.rsplit("/", 1)[-1].replace(".json", "")
            if story_id == "3":
                raise httpx.ConnectError("connection refused")
            return HN_ITEMS[story_id]
        if "reddit.com/r/bad/" in url:
            raise httpx.ConnectError("connection refused")
        if "reddit.com/r/" in url:
            return REDDIT_GOOD
        if url == feeds._GITHUB_SEARCH:
            return GITHUB_PAYLOAD
        if url == feeds._DEVTO_URL:
            return devto if devto is not None else [{"url": "https://dev.to/a", "title": "Dev", "user": {"username": "d"}}]
        raise AssertionError(f"unexpected url {url}")

    async def fake_text(url: str, *, params=None, headers=None, timeout: float = 12.0) -> str:
        requested.append(url)
        if url == feeds._GDELT_URL:
            return GDELT_PAYLOAD
        if url == feeds._ARXIV_URL:
            return ARXIV_FEED
        raise AssertionError(f"unexpected url {url}")

    monkeypatch.setattr(feeds, "_http_get_json", fake_json)
    monkeypatch.setattr(feeds, "_http_get_text", fake_text)


@pytest.mark.asyncio
async def test_fetch_all_sources_isolates_feed_failures(monkeypatch) -> None:
    requested: List[str] = []
    _install_fakes(monkeypatch, requested, devto={"error": "unexpected"})

    result = await feeds.fetch_all_sources(
        FetchSourcesOptions(keywords=["Claude 3"], subreddits=["good", "bad"], limit=2),
        settings=SETTINGS,
    )

    assert result.per_feed_status["devto"].status == "failed"
    assert result.per_feed_status["devto"].error == "Dev.to returned an unexpected payload"
    assert {name: status.count for name, status in result.per_feed_status.items()} == {
        "gdelt": 1,
        "arxiv": 1,
        "hackernews": 2,
        "reddit": 1,
        "github": 1,
        "devto": 0,
    }
    assert result.total_count == 6
    assert len(result.articles) == 6


@pytest.mark.asyncio
async def test_feed_articles_are_normalized(monkeypatch) -> None:
    _install_fakes(monkeypatch, [])

    result = await feeds.fetch_all_sources(
        FetchSourcesOptions(keywords=["Claude 3"], subreddits=["good"], limit=2),
        settings=SETTINGS,
    )
    by_feed = {}
    for article in result.articles:
        by_feed.setdefault(article.origin_feed, []).append(article)

    assert by_feed[FeedName.GDELT][0].title == "Claude 3 news"
    assert by_feed[FeedName.ARXIV][0].title == "Attention Paper"
    assert by_feed[FeedName.ARXIV][0].author == "A. Author"
    assert [item.url for item in by_feed[FeedName.HACKERNEWS]] == ["https://hn.example/1", "https://hn.example/4"]
    assert by_feed[FeedName.HACKERNEWS][0].date == "1970-01-01T00:00:00+00:00"
    assert [item.url for item in by_feed[FeedName.REDDIT]] == ["https://ext.example/a"]
    assert by_feed[FeedName.GITHUB][0].author == "o"
    assert by_feed[FeedName.DEVTO][0].author == "d"
    assert result.per_feed_status["devto"].status == "success"


@pytest.mark.asyncio
async def test_defaults_fill_missing_hints(monkeypatch) -> None:
    requested: List[str] = []
    _install_fakes(monkeypatch, requested)

    await feeds.fetch_all_sources(FetchSourcesOptions(), settings=SETTINGS)

    assert any("/r/MachineLearning/" in url for url in requested)
    assert any("/r/artificial/" in url for url in requested)


@pytest.mark.asyncio
async def test_gdelt_quotes_multi_word_keywords(monkeypatch) -> None:
    captured: Dict[str, Any] = {}

    async def fake_text(url: str, *, params=None, headers=None, timeout: float = 12.0) -> str:
        captured.update(params or {})
        return GDELT_PAYLOAD

    monkeypatch.setattr(feeds, "_http_get_text", fake_text)

    await feeds.fetch_gdelt(["artificial intelligence", "llm", "agents", "ignored"], 3, settings=SETTINGS)

    assert captured["query"] == '"artificial intelligence" OR llm OR agents'
    assert captured["maxrecords"] == 3


@pytest.mark.asyncio
async def test_gdelt_html_error_page_raises(monkeypatch) -> None:
    async def fake_text(url: str, *, params=None, headers=None, timeout: float = 12.0) -> str:
        return "<html>rate limited</html>"

    monkeypatch.setattr(feeds, "_http_get_text", fake_text)

    with pytest.raises(FeedError):
        await feeds.fetch_gdelt(["llm"], settings=SETTINGS)


@pytest.mark.asyncio
async def test_arxiv_malformed_xml_raises(monkeypatch) -> None:
    async def fake_text(url: str, *, params=None, headers=None, timeout: float = 12.0) -> str:
        return "<feed><entry>"

    monkeypatch.setattr(feeds, "_http_get_text", fake_text)

    with pytest.raises(FeedError):
        await feeds.fetch_arxiv(["cs.AI"], settings=SETTINGS)


@pytest.mark.asyncio
async def test_reddit_without_subreddits_is_empty() -> None:
    assert await feeds.fetch_reddit([], settings=SETTINGS) == []
