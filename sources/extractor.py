"""Full-text article extraction with trafilatura and a BeautifulSoup fallback."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from functools import partial
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
import trafilatura
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import get_extraction_settings, get_feed_settings
from core import ArticleExtraction, ExtractedArticle, ExtractionResult, SourceArticle

logger = logging.getLogger(__name__)

_ARXIV_ALT = re.compile(r"^https?://arxiv\.org/(pdf|html)/(.+?)(?:\.pdf)?$")
_MIN_TEXT_LENGTH = 80


def transform_url(url: str) -> str:
    """Rewrite URLs that cannot be extracted directly (arXiv PDF/HTML -> abstract page)."""
    match = _ARXIV_ALT.match(url)
    if match:
        transformed = f"https://arxiv.org/abs/{match.group(2)}"
        logger.debug(f"[ArticleExtractor] Transformed arXiv URL: {url} -> {transformed}")
        return transformed
    return url


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
async def _http_get_text(url: str, *, headers: Optional[Dict[str, str]] = None, timeout: float = 15.0) -> str:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        return str(response.text or "")


def _extract_with_trafilatura(html: str, url: str) -> Tuple[str, Optional[str]]:
    try:
        extracted = trafilatura.extract(
            html,
            url=url,
            include_comments=False,
            include_tables=True,
            favor_precision=True,
            output_format="txt",
        )
    except Exception as exc:
        return "", f"trafilatura_error:{exc}"
    text = re.sub(r"\s+", " ", str(extracted or "")).strip()
    if len(text) >= _MIN_TEXT_LENGTH:
        return text, None
    return "", "trafilatura_empty"


def _extract_with_soup(soup: BeautifulSoup) -> Tuple[str, Optional[str]]:
    article = soup.find("article")
    node = article if article else soup
    paragraphs = [tag.get_text(" ", strip=True) for tag in node.find_all(["p", "li"]) if tag.get_text(" ", strip=True)]
    text = re.sub(r"\s+", " ", " ".join(paragraphs)).strip()
    if len(text) >= _MIN_TEXT_LENGTH:
        return text, None
    return "", "fallback_short_body"


def _page_title(soup: BeautifulSoup) -> Optional[str]:
    if soup.title and soup.title.string:
        title = soup.title.string.strip()
        return title or None
    return None


def extract_content(html: str, *, url: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Return (text, title, error) for an HTML document."""
    soup = BeautifulSoup(html, "lxml")
    title = _page_title(soup)

    text, trafilatura_error = _extract_with_trafilatura(html, url)
    if text:
        return text, title, None

    text, fallback_error = _extract_with_soup(soup)
    if text:
        return text, title, None

    errors = [item for item in (trafilatura_error, fallback_error) if item]
    return "", title, " | ".join(errors) or "No content extracted"


async def extract_article(url: str, *, timeout: Optional[float] = None) -> ArticleExtraction:
    """Fetch and extract one URL. Failures are reported, never raised."""
    started = time.perf_counter()
    target = transform_url(url)
    timeout = timeout or get_extraction_settings().request_timeout

    try:
        html = await _http_get_text(
            target,
            headers={"User-Agent": get_feed_settings().user_agent},
            timeout=timeout,
        )
        loop = asyncio.get_running_loop()
        text, title, error = await loop.run_in_executor(None, partial(extract_content, html, url=target))
    except (httpx.HTTPError, ValueError) as exc:
        return ArticleExtraction(
            success=False,
            error=str(exc) or type(exc).__name__,
            time_ms=int((time.perf_counter() - started) * 1000),
        )

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    if not text:
        return ArticleExtraction(title=title, success=False, error=error, time_ms=elapsed_ms)
    return ArticleExtraction(content=text, title=title, success=True, time_ms=elapsed_ms)


async def extract_multiple_articles(
    articles: Sequence[SourceArticle],
    *,
    max_articles: Optional[int] = None,
    max_content_length: Optional[int] = None,
    delay_ms: Optional[int] = None,
) -> ExtractionResult:
    """Extract sequentially with a courtesy delay between requests."""
    settings = get_extraction_settings()
    max_articles = settings.max_articles if max_articles is None else max_articles
    max_content_length = settings.max_content_length if max_content_length is None else max_content_length
    delay_ms = settings.delay_ms if delay_ms is None else delay_ms

    started = time.perf_counter()
    extracted: List[ExtractedArticle] = []

    for index, article in enumerate(list(articles)[:max_articles]):
        if index and delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

        result = await extract_article(article.url)
        base: Dict[str, Any] = article.model_dump(
            exclude={"content", "content_length", "extraction_success", "extraction_error", "extraction_time_ms"}
        )
        if result.success and result.content:
            base["title"] = result.title or article.title
            extracted.append(
                ExtractedArticle(
                    **base,
                    content=result.content[:max_content_length],
                    content_length=len(result.content),
                    extraction_success=True,
                    extraction_time_ms=result.time_ms,
                )
            )
        else:
            extracted.append(
                ExtractedArticle(
                    **base,
                    extraction_success=False,
                    extraction_error=result.error,
                    extraction_time_ms=result.time_ms,
                )
            )

    success_count = sum(1 for item in extracted if item.extraction_success)
    total_ms = int((time.perf_counter() - started) * 1000)
    logger.info(f"[ArticleExtractor] Extracted {success_count}/{len(extracted)} articles in {total_ms}ms")

    return ExtractionResult(
        extracted=extracted,
        success_count=success_count,
        failed_count=len(extracted) - success_count,
        total_extraction_time_ms=total_ms,
    )
