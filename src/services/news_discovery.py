"""News discovery: press coverage of the festival and its organizer."""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from src.interfaces.search_gateway import ISearchGateway
from src.models.evidence import Evidence
from src.models.report import NewsArticle, NewsCategory, NewsDiscovery
from src.services.phase_support import PhaseResult
from src.services.query_builders import news_query
from src.utils.logging import get_logger
from src.utils.text_normalizer import extract_date, extract_domain, normalize_url, shorten

_EXCLUDED_HOSTS = re.compile(r"(^|\.)(linkedin|facebook|instagram|twitter|x|tiktok)\.com$")

_ANNOUNCEMENT = re.compile(
    r"announce|line-?up|tickets?\b|programma|bekend|maakt bekend|onthult", re.IGNORECASE
)
_REVIEW = re.compile(r"review|recensie|verslag|terugblik|ervaring", re.IGNORECASE)


def categorize_article(title: str, summary: str = "") -> NewsCategory:
    """Announcement, review or general, judged from title then summary."""
    for text in (title, summary):
        if _REVIEW.search(text):
            return NewsCategory.REVIEW
        if _ANNOUNCEMENT.search(text):
            return NewsCategory.ANNOUNCEMENT
    return NewsCategory.GENERAL


def _to_article(item: Evidence) -> NewsArticle:
    summary = item.summary or (item.highlights[0] if item.highlights else "") or item.raw_text
    title = item.title or shorten(item.raw_text, 80) or item.url
    return NewsArticle(
        title=title,
        url=item.url,
        source=extract_domain(item.url),
        date=item.published_date or extract_date(item.text),
        summary=shorten(summary, 200),
        category=categorize_article(title, summary),
        quality_score=item.quality_score,
    )


def extract_news(evidence: Iterable[Evidence], max_articles: int = 10) -> list[NewsArticle]:
    """Turn news evidence into articles, deduplicated by URL, social hosts skipped."""
    seen: set[str] = set()
    articles: list[NewsArticle] = []
    for item in evidence:
        if _EXCLUDED_HOSTS.search(extract_domain(item.url)):
            continue
        key = normalize_url(item.url)
        if key in seen:
            continue
        seen.add(key)
        articles.append(_to_article(item))
        if len(articles) >= max_articles:
            break
    return articles


def news_confidence(article_count: int) -> float:
    if not article_count:
        return 0.0
    return round(min(0.9, 0.3 + 0.12 * article_count), 4)


class NewsDiscoveryService:
    """Runs the news query and extracts articles."""

    def __init__(self, gateway: ISearchGateway, max_articles: int = 10) -> None:
        self._gateway = gateway
        self._max_articles = max_articles
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def discover(
        self,
        festival_name: str,
        company_name: str | None = None,
    ) -> PhaseResult[NewsDiscovery]:
        query = news_query(festival_name, company_name)
        # A single query: gateway errors propagate as the phase error.
        response = await self._gateway.search(query.query, query.purpose, query.options)

        articles = extract_news(response.results, self._max_articles)
        section = NewsDiscovery(
            articles=articles,
            confidence=news_confidence(len(articles)),
            query=query.query,
        )
        warnings = [] if articles else ["news: no articles found"]
        self._logger.info(
            "news_discovery_complete",
            festival=festival_name,
            articles=len(articles),
            categories=section.count_by_category(),
        )
        return PhaseResult(
            section=section,
            confidence=section.confidence,
            warnings=warnings,
            summary={"count": len(articles), "confidence": section.confidence},
        )
