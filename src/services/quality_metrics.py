"""Research quality scoring.

Turns a :class:`ResearchReport` into 0-100 sub-scores, a weighted overall
score, a level and up to three improvement suggestions for the dashboard.

    overall = 0.25 * company + 0.35 * linkedin + 0.25 * completeness + 0.15 * news
"""

from __future__ import annotations

from datetime import date, timedelta

from src.models.report import QualityScore, ResearchReport, RoleBucket

QUALITY_WEIGHTS = {
    "company": 0.25,
    "linkedin": 0.35,
    "completeness": 0.25,
    "news": 0.15,
}

_MAX_SUGGESTIONS = 3
_RECENT_DAYS = 365


def quality_level(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "poor"


def _recent_article_count(report: ResearchReport, today: date) -> int:
    if report.news is None:
        return 0
    cutoff = today - timedelta(days=_RECENT_DAYS)
    recent = 0
    for article in report.news.articles:
        if not article.date:
            continue
        try:
            published = date.fromisoformat(article.date[:10])
        except ValueError:
            continue
        if published >= cutoff:
            recent += 1
    return recent


def calculate_quality(report: ResearchReport, today: date | None = None) -> QualityScore:
    """Score the completeness and strength of *report*."""
    today = today or date.today()

    company = report.company_discovery
    company_found = bool(company and company.company_name)
    company_score = round(
        (40 if company_found else 0)
        + (company.confidence * 40 if company else 0)
        + (20 if company and company.kvk_number else 0)
    )

    linkedin = report.linkedin
    people = linkedin.people if linkedin else []
    verified = sum(1 for p in people if p.employment_verified)
    decision_makers = sum(1 for p in people if p.role == RoleBucket.DECISION_MAKER)
    has_company_page = bool(linkedin and linkedin.company_page)
    linkedin_score = min(
        100,
        round(
            (20 if has_company_page else 0)
            + (30 if verified else 0)
            + (25 if decision_makers else 0)
            + min(len(people), 10) * 2.5
        ),
    )

    article_count = len(report.news.articles) if report.news else 0
    calendar = report.calendar_verification
    calendar_found = len(calendar.found_on) if calendar else 0
    has_homepage = bool(report.website_info and report.website_info.homepage_url)
    completeness_items = [
        has_homepage,
        company_found,
        has_company_page,
        verified > 0,
        article_count > 0,
        calendar_found > 0,
    ]
    completeness_score = round(sum(completeness_items) / len(completeness_items) * 100)

    recent = _recent_article_count(report, today)
    news_points = min(article_count, 5) * 10 + (30 if recent else 0)
    news_score = min(100, round(news_points + (20 if article_count > 3 else 0)))

    overall = round(
        company_score * QUALITY_WEIGHTS["company"]
        + linkedin_score * QUALITY_WEIGHTS["linkedin"]
        + completeness_score * QUALITY_WEIGHTS["completeness"]
        + news_score * QUALITY_WEIGHTS["news"]
    )

    suggestions: list[str] = []
    if not company_found:
        suggestions.append(
            "Look up the organizing entity via its privacy policy or the KvK register"
        )
    elif company_score < 60:
        suggestions.append("Confirm the company name against official sources")
    if not has_company_page:
        suggestions.append("Find the company's LinkedIn page for more contacts")
    if not verified:
        suggestions.append("Search for people who explicitly work at the company")
    if not decision_makers:
        suggestions.append("Search for directors, owners or founders")
    if not article_count:
        suggestions.append("Search local news for attendance and ticket figures")
    if not calendar_found:
        suggestions.append("Check whether the festival is listed on festival calendars")

    return QualityScore(
        overall=overall,
        company_discovery=company_score,
        linkedin_connections=linkedin_score,
        data_completeness=completeness_score,
        news_quality=news_score,
        level=quality_level(overall),
        suggestions=suggestions[:_MAX_SUGGESTIONS],
    )
