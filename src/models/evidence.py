"""Evidence models: one consulted source and the scores derived from it.

Every gateway search result becomes an :class:`Evidence` record, scored once
by :func:`src.services.evidence_scorer.score_authenticity` and never mutated
afterwards.  Claims (company candidates, LinkedIn profiles, ...) reference
Evidence to justify their confidence.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SearchPurpose(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Which phase query produced a piece of evidence."""

    EXISTENCE = "existence"
    OFFICIAL_SITE = "official_site"
    PRIVACY_POLICY = "privacy_policy"
    LEGAL_REGISTRATION = "legal_registration"
    LINKEDIN_COMPANY = "linkedin_company"
    LINKEDIN_EMPLOYEES = "linkedin_employees"
    LINKEDIN_FESTIVAL = "linkedin_festival"
    NEWS = "news"
    CALENDAR = "calendar"


class SourceCategory(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Buckets used by cross-reference verification."""

    OFFICIAL = "official"
    SOCIAL = "social"
    NEWS = "news"
    AGGREGATOR = "aggregator"
    OTHER = "other"


class Evidence(BaseModel):
    """One external source consulted during research."""

    model_config = ConfigDict(frozen=True)

    url: str
    # Page text or snippet returned by the gateway (may be empty).
    raw_text: str = ""
    title: str = ""
    # Highlight sentences selected by the search API, when requested.
    highlights: list[str] = Field(default_factory=list)
    # Search-API generated summary, when requested.
    summary: str | None = None
    published_date: str | None = None
    search_purpose: SearchPurpose
    # The query string that produced this result (audit trail).
    query: str = ""
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    quality_reasons: list[str] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Title, body, highlights and summary joined for pattern matching."""
        parts = [self.title, self.raw_text, *self.highlights]
        if self.summary:
            parts.append(self.summary)
        return "\n".join(p for p in parts if p)


class AuthenticityScore(BaseModel):
    """Result of scoring a single (url, text) pair."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0.0, le=1.0)
    # Every rule that fired, in evaluation order.
    reasons: list[str] = Field(default_factory=list)
    domain: str = ""


class SourceBreakdown(BaseModel):
    """Evidence counts per source category for one claim."""

    model_config = ConfigDict(frozen=True)

    official: int = 0
    social: int = 0
    news: int = 0
    aggregators: int = 0
    other: int = 0


class CrossReferenceResult(BaseModel):
    """Confidence that a claim is real, judged from the mix of its sources."""

    model_config = ConfigDict(frozen=True)

    claim_subject: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)
    breakdown: SourceBreakdown = Field(default_factory=SourceBreakdown)
    # True when the aggregator-only suppression rule was applied.
    aggregator_suppressed: bool = False
