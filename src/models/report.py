"""Research report models: the persisted, merged output of research runs.

A :class:`ResearchReport` has one optional section per phase.  Each phase
fills its own section independently, so a report may be partially
populated (for example only ``company_discovery`` after a cancelled run).

Merging reports is handled by :func:`src.services.persistence.merge_reports`;
the models here are plain frozen value types.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.evidence import CrossReferenceResult, Evidence


# ---------------------------------------------------------------------------
# Company discovery
# ---------------------------------------------------------------------------
class CompanyCandidate(BaseModel):
    """A candidate organizing company with its supporting evidence."""

    model_config = ConfigDict(frozen=True)

    name: str
    # Normalized dedup key (see text_normalizer.normalize_company_key).
    key: str
    confidence: float = Field(ge=0.0, le=1.0)
    kvk_number: str | None = None
    # Pattern categories that matched, e.g. ["legal_suffix", "copyright"].
    match_categories: list[str] = Field(default_factory=list)
    hit_count: int = 0
    sources: list[Evidence] = Field(min_length=1)

    @property
    def source_count(self) -> int:
        return len({s.url for s in self.sources})


class CompanyDiscovery(BaseModel):
    """Output of the company discovery phase."""

    model_config = ConfigDict(frozen=True)

    # None is a valid result: nothing definitive was found.
    company_name: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    kvk_number: str | None = None
    # Set by the validation pass; False when the claim is below the pass mark.
    validated: bool = False
    candidates: list[CompanyCandidate] = Field(default_factory=list)
    queries_failed: int = 0


# ---------------------------------------------------------------------------
# LinkedIn discovery
# ---------------------------------------------------------------------------
class RoleBucket(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Stakeholder role classes, in precedence order."""

    DECISION_MAKER = "decision_maker"
    MANAGER = "manager"
    TEAM_MEMBER = "team_member"
    UNKNOWN = "unknown"


class EmploymentMatchType(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    EXPLICIT_EMPLOYMENT = "explicit_employment"
    COMPANY_MENTION = "company_mention"
    UNVERIFIED = "unverified"


class DiscoveryChannel(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    COMPANY_EMPLOYEE_SEARCH = "company_employee_search"
    FESTIVAL_SEARCH = "festival_search"


class EmploymentVerification(BaseModel):
    """Outcome of the employment gate for one profile."""

    model_config = ConfigDict(frozen=True)

    is_verified: bool
    confidence: float = Field(ge=0.0, le=1.0)
    match_type: EmploymentMatchType
    matched_company: str | None = None
    # The phrases that matched (or a note explaining why nothing did).
    evidence: list[str] = Field(default_factory=list)


class LinkedInProfile(BaseModel):
    """A person accepted as employed at a candidate company."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str | None = None
    url: str
    company: str | None = None
    role: RoleBucket = RoleBucket.UNKNOWN
    employment_verified: bool
    verification: EmploymentVerification
    discovered_via: DiscoveryChannel
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: Evidence


class LinkedInCompanyPage(BaseModel):
    """The best-matching LinkedIn company page."""

    model_config = ConfigDict(frozen=True)

    url: str
    name: str
    description: str | None = None
    # True when the page name matches a company candidate or the festival.
    verified: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    evidence: Evidence


class LinkedInDiscovery(BaseModel):
    """Output of the LinkedIn discovery phase."""

    model_config = ConfigDict(frozen=True)

    people: list[LinkedInProfile] = Field(default_factory=list)
    company_page: LinkedInCompanyPage | None = None
    searched_with: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    role_counts: dict[str, int] = Field(default_factory=dict)
    # Profiles excluded by the employment gate.
    rejected_count: int = 0


# ---------------------------------------------------------------------------
# News discovery
# ---------------------------------------------------------------------------
class NewsCategory(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    ANNOUNCEMENT = "announcement"
    REVIEW = "review"
    GENERAL = "general"


class NewsArticle(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    source: str
    date: str | None = None
    summary: str = ""
    category: NewsCategory = NewsCategory.GENERAL
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)


class NewsDiscovery(BaseModel):
    """Output of the news discovery phase."""

    model_config = ConfigDict(frozen=True)

    articles: list[NewsArticle] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    query: str = ""

    def count_by_category(self) -> dict[str, int]:
        counts = {category.value: 0 for category in NewsCategory}
        for article in self.articles:
            counts[article.category.value] += 1
        return counts


# ---------------------------------------------------------------------------
# Calendar verification
# ---------------------------------------------------------------------------
class CalendarListing(BaseModel):
    """Presence check result for one calendar site."""

    model_config = ConfigDict(frozen=True)

    source_name: str
    hostname: str
    found: bool = False
    url: str | None = None
    title: str | None = None
    edition_year: int | None = None
    is_current: bool = False
    event_date: str | None = None
    # Set when the gateway call for this source failed.
    error: str | None = None


class CalendarVerification(BaseModel):
    """Output of the calendar verification phase."""

    model_config = ConfigDict(frozen=True)

    listings: list[CalendarListing] = Field(default_factory=list)
    total_sources: int = 0
    found_on: list[str] = Field(default_factory=list)
    not_found_on: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    current_listings: int = 0
    # True when at least one found listing is for the current/upcoming edition.
    is_active: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Website / existence
# ---------------------------------------------------------------------------
class WebsiteInfo(BaseModel):
    """Homepage and festival-existence check from the first research step."""

    model_config = ConfigDict(frozen=True)

    homepage_url: str | None = None
    # "provided" (caller supplied festivalUrl) or "search".
    homepage_source: str | None = None
    existence: CrossReferenceResult | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Report-level metadata
# ---------------------------------------------------------------------------
class ReportConfidence(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall: float = Field(ge=0.0, le=1.0)
    level: str


class QualityScore(BaseModel):
    """0-100 research quality scores (see services/quality_metrics.py)."""

    model_config = ConfigDict(frozen=True)

    overall: int = Field(ge=0, le=100)
    company_discovery: int = Field(ge=0, le=100)
    linkedin_connections: int = Field(ge=0, le=100)
    data_completeness: int = Field(ge=0, le=100)
    news_quality: int = Field(ge=0, le=100)
    level: str
    suggestions: list[str] = Field(default_factory=list)


class RunMeta(BaseModel):
    """Bookkeeping about the run that last wrote the report."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    phase: str
    started_at: datetime
    completed_at: datetime | None = None
    warnings: int = 0
    errors: int = 0
    error_log: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# ResearchReport - the persisted blob
# ---------------------------------------------------------------------------
class ResearchReport(BaseModel):
    """Merged research output for one festival.

    Every section is optional.  ``merge_reports`` overwrites a stored
    section only when the incoming report carries that section.

    Top-level keys serialize in camelCase (``companyDiscovery``,
    ``calendarVerification``); both spellings are accepted on input.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    company_discovery: CompanyDiscovery | None = None
    linkedin: LinkedInDiscovery | None = None
    news: NewsDiscovery | None = None
    calendar_verification: CalendarVerification | None = None
    website_info: WebsiteInfo | None = None
    confidence: ReportConfidence | None = None
    quality: QualityScore | None = None
    meta: RunMeta | None = None

    def present_sections(self) -> list[str]:
        """Names of the top-level fields that are populated."""
        return [name for name in type(self).model_fields if getattr(self, name) is not None]

    def is_empty(self) -> bool:
        return not self.present_sections()
