"""LinkedIn discovery: the organizer's company page and its people.

# ─── THE EMPLOYMENT GATE (Junior Developer Guide) ─────────────────────
#
# Search results for "site:linkedin.com/in Acme Events" happily return
# people who merely *mention* Acme Events (a supplier, a visitor, someone
# who once played there).  A profile is only accepted when its text links
# the person to the company with an explicit employment phrase:
#
#     "Works at Acme Events BV"          -> accepted (explicit_employment)
#     "Founder of Acme Events"           -> accepted
#     "Festival Director at Acme Events" -> accepted
#     "Acme Events ... festival ... Jan, Director"  -> REJECTED
#                                          (company_mention only)
#
# Rejections raise VerificationRejected inside the extractor, are logged
# with the profile URL, the companies tested and the match type, and are
# counted in ``rejected_count``.  They are not warnings or errors.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from src.interfaces.search_gateway import ISearchGateway
from src.models.evidence import Evidence, SearchPurpose
from src.models.report import (
    DiscoveryChannel,
    EmploymentMatchType,
    EmploymentVerification,
    LinkedInCompanyPage,
    LinkedInDiscovery,
    LinkedInProfile,
    RoleBucket,
)
from src.services.phase_support import PhaseResult, run_phase_queries
from src.services.query_builders import linkedin_queries
from src.utils.errors import VerificationRejected
from src.utils.logging import get_logger
from src.utils.text_normalizer import company_similarity, normalize_url

_logger: structlog.BoundLogger = get_logger(__name__)

_LEGAL_SUFFIX = r"(?:B\.?[ ]?V\.?|N\.?[ ]?V\.?|V\.?O\.?F\.?|GmbH|Ltd\.?|LLC|Inc\.?)"
_TRAILING_SUFFIX = re.compile(rf"[ \t]+{_LEGAL_SUFFIX}$", re.IGNORECASE)

# (phrase template, weight, label).  ``{c}`` is replaced by the company regex.
EMPLOYMENT_PATTERNS: list[tuple[str, float, str]] = [
    (r"\b(?:works?|working)\s+(?:at|for)\s+(?:the\s+)?{c}", 1.0, "works at"),
    (r"\bemployed\s+(?:at|by)\s+{c}", 1.0, "employed by"),
    (r"\bemployee\s+(?:at|of)\s+{c}", 1.0, "employee at"),
    (r"{c}\s+employee\b", 1.0, "company employee"),
    (r"\b(?:werkt|werkzaam)\s+bij\s+{c}", 1.0, "werkzaam bij"),
    (
        r"\b(?:ceo|co-founder|founder|owner|managing\s+director|director|directeur|"
        r"eigenaar|oprichter|bestuurder)\s+(?:at|of|bij|van)\s+{c}",
        0.95,
        "leadership role at",
    ),
    (
        r"\b(?:manager|head\s+of\s+[\w&/ -]{{1,40}}?|lead|coordinator|producer|programmer|"
        r"hoofd\s+[\w&/ -]{{1,30}}?)\s+(?:at|of|bij|van)\s+{c}",
        0.9,
        "role at",
    ),
]

# LinkedIn result titles: "Name - Job Title - Company | LinkedIn"
_HEADLINE_TEMPLATE = r"^[^\n|]+?\s[-–]\s[^\n|]+?\s[-–]\s{c}\s*(?:\||$)"
_HEADLINE_WEIGHT = 0.85

_TITLE_SEPARATOR = re.compile(r"\s+[-–|]\s+")
_LINKEDIN_SUFFIX = re.compile(r"\s*[|·-]\s*LinkedIn\s*$", re.IGNORECASE)
_COMPANY_PAGE_NOISE = re.compile(r"\s*(?::\s*Overview|\|\s*Overview)\s*$", re.IGNORECASE)

_DECISION_MAKER = re.compile(
    r"\b(ceo|founder|co-founder|mede-oprichter|owner|eigenaar|directeur|director|"
    r"managing director|general manager|oprichter|bestuurder)\b",
    re.IGNORECASE,
)
_MANAGER = re.compile(
    r"\b(manager|head|lead|hoofd|coordinator|producer|programmer|chef)\b", re.IGNORECASE
)
_TEAM_MEMBER = re.compile(
    r"\b(festival|event|booking|marketing|production|operations|artist relations|pr|"
    r"communications)\b",
    re.IGNORECASE,
)

_ROLE_ORDER = {
    RoleBucket.DECISION_MAKER: 0,
    RoleBucket.MANAGER: 1,
    RoleBucket.TEAM_MEMBER: 2,
    RoleBucket.UNKNOWN: 3,
}

# Company pages whose name is less similar than this are not reported.
_PAGE_MATCH_THRESHOLD = 0.85


def _company_regex(company_name: str) -> str:
    """Regex for *company_name* that tolerates legal-suffix spelling."""
    core = _TRAILING_SUFFIX.sub("", company_name.strip())
    words = [re.escape(word) for word in core.split()]
    return r"\s+".join(words) + rf"(?:\s+{_LEGAL_SUFFIX})?(?![\w])"


def verify_employment(title: str, text: str, company_name: str) -> EmploymentVerification:
    """Check whether *text* states employment at *company_name*.

    Parameters
    ----------
    title:
        The search result title (LinkedIn headline).
    text:
        Remaining profile text (snippet, highlights, summary).
    company_name:
        The exact company to verify against.

    Returns
    -------
    EmploymentVerification
        ``is_verified`` is ``True`` only for an explicit employment phrase
        tied to the company.  A bare mention yields ``company_mention``.
    """
    company = _company_regex(company_name)
    combined = f"{title}\n{text}"

    if not re.search(company, combined, re.IGNORECASE):
        return EmploymentVerification(
            is_verified=False,
            confidence=0.0,
            match_type=EmploymentMatchType.UNVERIFIED,
            evidence=[f"Company name '{company_name}' not found in profile"],
        )

    best_weight = 0.0
    matched: list[str] = []
    for template, weight, label in EMPLOYMENT_PATTERNS:
        match = re.search(template.format(c=company), combined, re.IGNORECASE)
        if match:
            matched.append(f"{label}: '{match.group(0)}'")
            best_weight = max(best_weight, weight)

    headline = re.search(_HEADLINE_TEMPLATE.format(c=company), title, re.IGNORECASE)
    if headline:
        matched.append(f"headline: '{headline.group(0).strip()}'")
        best_weight = max(best_weight, _HEADLINE_WEIGHT)

    if not matched:
        return EmploymentVerification(
            is_verified=False,
            confidence=0.4,
            match_type=EmploymentMatchType.COMPANY_MENTION,
            matched_company=company_name,
            evidence=["Company mentioned but no explicit employment phrase"],
        )

    return EmploymentVerification(
        is_verified=True,
        confidence=best_weight,
        match_type=EmploymentMatchType.EXPLICIT_EMPLOYMENT,
        matched_company=company_name,
        evidence=matched,
    )


def classify_role(job_title: str | None) -> RoleBucket:
    """Map a job title onto a role bucket (decision-maker > manager > team).

    Only the title is matched, never the profile text.
    """
    if not job_title:
        return RoleBucket.UNKNOWN
    if _DECISION_MAKER.search(job_title):
        return RoleBucket.DECISION_MAKER
    if _MANAGER.search(job_title):
        return RoleBucket.MANAGER
    if _TEAM_MEMBER.search(job_title):
        return RoleBucket.TEAM_MEMBER
    return RoleBucket.UNKNOWN


def parse_profile_title(title: str, url: str = "") -> tuple[str, str | None, str | None]:
    """Split ``"Name - Title - Company | LinkedIn"`` into its parts.

    Falls back to the ``/in/<slug>`` of *url* for the name.
    """
    cleaned = _LINKEDIN_SUFFIX.sub("", title.strip())
    parts = [p.strip() for p in _TITLE_SEPARATOR.split(cleaned) if p.strip()]
    name = parts[0] if parts else ""
    job_title = parts[1] if len(parts) > 1 else None
    company = parts[2] if len(parts) > 2 else None

    if not name:
        slug = re.search(r"linkedin\.com/in/([A-Za-z0-9-]+)", url)
        if slug:
            words = [w for w in slug.group(1).split("-") if w.isalpha()]
            name = " ".join(w.capitalize() for w in words)
    return name, job_title, company


def parse_company_page(evidence: Evidence) -> str:
    name = _LINKEDIN_SUFFIX.sub("", evidence.title.strip())
    return _COMPANY_PAGE_NOISE.sub("", name).strip()


def _best_company_page(
    evidence: Iterable[Evidence],
    targets: list[str],
) -> LinkedInCompanyPage | None:
    best: LinkedInCompanyPage | None = None
    for item in evidence:
        if "linkedin.com/company/" not in item.url:
            continue
        name = parse_company_page(item)
        if not name:
            continue
        similarity = max((company_similarity(name, t) for t in targets), default=0.0)
        if similarity < _PAGE_MATCH_THRESHOLD:
            continue
        page = LinkedInCompanyPage(
            url=item.url,
            name=name,
            description=item.summary or (item.raw_text[:300] or None),
            verified=True,
            confidence=round(similarity * (0.6 + 0.4 * item.quality_score), 4),
            evidence=item,
        )
        if best is None or page.confidence > best.confidence:
            best = page
    return best


def _gate_profile(
    item: Evidence,
    targets: list[str],
) -> tuple[EmploymentVerification, str, str | None, str | None]:
    """Return the best verification for *item* or raise VerificationRejected."""
    name, job_title, headline_company = parse_profile_title(item.title, item.url)
    body = "\n".join(p for p in (item.raw_text, *item.highlights, item.summary or "") if p)

    best: EmploymentVerification | None = None
    for company in targets:
        verification = verify_employment(item.title, body, company)
        if best is None or (verification.is_verified, verification.confidence) > (
            best.is_verified,
            best.confidence,
        ):
            best = verification

    if best is None or not best.is_verified or not name:
        match_type = best.match_type.value if best else EmploymentMatchType.UNVERIFIED.value
        raise VerificationRejected(
            message=f"No explicit employment phrase for {item.url}",
            candidate_url=item.url,
            reason=match_type if name else "unparseable_profile",
        )
    return best, name, job_title, headline_company


def extract_linkedin(
    evidence: Iterable[Evidence],
    festival_name: str,
    company_names: list[str],
    max_people: int = 15,
) -> LinkedInDiscovery:
    """Build the LinkedIn section from LinkedIn-phase evidence.

    People are tested against every company candidate and, as a last
    resort, the festival name.  Only profiles passing the employment gate
    are returned.
    """
    items = list(evidence)
    targets = [*company_names, festival_name]

    accepted: dict[str, LinkedInProfile] = {}
    rejected = 0
    for item in items:
        if "linkedin.com/in/" not in item.url:
            continue
        try:
            verification, name, job_title, headline_company = _gate_profile(item, targets)
        except VerificationRejected as exc:
            rejected += 1
            _logger.info(
                "linkedin_profile_rejected",
                url=exc.candidate_url,
                companies_tested=targets,
                match_type=exc.reason,
            )
            continue

        channel = (
            DiscoveryChannel.FESTIVAL_SEARCH
            if item.search_purpose == SearchPurpose.LINKEDIN_FESTIVAL
            else DiscoveryChannel.COMPANY_EMPLOYEE_SEARCH
        )
        profile = LinkedInProfile(
            name=name,
            title=job_title,
            url=item.url,
            company=verification.matched_company or headline_company,
            role=classify_role(job_title),
            employment_verified=True,
            verification=verification,
            discovered_via=channel,
            confidence=round(verification.confidence * (0.6 + 0.4 * item.quality_score), 4),
            evidence=item,
        )
        key = normalize_url(item.url)
        existing = accepted.get(key)
        if existing is None or profile.confidence > existing.confidence:
            accepted[key] = profile

    people = sorted(
        accepted.values(),
        key=lambda p: (
            not p.employment_verified, _ROLE_ORDER[p.role], -p.confidence, p.name.lower()
        ),
    )[:max_people]

    company_page = _best_company_page(items, targets)

    role_counts = {bucket.value: 0 for bucket in RoleBucket}
    for person in people:
        role_counts[person.role.value] += 1

    if people or company_page:
        confidence = min(
            0.95,
            0.2
            + 0.15 * len(people)
            + 0.1 * role_counts[RoleBucket.DECISION_MAKER.value]
            + (0.15 if company_page and company_page.verified else 0.0),
        )
    else:
        confidence = 0.0

    return LinkedInDiscovery(
        people=people,
        company_page=company_page,
        searched_with=company_names[0] if company_names else festival_name,
        confidence=round(confidence, 4),
        role_counts=role_counts,
        rejected_count=rejected,
    )


class LinkedInDiscoveryService:
    """Runs the LinkedIn queries and applies the employment gate."""

    def __init__(self, gateway: ISearchGateway, max_people: int = 15) -> None:
        self._gateway = gateway
        self._max_people = max_people
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def discover(
        self,
        festival_name: str,
        company_names: list[str],
    ) -> PhaseResult[LinkedInDiscovery]:
        """Find the company page and verified employees.

        Raises
        ------
        src.utils.errors.GatewayError, src.utils.errors.GatewayTimeout
            Only when every LinkedIn query failed.
        """
        batch = await run_phase_queries(
            self._gateway,
            linkedin_queries(festival_name, company_names),
            self._logger,
            "linkedin_query_failed",
        )
        if batch.all_failed:
            raise batch.first_error()

        evidence = [item for _, response in batch.responses for item in response.results]
        section = extract_linkedin(evidence, festival_name, company_names, self._max_people)

        warnings = batch.failure_warnings("linkedin")
        if not section.people and not section.company_page:
            warnings.append("linkedin: no verified people or company page found")

        self._logger.info(
            "linkedin_discovery_complete",
            festival=festival_name,
            people=len(section.people),
            rejected=section.rejected_count,
            company_page=section.company_page.url if section.company_page else None,
            confidence=section.confidence,
        )
        return PhaseResult(
            section=section,
            confidence=section.confidence,
            warnings=warnings,
            summary={"count": len(section.people), "confidence": section.confidence},
        )
