"""Pure query builders for every research phase.

Each builder returns :class:`PhaseQuery` values (query text, purpose and
content-shaping options) and performs no I/O, so the exact queries a run
will issue can be asserted in unit tests without a gateway.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.interfaces.search_gateway import SearchOptions
from src.models.evidence import SearchPurpose
from src.utils.text_normalizer import extract_domain


@dataclass(frozen=True)
class PhaseQuery:
    """One gateway call a phase intends to make."""

    query: str
    purpose: SearchPurpose
    options: SearchOptions = field(default_factory=SearchOptions)
    # Company the query targets (LinkedIn employee searches only).
    target_company: str | None = None


def _quoted(value: str) -> str:
    """Wrap *value* in double quotes, dropping any quotes it contains."""
    return '"' + " ".join(value.replace('"', " ").split()) + '"'


# ---------------------------------------------------------------------------
# Website discovery
# ---------------------------------------------------------------------------

def existence_query(festival_name: str) -> PhaseQuery:
    return PhaseQuery(
        query=f"{_quoted(festival_name)} festival official website",
        purpose=SearchPurpose.EXISTENCE,
        options=SearchOptions(
            num_results=8,
            summary_query=f"Is {festival_name} a real festival and what is its official website?",
        ),
    )


# ---------------------------------------------------------------------------
# Company discovery
# ---------------------------------------------------------------------------

def company_queries(festival_name: str, homepage_url: str | None = None) -> list[PhaseQuery]:
    """The three company-identification queries.

    When the homepage is known, the official-site query is restricted to
    that host so contact / about / privacy pages surface first.
    """
    name = _quoted(festival_name)
    summary = f"Company name, legal entity, and organization details for {festival_name}"
    highlight = "company name, organization, legal entity, parent company, registered"

    host = extract_domain(homepage_url) if homepage_url else ""
    if host:
        official = f"site:{host} contact OR privacy OR about OR colofon OR impressum"
    else:
        official = f"{name} official website contact information email organizer company entity"

    return [
        PhaseQuery(
            query=official,
            purpose=SearchPurpose.OFFICIAL_SITE,
            options=SearchOptions(
                num_results=8,
                summary_query=summary,
                highlight_query=highlight,
                category=None if host else "company",
            ),
        ),
        PhaseQuery(
            query=(
                f'{name} ("privacy policy" OR "privacybeleid" OR "privacyverklaring" OR '
                '"datenschutzerklärung" OR "politique de confidentialité") '
                "company organization legal"
            ),
            purpose=SearchPurpose.PRIVACY_POLICY,
            options=SearchOptions(num_results=8, summary_query=summary, highlight_query=highlight),
        ),
        PhaseQuery(
            query=(
                f'{name} ("registered company" OR "company registration" OR "legal entity" OR '
                f'"KvK" OR "chamber of commerce" OR "handelsregister")'
            ),
            purpose=SearchPurpose.LEGAL_REGISTRATION,
            options=SearchOptions(num_results=8, summary_query=summary, highlight_query=highlight),
        ),
    ]


# ---------------------------------------------------------------------------
# LinkedIn discovery
# ---------------------------------------------------------------------------

def linkedin_queries(festival_name: str, company_names: list[str]) -> list[PhaseQuery]:
    """Company-page and employee queries.

    With company candidates: one company-page query per candidate plus the
    festival, and three employee queries per candidate.  Without any, the
    festival name is used for the company page and a festival-staff search.
    """
    festival = _quoted(festival_name)
    page_options = SearchOptions(num_results=3, summary_query="LinkedIn company page")
    people_highlight = "works at, employed by, role, title, company"

    queries: list[PhaseQuery] = [
        PhaseQuery(
            query=f"site:linkedin.com/company {_quoted(company)}",
            purpose=SearchPurpose.LINKEDIN_COMPANY,
            options=page_options,
            target_company=company,
        )
        for company in company_names
    ]
    queries.append(
        PhaseQuery(
            query=f"site:linkedin.com/company {festival}",
            purpose=SearchPurpose.LINKEDIN_COMPANY,
            options=page_options,
        )
    )

    for company in company_names:
        people_options = SearchOptions(
            num_results=5,
            highlight_query=people_highlight,
            category="linkedin profile",
        )
        queries.extend(
            [
                PhaseQuery(
                    query=f'site:linkedin.com/in "works at {company}"',
                    purpose=SearchPurpose.LINKEDIN_EMPLOYEES,
                    options=people_options,
                    target_company=company,
                ),
                PhaseQuery(
                    query=(
                        f'site:linkedin.com/in "at {company}" '
                        "(director OR CEO OR founder OR eigenaar OR directeur)"
                    ),
                    purpose=SearchPurpose.LINKEDIN_EMPLOYEES,
                    options=people_options,
                    target_company=company,
                ),
                PhaseQuery(
                    query=(
                        f"site:linkedin.com/in {_quoted(company)} (festival OR event) "
                        "(manager OR producer OR coordinator)"
                    ),
                    purpose=SearchPurpose.LINKEDIN_EMPLOYEES,
                    options=people_options,
                    target_company=company,
                ),
            ]
        )

    if not company_names:
        queries.append(
            PhaseQuery(
                query=(
                    f"site:linkedin.com/in {festival} "
                    "(organizer OR director OR founder OR producer)"
                ),
                purpose=SearchPurpose.LINKEDIN_FESTIVAL,
                options=SearchOptions(
                    num_results=8,
                    highlight_query=people_highlight,
                    category="linkedin profile",
                ),
            )
        )
    return queries


# ---------------------------------------------------------------------------
# News discovery
# ---------------------------------------------------------------------------

def news_query(festival_name: str, company_name: str | None = None) -> PhaseQuery:
    festival = _quoted(festival_name)
    subject = f"({festival} OR {_quoted(company_name)})" if company_name else festival
    return PhaseQuery(
        query=(
            f'{subject} festival attendance OR capacity OR "tickets sold" '
            "OR revenue news OR press"
        ),
        purpose=SearchPurpose.NEWS,
        options=SearchOptions(
            num_results=10,
            summary_query=f"News about {festival_name}: attendance, tickets, line-up, organisation",
            highlight_query="attendance, visitors, tickets sold, capacity, organizer",
            category="news",
        ),
    )


# ---------------------------------------------------------------------------
# Calendar verification
# ---------------------------------------------------------------------------

def calendar_query(festival_name: str, hostname: str) -> PhaseQuery:
    return PhaseQuery(
        query=f"site:{hostname} {_quoted(festival_name)}",
        purpose=SearchPurpose.CALENDAR,
        options=SearchOptions(
            num_results=3,
            highlight_query="festival date, edition, year, location",
        ),
    )
