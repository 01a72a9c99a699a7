"""Company discovery: which legal entity organizes the festival.

Three queries (official site, privacy/legal-entity pages, business
registration) run in parallel.  Their evidence is scanned with the pattern
table below; every hit adds independent support to a candidate, weighted by
the pattern, the query purpose and the evidence quality.  Candidates are
deduplicated by normalized name and the top three are kept.

An empty candidate list is a normal outcome (``company_name=None``).  Only a
failure of every query is a phase error.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from src.interfaces.search_gateway import ISearchGateway
from src.models.evidence import Evidence, SearchPurpose
from src.models.report import CompanyCandidate, CompanyDiscovery
from src.services.evidence_scorer import claim_confidence, hit_support
from src.services.phase_support import PhaseResult, run_phase_queries
from src.services.query_builders import company_queries
from src.utils.errors import ExtractionAmbiguous
from src.utils.logging import get_logger
from src.utils.text_normalizer import normalize_company_key

# ---------------------------------------------------------------------------
# Name fragments
# ---------------------------------------------------------------------------
_WORD = r"[A-Z][\w&'-]*"
_NEXT_WORD = r"(?:[A-Z0-9][\w&'-]*|&|and|en|van|de|of)"
_NAME = rf"{_WORD}(?:[ \t]+{_NEXT_WORD}){{0,5}}"
_SUFFIX = r"(?:B\.[ ]?V\.?|BV|N\.[ ]?V\.?|NV|V\.O\.F\.?|VOF|GmbH|Ltd\.?|LLC|Inc\.?)(?![\w])"
# Suffixed form first so "Acme Events B.V." is not cut to "Acme Events B".
_NAME_WITH_SUFFIX = rf"(?:{_NAME}[ \t]+{_SUFFIX}|{_NAME})"

_SUFFIX_ONLY = re.compile(rf"[ \t]+{_SUFFIX}$")

# (pattern, weight, category); group 1 is the company name.
COMPANY_PATTERNS: list[tuple[re.Pattern[str], float, str]] = [
    (re.compile(rf"\b({_NAME}[ \t]+{_SUFFIX})"), 0.6, "legal_suffix"),
    (re.compile(rf"\b(Stichting(?:[ \t]+{_NEXT_WORD}){{1,5}})"), 0.6, "foundation"),
    (
        re.compile(
            r"(?i:organi[sz]ed|presented|produced|hosted)[ \t]+(?i:by)[ \t]+(?:the[ \t]+)?"
            rf"({_NAME_WITH_SUFFIX})"
        ),
        0.5,
        "organized_by",
    ),
    (
        re.compile(
            rf"(?i:georganiseerd[ \t]+door|een[ \t]+organisatie[ \t]+van|organisator|organisatie)"
            rf"[ \t]*:?[ \t]+({_NAME_WITH_SUFFIX})"
        ),
        0.5,
        "organized_by_nl",
    ),
    (
        re.compile(
            rf"(?:(?i:copyright)(?:[ \t]*©)?|©|\((?i:c)\))[ \t]*"
            rf"(?:20\d{{2}}(?:[ \t]*[-–][ \t]*20\d{{2}})?[ \t]*)?({_NAME_WITH_SUFFIX})"
        ),
        0.4,
        "copyright",
    ),
    (
        re.compile(
            r"(?i:data[ \t]+controller|legal[ \t]+entity|registered[ \t]+company|"
            r"responsible[ \t]+entity|"
            r"verwerkingsverantwoordelijke|handelsnaam|statutaire[ \t]+naam)"
            rf"[ \t]*(?:is[ \t]+|:[ \t]*)?({_NAME_WITH_SUFFIX})"
        ),
        0.5,
        "registration",
    ),
]

_KVK_NUMBER = re.compile(
    r"(?i:kvk|k\.v\.k\.|kamer[ \t]+van[ \t]+koophandel|chamber[ \t]+of[ \t]+commerce)"
    r"(?:[ \t:-]*(?i:nummer|number|nr\.?|no\.?))?[ \t:.-]*(\d{8})\b"
)
_KVK_WEIGHT = 0.3

PURPOSE_MULTIPLIERS: dict[SearchPurpose, float] = {
    SearchPurpose.OFFICIAL_SITE: 1.0,
    SearchPurpose.PRIVACY_POLICY: 1.2,
    SearchPurpose.LEGAL_REGISTRATION: 1.3,
}

_LEADING_NOISE = frozenset(
    {
        "copyright", "by", "door", "the", "de", "het", "contact", "about", "over",
        "ons", "organized", "organised", "presented", "produced", "all", "rights",
        "reserved", "welcome", "info", "and", "en", "of", "van",
    }
)
_BOILERPLATE = (
    "privacy", "policy", "terms", "conditions", "agreement", "please",
    "website", "contact", "cookie", "disclaimer", "voorwaarden",
)

MIN_CANDIDATE_CONFIDENCE = 0.25


@dataclass
class _CandidateHits:
    name: str
    # (evidence url, category) -> support
    supports: dict[tuple[str, str], float] = field(default_factory=dict)
    categories: list[str] = field(default_factory=list)
    sources: dict[str, Evidence] = field(default_factory=dict)
    kvk_number: str | None = None

    def add(self, evidence: Evidence, category: str, support: float) -> None:
        key = (evidence.url, category)
        self.supports[key] = max(support, self.supports.get(key, 0.0))
        if category not in self.categories:
            self.categories.append(category)
        self.sources.setdefault(evidence.url, evidence)


def clean_company_name(raw: str) -> str:
    """Trim punctuation, collapse whitespace and drop leading noise words."""
    name = " ".join(raw.split()).strip(" ,;:!?-")
    words = name.split(" ")
    while len(words) > 1 and words[0].lower().strip(".,") in _LEADING_NOISE:
        words = words[1:]
    return " ".join(words)


def is_plausible_company_name(name: str) -> bool:
    """Reject fragments that are too short/long, mostly symbols or boilerplate."""
    if not 4 <= len(name) <= 60 or not name[0].isupper():
        return False
    core = _SUFFIX_ONLY.sub("", name)
    if len(core) < 2 or len(core.split()) > 6:
        return False
    if re.fullmatch(r"[A-Z]{10,}", core):
        return False
    visible = [c for c in name if not c.isspace()]
    letters = sum(1 for c in visible if c.isalpha())
    if letters / len(visible) < 0.5:
        return False
    lowered = name.lower()
    return not any(word in lowered for word in _BOILERPLATE)


def _festival_patterns(festival_name: str) -> list[tuple[re.Pattern[str], float, str]]:
    """Patterns that name the festival itself ("X presents <festival>")."""
    festival = re.escape(festival_name)
    return [
        (
            re.compile(
                rf"({_NAME_WITH_SUFFIX})[ \t]+(?i:presents|organi[sz]es|produces)[ \t]+"
                rf"(?i:{festival})"
            ),
            0.5,
            "presents_festival",
        ),
    ]


def extract_company_candidates(
    evidence: Iterable[Evidence],
    festival_name: str,
    max_candidates: int = 3,
) -> tuple[list[CompanyCandidate], list[ExtractionAmbiguous]]:
    """Extract ranked company candidates from company-phase evidence.

    Parameters
    ----------
    evidence:
        Scored evidence from the company queries.
    festival_name:
        The festival being researched.
    max_candidates:
        How many candidates to return.

    Returns
    -------
    tuple[list[CompanyCandidate], list[ExtractionAmbiguous]]
        Candidates sorted by confidence (desc), then distinct source count
        (desc), then name; plus an ambiguity note when evidence existed but
        no candidate reached ``MIN_CANDIDATE_CONFIDENCE``.
    """
    patterns = COMPANY_PATTERNS + _festival_patterns(festival_name)
    candidates: dict[str, _CandidateHits] = {}
    items = list(evidence)

    for item in items:
        text = item.text
        multiplier = PURPOSE_MULTIPLIERS.get(item.search_purpose, 1.0)
        found_here: list[_CandidateHits] = []

        for pattern, weight, category in patterns:
            for match in pattern.finditer(text):
                name = clean_company_name(match.group(1))
                if not is_plausible_company_name(name):
                    continue
                key = normalize_company_key(name)
                hits = candidates.setdefault(key, _CandidateHits(name=name))
                hits.add(item, category, hit_support(weight, item, multiplier))
                if hits not in found_here:
                    found_here.append(hits)

        kvk = _KVK_NUMBER.search(text)
        if kvk:
            for hits in found_here:
                hits.kvk_number = hits.kvk_number or kvk.group(1)
                hits.add(item, "kvk_registration", hit_support(_KVK_WEIGHT, item, multiplier))

    ranked: list[CompanyCandidate] = []
    below_threshold = 0
    for key, hits in candidates.items():
        confidence = claim_confidence(hits.supports.values())
        if confidence < MIN_CANDIDATE_CONFIDENCE:
            below_threshold += 1
            continue
        ranked.append(
            CompanyCandidate(
                name=hits.name,
                key=key,
                confidence=confidence,
                kvk_number=hits.kvk_number,
                match_categories=hits.categories,
                hit_count=len(hits.supports),
                sources=list(hits.sources.values()),
            )
        )

    ranked.sort(key=lambda c: (-c.confidence, -c.source_count, c.name.lower()))

    ambiguities: list[ExtractionAmbiguous] = []
    if items and not ranked:
        ambiguities.append(
            ExtractionAmbiguous(
                message=(
                    f"No organizing company reached confidence {MIN_CANDIDATE_CONFIDENCE} "
                    f"({below_threshold} weak candidates, {len(items)} sources)"
                ),
                phase="extracting_company",
            )
        )
    return ranked[:max_candidates], ambiguities


class CompanyDiscoveryService:
    """Runs the company queries and extracts the organizing company."""

    def __init__(self, gateway: ISearchGateway, max_candidates: int = 3) -> None:
        self._gateway = gateway
        self._max_candidates = max_candidates
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def discover(
        self,
        festival_name: str,
        homepage_url: str | None = None,
    ) -> PhaseResult[CompanyDiscovery]:
        """Identify the organizing company.

        Raises
        ------
        src.utils.errors.GatewayError, src.utils.errors.GatewayTimeout
            Only when every company query failed.
        """
        batch = await run_phase_queries(
            self._gateway,
            company_queries(festival_name, homepage_url),
            self._logger,
            "company_query_failed",
        )
        if batch.all_failed:
            raise batch.first_error()

        evidence = [item for _, response in batch.responses for item in response.results]
        candidates, ambiguities = extract_company_candidates(
            evidence, festival_name, self._max_candidates
        )
        top = candidates[0] if candidates else None

        section = CompanyDiscovery(
            company_name=top.name if top else None,
            confidence=top.confidence if top else 0.0,
            kvk_number=top.kvk_number if top else None,
            candidates=candidates,
            queries_failed=len(batch.failures),
        )
        self._logger.info(
            "company_discovery_complete",
            festival=festival_name,
            company=section.company_name,
            confidence=section.confidence,
            candidates=[c.name for c in candidates],
            sources=len(evidence),
        )
        return PhaseResult(
            section=section,
            confidence=section.confidence,
            warnings=batch.failure_warnings("company"),
            ambiguities=ambiguities,
            summary={"name": section.company_name, "confidence": section.confidence},
        )
