"""Evidence scoring: per-source authenticity and per-claim cross-reference.

Both entry points are pure functions driven by declarative rule tables, so
the same input always yields the same score and the same list of reasons.

# ─── HOW SCORING WORKS (Junior Developer Guide) ───────────────────────
#
#   score_authenticity(url, text)
#       base 0.1
#       + first matching DOMAIN CATEGORY addend (gov/edu, social, ...)
#       + TLD addend (.org, or .com when not a blog host)
#       + TEXT bonuses ("official", contact e-mail)
#       x every matching PENALTY multiplier (aggregator, placeholder, template)
#       -> clamped to [0, 1]
#
#   cross_reference_confidence(subject, evidence)
#       bucket every source (official / social / news / aggregator / other)
#       + weight per non-empty bucket (official > social > news > aggregator)
#       x 0.2 when the aggregator bucket is the ONLY supporting bucket
#
# Penalties are multipliers, not addends, so a gov-looking aggregator page
# cannot buy its way back to a high score.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from src.models.evidence import (
    AuthenticityScore,
    CrossReferenceResult,
    Evidence,
    SourceBreakdown,
    SourceCategory,
)
from src.utils.confidence import combine_independent
from src.utils.text_normalizer import extract_domain

_BASE_SCORE = 0.1

# (domain pattern, addend, reason) -- the first match wins.
_DOMAIN_CATEGORY_RULES: list[tuple[re.Pattern[str], float, str]] = [
    (
        re.compile(r"(^|\.)(gov|edu|overheid\.nl|kvk\.nl)($|\.)"),
        0.9,
        "government_or_education_domain",
    ),
    (re.compile(r"(^|\.)(linkedin|facebook|instagram)\.com$"), 0.8, "social_platform"),
    (re.compile(r"(^|\.)(wikipedia\.org|wikidata\.org)$"), 0.7, "reference_site"),
    (
        re.compile(
            r"(^|\.)(ticketmaster\.[a-z.]+|eventbrite\.[a-z.]+|festicket\.com|paylogic\.com|"
            r"ticketswap\.[a-z.]+)$"
        ),
        0.8,
        "ticketing_platform",
    ),
]

_ORG_TLD = re.compile(r"\.org$")
_COM_TLD = re.compile(r"\.com$")
_BLOG_HOST = re.compile(r"blog|wordpress|blogspot|medium\.com")

# (text pattern, addend, reason)
_TEXT_BONUS_RULES: list[tuple[re.Pattern[str], float, str]] = [
    (re.compile(r"official", re.IGNORECASE), 0.2, "official_self_description"),
    (re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+"), 0.3, "contact_email_present"),
]

AGGREGATOR_DOMAIN = re.compile(
    r"(^|\.)(viberate\.com|bandsintown\.com|songkick\.com|last\.fm|allevents\.in|"
    r"concertarchives\.org|setlist\.fm|jambase\.com|festivalsearcher\.com)$"
)
_PLACEHOLDER_TEXT = re.compile(
    r"no information available|coming soon|placeholder|binnenkort", re.IGNORECASE
)
_TEMPLATE_TEXT = re.compile(
    r"lorem ipsum|\b(example|test|demo|sample)\b|\bTBD\b|to be announced", re.IGNORECASE
)

_AGGREGATOR_PENALTY = 0.3
_PLACEHOLDER_PENALTY = 0.2
_TEMPLATE_PENALTY = 0.1

# -- cross-reference --------------------------------------------------------

_SOCIAL_DOMAIN = re.compile(r"(^|\.)(facebook|instagram|twitter|x|linkedin|tiktok)\.com$")
_NEWS_DOMAIN = re.compile(r"news|press|media|nieuws|krant|nu\.nl$|nos\.nl$")
_OFFICIAL_TLD = re.compile(r"\.(nl|de|be|org|gov)$")

_BUCKET_WEIGHTS: dict[SourceCategory, float] = {
    SourceCategory.OFFICIAL: 0.4,
    SourceCategory.SOCIAL: 0.3,
    SourceCategory.NEWS: 0.2,
    SourceCategory.AGGREGATOR: 0.15,
}

# Applied when aggregators are the only supporting bucket (5x reduction).
AGGREGATOR_ONLY_FACTOR = 0.2


def score_authenticity(url: str, text: str) -> AuthenticityScore:
    """Score how trustworthy a single source looks.

    Parameters
    ----------
    url:
        The source URL.
    text:
        Page text or search snippet for the source.

    Returns
    -------
    AuthenticityScore
        ``score`` in [0, 1] and the ``reasons`` of every rule that fired,
        in evaluation order.
    """
    domain = extract_domain(url)
    score = _BASE_SCORE
    reasons: list[str] = []

    for pattern, addend, reason in _DOMAIN_CATEGORY_RULES:
        if pattern.search(domain):
            score += addend
            reasons.append(reason)
            break

    if _ORG_TLD.search(domain):
        score += 0.6
        reasons.append("organization_tld")
    elif _COM_TLD.search(domain) and not _BLOG_HOST.search(domain):
        score += 0.4
        reasons.append("commercial_tld")

    for pattern, addend, reason in _TEXT_BONUS_RULES:
        if pattern.search(text):
            score += addend
            reasons.append(reason)

    if AGGREGATOR_DOMAIN.search(domain):
        score *= _AGGREGATOR_PENALTY
        reasons.append("aggregator_domain_penalty")
    if not text.strip() or _PLACEHOLDER_TEXT.search(text):
        score *= _PLACEHOLDER_PENALTY
        reasons.append("placeholder_content_penalty")
    if _TEMPLATE_TEXT.search(text):
        score *= _TEMPLATE_PENALTY
        reasons.append("template_content_penalty")

    return AuthenticityScore(
        score=round(max(0.0, min(1.0, score)), 4),
        reasons=reasons,
        domain=domain,
    )


def categorize_source(evidence: Evidence) -> SourceCategory:
    """Assign one evidence item to a cross-reference bucket."""
    domain = extract_domain(evidence.url)
    if AGGREGATOR_DOMAIN.search(domain):
        return SourceCategory.AGGREGATOR
    if _SOCIAL_DOMAIN.search(domain):
        return SourceCategory.SOCIAL
    if _NEWS_DOMAIN.search(domain):
        return SourceCategory.NEWS
    if "official" in evidence.text.lower() or _OFFICIAL_TLD.search(domain):
        return SourceCategory.OFFICIAL
    return SourceCategory.OTHER


def cross_reference_confidence(
    claim_subject: str,
    evidence: Iterable[Evidence],
) -> CrossReferenceResult:
    """Judge a claim from the mix of source categories that support it.

    Each non-empty bucket adds its weight once; the count within a bucket
    does not matter.  When the aggregator bucket is the only one with any
    evidence, the total is multiplied by ``AGGREGATOR_ONLY_FACTOR`` so the
    claim stays below 0.2 however many aggregator pages mention it.

    Parameters
    ----------
    claim_subject:
        What the claim is about (e.g. the festival name), for the audit trail.
    evidence:
        The supporting evidence items.

    Returns
    -------
    CrossReferenceResult
    """
    counts = {category: 0 for category in SourceCategory}
    for item in evidence:
        counts[categorize_source(item)] += 1

    confidence = 0.0
    reasons: list[str] = []
    for category, weight in _BUCKET_WEIGHTS.items():
        if counts[category]:
            confidence += weight
            reasons.append(f"{category.value}_sources:{counts[category]}")

    supporting = [c for c in _BUCKET_WEIGHTS if counts[c]]
    suppressed = supporting == [SourceCategory.AGGREGATOR]
    if suppressed:
        confidence *= AGGREGATOR_ONLY_FACTOR
        reasons.append("aggregator_only_suppression")
    if not supporting:
        reasons.append("no_supporting_sources")

    return CrossReferenceResult(
        claim_subject=claim_subject,
        confidence=round(min(1.0, confidence), 4),
        reasons=reasons,
        breakdown=SourceBreakdown(
            official=counts[SourceCategory.OFFICIAL],
            social=counts[SourceCategory.SOCIAL],
            news=counts[SourceCategory.NEWS],
            aggregators=counts[SourceCategory.AGGREGATOR],
            other=counts[SourceCategory.OTHER],
        ),
        aggregator_suppressed=suppressed,
    )


def hit_support(weight: float, evidence: Evidence, multiplier: float = 1.0) -> float:
    """Support contributed by one pattern hit in one evidence item.

    Scales the pattern *weight* by the query-purpose *multiplier* and by the
    evidence quality, so low-quality pages count for at most half a hit.
    """
    return max(0.0, min(1.0, weight * multiplier * (0.5 + 0.5 * evidence.quality_score)))


def claim_confidence(supports: Iterable[float]) -> float:
    """Combine independent hit supports into one claim confidence.

    Noisy-OR: adding a supporting hit never lowers the result.
    """
    return round(combine_independent(list(supports)), 4)
