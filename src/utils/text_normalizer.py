"""Text normalization utilities for research evidence.

This module handles four concerns shared by the phase extractors:

1. **Company name normalization** -- Canonical dedup keys for legal-entity
   names ("Acme Events B.V." and "acme events bv" share one key) plus
   fuzzy matching via rapidfuzz for names that differ in small ways.

2. **Domain handling** -- Host extraction with the ``www.`` prefix removed,
   used for source attribution and the scorer's domain rules.

3. **Date extraction** -- ISO, day-month-year and Dutch/English month-name
   dates found in snippets, returned as ISO ``YYYY-MM-DD`` strings.

4. **Snippet shortening** -- Word-boundary truncation for summaries.
"""

import re
from datetime import date
from urllib.parse import urlparse

from rapidfuzz import fuzz

_MONTHS: dict[str, int] = {
    # Dutch
    "januari": 1, "februari": 2, "maart": 3, "april": 4, "mei": 5, "juni": 6,
    "juli": 7, "augustus": 8, "september": 9, "oktober": 10, "november": 11,
    "december": 12,
    # English (april/september/november/december shared above)
    "january": 1, "february": 2, "march": 3, "may": 5, "june": 6, "july": 7,
    "august": 8, "october": 10,
    # Short forms
    "jan": 1, "feb": 2, "mar": 3, "mrt": 3, "apr": 4, "jun": 6, "jul": 7,
    "aug": 8, "sep": 9, "sept": 9, "oct": 10, "okt": 10, "nov": 11, "dec": 12,
}

_MONTH_ALTERNATION = "|".join(sorted(_MONTHS, key=len, reverse=True))

_ISO_DATE = re.compile(r"\b(20\d{2})-(\d{1,2})-(\d{1,2})\b")
_DMY_DATE = re.compile(r"\b(\d{1,2})[-/.](\d{1,2})[-/.](20\d{2})\b")
_DAY_MONTH_NAME = re.compile(
    rf"\b(\d{{1,2}})\s+({_MONTH_ALTERNATION})\.?\s+(20\d{{2}})\b", re.IGNORECASE
)
_MONTH_NAME_DAY = re.compile(
    rf"\b({_MONTH_ALTERNATION})\.?\s+(\d{{1,2}}),?\s+(20\d{{2}})\b", re.IGNORECASE
)
_YEAR = re.compile(r"\b(20[1-4]\d)\b")

_LEGAL_SUFFIX_DOTS = re.compile(r"\b([bnv])\.\s?([vo])\.(?:\s?([f])\.)?", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^0-9a-z&]+")


def extract_domain(url: str) -> str:
    """Return the lower-cased host of *url* without a leading ``www.``.

    Returns an empty string for values that do not parse as URLs.
    """
    host = urlparse(url).netloc.lower()
    if not host and "://" not in url:
        host = urlparse(f"//{url}").netloc.lower()
    host = host.split("@")[-1].split(":")[0]
    if host.startswith("www."):
        host = host[4:]
    return host


def normalize_url(url: str) -> str:
    """Strip fragments, query strings and trailing slashes for URL dedup."""
    parsed = urlparse(url.strip())
    path = parsed.path.rstrip("/")
    return f"{parsed.scheme.lower()}://{extract_domain(url)}{path}"


def normalize_company_key(name: str) -> str:
    """Build a dedup key for a company name.

    ``"Acme Events B.V."``, ``"ACME Events BV"`` and ``"acme  events bv"``
    all map to ``"acme events bv"``.
    """
    collapsed = _LEGAL_SUFFIX_DOTS.sub(
        lambda m: "".join(g for g in m.groups() if g), name
    )
    return _NON_ALNUM.sub(" ", collapsed.lower()).strip()


def company_similarity(left: str, right: str) -> float:
    """Return a 0-1 similarity between two company names (token sort ratio)."""
    if not left or not right:
        return 0.0
    return fuzz.token_sort_ratio(
        normalize_company_key(left), normalize_company_key(right)
    ) / 100.0


def extract_date(text: str) -> str | None:
    """Return the first recognisable calendar date in *text* as ISO format."""
    for pattern, order in (
        (_ISO_DATE, "ymd"),
        (_DMY_DATE, "dmy"),
        (_DAY_MONTH_NAME, "d_name_y"),
        (_MONTH_NAME_DAY, "name_d_y"),
    ):
        for match in pattern.finditer(text):
            parsed = _to_date(match.groups(), order)
            if parsed is not None:
                return parsed.isoformat()
    return None


def extract_years(text: str) -> list[int]:
    """Return every distinct four-digit year 2010-2049 mentioned in *text*."""
    return sorted({int(y) for y in _YEAR.findall(text)})


def shorten(text: str, max_length: int = 200) -> str:
    """Collapse whitespace and cut *text* at a word boundary, adding ``...``."""
    flat = " ".join(text.split())
    if len(flat) <= max_length:
        return flat
    cut = flat[:max_length].rsplit(" ", 1)[0]
    return f"{cut}..."


def _to_date(groups: tuple[str, ...], order: str) -> date | None:
    try:
        if order == "ymd":
            return date(int(groups[0]), int(groups[1]), int(groups[2]))
        if order == "dmy":
            return date(int(groups[2]), int(groups[1]), int(groups[0]))
        if order == "d_name_y":
            return date(int(groups[2]), _MONTHS[groups[1].lower()], int(groups[0]))
        return date(int(groups[2]), _MONTHS[groups[0].lower()], int(groups[1]))
    except (ValueError, KeyError):
        return None
