"""Calendar verification: is the festival listed on Dutch festival calendars?

Seven calendar sites are checked in parallel with ``site:<host> "<name>"``
queries.  A source counts as *found* when a result comes from its host and
names the festival.  The edition year is read from the listing text; a year
of this year or later marks the listing as current.

Per-source failures are recorded in the summary.  Only a failure of every
source fails the phase.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

import structlog

from src.interfaces.search_gateway import ISearchGateway, SearchResponse
from src.models.evidence import Evidence
from src.models.report import CalendarListing, CalendarVerification
from src.services.phase_support import PhaseResult, run_phase_queries
from src.services.query_builders import calendar_query
from src.utils.logging import get_logger
from src.utils.text_normalizer import extract_date, extract_domain, extract_years


@dataclass(frozen=True)
class CalendarSource:
    key: str
    name: str
    hostname: str


CALENDAR_SOURCES: tuple[CalendarSource, ...] = (
    CalendarSource("EBLIVE", "EB Live", "eblive.nl"),
    CalendarSource("FESTIVALINFO", "FestivalInfo", "festivalinfo.nl"),
    CalendarSource("PARTYFLOCK", "Partyflock", "partyflock.nl"),
    CalendarSource("FESTILEAKS", "Festileaks", "festileaks.com"),
    CalendarSource("BEFESTI", "Befesti", "befesti.nl"),
    CalendarSource("FESTIVALFANS", "Festivalfans", "festivalfans.nl"),
    CalendarSource("FOLLOWTHEBEAT", "FollowTheBeat", "followthebeat.nl"),
)


def pick_edition_year(years: Iterable[int], current_year: int) -> int | None:
    """Prefer next year, then this year, then last year, then the latest seen."""
    found = set(years)
    if not found:
        return None
    for preferred in (current_year + 1, current_year, current_year - 1):
        if preferred in found:
            return preferred
    return max(found)


def check_listing(
    source: CalendarSource,
    festival_name: str,
    results: Iterable[Evidence],
    today: date,
) -> CalendarListing:
    """Build the listing for one source from its search results."""
    name = festival_name.lower()
    for item in results:
        host = extract_domain(item.url)
        if not (host == source.hostname or host.endswith(f".{source.hostname}")):
            continue
        if name not in item.text.lower():
            continue
        year = pick_edition_year(extract_years(item.text), today.year)
        return CalendarListing(
            source_name=source.name,
            hostname=source.hostname,
            found=True,
            url=item.url,
            title=item.title or None,
            edition_year=year,
            is_current=year is not None and year >= today.year,
            event_date=extract_date(item.text),
        )
    return CalendarListing(source_name=source.name, hostname=source.hostname)


def summarize_listings(listings: list[CalendarListing]) -> CalendarVerification:
    found = [entry for entry in listings if entry.found]
    current = [entry for entry in found if entry.is_current]
    confidence = 0.0
    if found:
        confidence = min(0.9, 0.3 + 0.15 * len(found) + 0.1 * len(current))
    return CalendarVerification(
        listings=listings,
        total_sources=len(listings),
        found_on=[entry.source_name for entry in found],
        not_found_on=[
            entry.source_name for entry in listings if not entry.found and not entry.error
        ],
        errors=[f"{entry.source_name}: {entry.error}" for entry in listings if entry.error],
        current_listings=len(current),
        is_active=bool(current),
        confidence=round(confidence, 4),
    )


class CalendarVerificationService:
    """Checks every calendar source for the festival."""

    def __init__(
        self,
        gateway: ISearchGateway,
        sources: tuple[CalendarSource, ...] = CALENDAR_SOURCES,
        today: date | None = None,
    ) -> None:
        self._gateway = gateway
        self._sources = sources
        self._today = today
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def verify(self, festival_name: str) -> PhaseResult[CalendarVerification]:
        """Verify calendar presence.

        Raises
        ------
        src.utils.errors.GatewayError, src.utils.errors.GatewayTimeout
            Only when the query for every source failed.
        """
        today = self._today or date.today()
        queries = {
            source.hostname: calendar_query(festival_name, source.hostname)
            for source in self._sources
        }
        batch = await run_phase_queries(
            self._gateway, list(queries.values()), self._logger, "calendar_query_failed"
        )
        if batch.all_failed:
            raise batch.first_error()

        responses: dict[str, SearchResponse] = {q.query: r for q, r in batch.responses}
        errors: dict[str, BaseException] = {q.query: exc for q, exc in batch.failures}

        listings: list[CalendarListing] = []
        for source in self._sources:
            query_text = queries[source.hostname].query
            if query_text in errors:
                listings.append(
                    CalendarListing(
                        source_name=source.name,
                        hostname=source.hostname,
                        error=type(errors[query_text]).__name__,
                    )
                )
                continue
            listings.append(
                check_listing(source, festival_name, responses[query_text].results, today)
            )

        section = summarize_listings(listings)
        self._logger.info(
            "calendar_verification_complete",
            festival=festival_name,
            found=len(section.found_on),
            total=section.total_sources,
            active=section.is_active,
            failed_sources=len(section.errors),
        )
        return PhaseResult(
            section=section,
            confidence=section.confidence,
            warnings=batch.failure_warnings("calendar"),
            summary={
                "found": len(section.found_on),
                "total": section.total_sources,
                "confidence": section.confidence,
            },
        )
