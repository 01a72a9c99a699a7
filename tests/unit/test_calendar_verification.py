"""Unit tests for calendar verification."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from src.models.evidence import SearchPurpose
from src.models.report import CalendarListing
from src.services.calendar_verification import (
    CALENDAR_SOURCES,
    CalendarSource,
    CalendarVerificationService,
    check_listing,
    pick_edition_year,
    summarize_listings,
)
from src.utils.errors import GatewayError, GatewayTimeout

_TODAY = date(2026, 5, 1)
_PARTYFLOCK = CalendarSource("PARTYFLOCK", "Partyflock", "partyflock.nl")


class TestPickEditionYear:
    @pytest.mark.parametrize(
        ("years", "expected"),
        [
            ([], None),
            ([2024, 2027], 2027),
            ([2023, 2026], 2026),
            ([2020, 2025], 2025),
            ([2018, 2020], 2020),
        ],
    )
    def test_preference(self, years: list[int], expected: int | None) -> None:
        assert pick_edition_year(years, 2026) == expected


class TestCheckListing:
    def test_found_current_edition(self, make_evidence: Any) -> None:
        item = make_evidence(
            "https://www.partyflock.nl/party/123",
            "Zomerfest 2026 op 14 juni 2026 in Utrecht",
            title="Zomerfest 2026",
        )
        listing = check_listing(_PARTYFLOCK, "Zomerfest", [item], _TODAY)
        assert listing.found is True
        assert listing.edition_year == 2026
        assert listing.is_current is True
        assert listing.event_date == "2026-06-14"
        assert listing.url == "https://www.partyflock.nl/party/123"

    def test_past_edition_is_not_current(self, make_evidence: Any) -> None:
        item = make_evidence("https://partyflock.nl/party/9", "Zomerfest 2024 aftermovie")
        listing = check_listing(_PARTYFLOCK, "Zomerfest", [item], _TODAY)
        assert listing.found is True
        assert listing.is_current is False

    def test_other_host_does_not_count(self, make_evidence: Any) -> None:
        item = make_evidence("https://zomerfest.nl", "Zomerfest 2026")
        assert check_listing(_PARTYFLOCK, "Zomerfest", [item], _TODAY).found is False

    def test_festival_name_must_appear(self, make_evidence: Any) -> None:
        item = make_evidence("https://partyflock.nl/party/2", "Winterfest 2026")
        assert check_listing(_PARTYFLOCK, "Zomerfest", [item], _TODAY).found is False


class TestSummarizeListings:
    def test_counts_and_confidence(self) -> None:
        listings = [
            CalendarListing(source_name="A", hostname="a.nl", found=True, is_current=True),
            CalendarListing(source_name="B", hostname="b.nl", found=True),
            CalendarListing(source_name="C", hostname="c.nl"),
            CalendarListing(source_name="D", hostname="d.nl", error="GatewayTimeout"),
        ]
        summary = summarize_listings(listings)
        assert summary.total_sources == 4
        assert summary.found_on == ["A", "B"]
        assert summary.not_found_on == ["C"]
        assert summary.errors == ["D: GatewayTimeout"]
        assert summary.current_listings == 1
        assert summary.is_active is True
        # 0.3 + 2 * 0.15 + 1 * 0.1
        assert summary.confidence == pytest.approx(0.7)

    def test_nothing_found(self) -> None:
        summary = summarize_listings([CalendarListing(source_name="A", hostname="a.nl")])
        assert summary.confidence == 0.0
        assert summary.is_active is False


class TestCalendarVerificationService:
    @pytest.mark.asyncio
    async def test_checks_every_source(self, gateway: Any, make_evidence: Any) -> None:
        gateway.script(
            "site:partyflock.nl",
            [make_evidence("https://partyflock.nl/party/1", "Zomerfest 2026")],
        )
        gateway.script("site:eblive.nl", error=GatewayTimeout("slow"))
        service = CalendarVerificationService(gateway, today=_TODAY)
        result = await service.verify("Zomerfest")

        assert len(gateway.queries(SearchPurpose.CALENDAR)) == len(CALENDAR_SOURCES)
        section = result.section
        assert section.total_sources == 7
        assert section.found_on == ["Partyflock"]
        assert section.errors == ["EB Live: GatewayTimeout"]
        assert "EB Live" not in section.not_found_on
        assert len(section.not_found_on) == 5
        assert section.is_active is True
        assert result.summary == {"found": 1, "total": 7, "confidence": section.confidence}
        assert len(result.warnings) == 1

    @pytest.mark.asyncio
    async def test_every_source_failing_raises(self, gateway: Any) -> None:
        gateway.script("site:", error=GatewayError("HTTP 500"))
        with pytest.raises(GatewayError):
            await CalendarVerificationService(gateway, today=_TODAY).verify("Zomerfest")
