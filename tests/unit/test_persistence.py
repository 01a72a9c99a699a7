"""Unit tests for the research merge rule and the persistence adapter."""

from __future__ import annotations

import pytest

from src.interfaces.research_store import IResearchStore, StoredResearch
from src.models.report import (
    CalendarVerification,
    CompanyDiscovery,
    NewsDiscovery,
    ResearchReport,
    WebsiteInfo,
)
from src.services.persistence import ResearchPersistence, merge_reports, section_confidence
from src.utils.errors import PersistenceFailure


class _MemoryStore(IResearchStore):
    """Dict-backed store that can be told to fail the next N writes."""

    def __init__(self, failing_writes: int = 0) -> None:
        self.rows: dict[str, StoredResearch] = {}
        self.failing_writes = failing_writes
        self.write_attempts = 0

    async def initialize(self) -> None:
        return None

    async def get_report(self, festival_id: str) -> StoredResearch | None:
        return self.rows.get(festival_id)

    async def save_report(
        self,
        festival_id: str,
        report: ResearchReport,
        organizing_company: str | None = None,
        homepage_url: str | None = None,
    ) -> StoredResearch:
        self.write_attempts += 1
        if self.failing_writes:
            self.failing_writes -= 1
            raise PersistenceFailure("disk I/O error", provider_name="memory")
        previous = self.rows.get(festival_id)
        row = StoredResearch(
            festival_id=festival_id,
            report=report,
            organizing_company=organizing_company
            or (previous.organizing_company if previous else None),
            homepage_url=homepage_url or (previous.homepage_url if previous else None),
        )
        self.rows[festival_id] = row
        return row

    async def delete_report(self, festival_id: str) -> bool:
        return self.rows.pop(festival_id, None) is not None

    def get_provider_name(self) -> str:
        return "memory"


def _company(name: str, confidence: float) -> CompanyDiscovery:
    return CompanyDiscovery(company_name=name, confidence=confidence)


# ======================================================================
# merge_reports
# ======================================================================


class TestMergeReports:
    def test_nothing_stored(self) -> None:
        incoming = ResearchReport(news=NewsDiscovery(confidence=0.4))
        assert merge_reports(None, incoming).report == incoming

    def test_absent_sections_are_untouched(self) -> None:
        stored = ResearchReport(
            company_discovery=_company("Acme Events BV", 0.8),
            calendar_verification=CalendarVerification(confidence=0.6),
        )
        incoming = ResearchReport(news=NewsDiscovery(confidence=0.5))
        merged = merge_reports(stored, incoming).report
        assert merged.company_discovery == stored.company_discovery
        assert merged.calendar_verification == stored.calendar_verification
        assert merged.news == incoming.news

    def test_present_section_replaces_stored(self) -> None:
        stored = ResearchReport(company_discovery=_company("Old BV", 0.5))
        incoming = ResearchReport(company_discovery=_company("Acme Events BV", 0.7))
        outcome = merge_reports(stored, incoming)
        assert outcome.report.company_discovery.company_name == "Acme Events BV"
        assert outcome.downgrades == []

    def test_merging_twice_equals_merging_once(self) -> None:
        stored = ResearchReport(
            company_discovery=_company("Acme Events BV", 0.8),
            website_info=WebsiteInfo(homepage_url="https://zomerfest.nl"),
        )
        incoming = ResearchReport(
            news=NewsDiscovery(confidence=0.5),
            company_discovery=_company("Acme Events BV", 0.6),
        )
        once = merge_reports(stored, incoming).report
        twice = merge_reports(once, incoming).report
        assert twice == once

    def test_lower_confidence_is_applied_and_reported(self) -> None:
        stored = ResearchReport(company_discovery=_company("Acme Events BV", 0.8))
        incoming = ResearchReport(company_discovery=_company("Acme Events BV", 0.4))
        outcome = merge_reports(stored, incoming)
        assert outcome.report.company_discovery.confidence == 0.4
        assert outcome.downgrades == ["company_discovery"]

    def test_keep_higher_confidence(self) -> None:
        stored = ResearchReport(company_discovery=_company("Acme Events BV", 0.8))
        incoming = ResearchReport(company_discovery=_company("Other BV", 0.4))
        outcome = merge_reports(stored, incoming, keep_higher_confidence=True)
        assert outcome.report.company_discovery.company_name == "Acme Events BV"
        assert outcome.kept == ["company_discovery"]


class TestSectionConfidence:
    def test_missing_section(self) -> None:
        assert section_confidence(ResearchReport(), "news") is None

    def test_plain_section(self) -> None:
        report = ResearchReport(news=NewsDiscovery(confidence=0.42))
        assert section_confidence(report, "news") == pytest.approx(0.42)


# ======================================================================
# ResearchPersistence
# ======================================================================


class TestResearchPersistence:
    @pytest.mark.asyncio
    async def test_merge_and_save_derives_columns(self) -> None:
        store = _MemoryStore()
        persistence = ResearchPersistence(store)
        report = ResearchReport(
            company_discovery=_company("Acme Events BV", 0.8),
            website_info=WebsiteInfo(homepage_url="https://zomerfest.nl"),
        )
        await persistence.merge_and_save("f-1", report)
        row = store.rows["f-1"]
        assert row.organizing_company == "Acme Events BV"
        assert row.homepage_url == "https://zomerfest.nl"

    @pytest.mark.asyncio
    async def test_sequential_partials_accumulate(self) -> None:
        store = _MemoryStore()
        persistence = ResearchPersistence(store)
        await persistence.merge_and_save(
            "f-1", ResearchReport(company_discovery=_company("Acme Events BV", 0.8))
        )
        await persistence.merge_and_save("f-1", ResearchReport(news=NewsDiscovery(confidence=0.5)))
        merged = await persistence.get("f-1")
        assert merged is not None
        assert merged.present_sections() == ["company_discovery", "news"]

    @pytest.mark.asyncio
    async def test_replace_instead_of_merge(self) -> None:
        store = _MemoryStore()
        persistence = ResearchPersistence(store)
        await persistence.merge_and_save(
            "f-1", ResearchReport(company_discovery=_company("Acme Events BV", 0.8))
        )
        await persistence.merge_and_save(
            "f-1", ResearchReport(news=NewsDiscovery(confidence=0.5)), merge=False
        )
        merged = await persistence.get("f-1")
        assert merged is not None
        assert merged.company_discovery is None

    @pytest.mark.asyncio
    async def test_retries_once(self) -> None:
        store = _MemoryStore(failing_writes=1)
        persistence = ResearchPersistence(store)
        await persistence.merge_and_save("f-1", ResearchReport(news=NewsDiscovery()))
        assert store.write_attempts == 2
        assert "f-1" in store.rows

    @pytest.mark.asyncio
    async def test_gives_up_after_second_failure(self) -> None:
        store = _MemoryStore(failing_writes=2)
        persistence = ResearchPersistence(store)
        with pytest.raises(PersistenceFailure, match="Could not save research for f-1"):
            await persistence.merge_and_save("f-1", ResearchReport(news=NewsDiscovery()))
        assert store.write_attempts == 2
        assert store.rows == {}

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        store = _MemoryStore()
        persistence = ResearchPersistence(store)
        await persistence.merge_and_save("f-1", ResearchReport(news=NewsDiscovery()))
        assert await persistence.delete("f-1") is True
        assert await persistence.delete("f-1") is False
