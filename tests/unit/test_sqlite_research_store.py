"""Unit tests for SQLiteResearchStore (real aiosqlite on a temp file)."""

from __future__ import annotations

import json

import aiosqlite
import pytest
import pytest_asyncio

from src.models.report import CompanyDiscovery, NewsDiscovery, ResearchReport, WebsiteInfo
from src.providers.store.sqlite_research_store import SQLiteResearchStore
from src.utils.errors import PersistenceFailure


@pytest_asyncio.fixture
async def store(db_path: str) -> SQLiteResearchStore:
    research_store = SQLiteResearchStore(db_path)
    await research_store.initialize()
    return research_store


def _report() -> ResearchReport:
    return ResearchReport(
        company_discovery=CompanyDiscovery(company_name="Acme Events BV", confidence=0.8),
        website_info=WebsiteInfo(homepage_url="https://zomerfest.nl"),
    )


class TestSQLiteResearchStore:
    @pytest.mark.asyncio
    async def test_missing_festival_returns_none(self, store: SQLiteResearchStore) -> None:
        assert await store.get_report("unknown") is None

    @pytest.mark.asyncio
    async def test_save_and_read_back(self, store: SQLiteResearchStore) -> None:
        saved = await store.save_report("f-1", _report(), "Acme Events BV", "https://zomerfest.nl")
        assert saved.report == _report()
        assert saved.organizing_company == "Acme Events BV"
        assert saved.updated_at is not None

        loaded = await store.get_report("f-1")
        assert loaded is not None
        assert loaded.report == _report()
        assert loaded.homepage_url == "https://zomerfest.nl"

    @pytest.mark.asyncio
    async def test_blob_uses_camel_case_keys(
        self, store: SQLiteResearchStore, db_path: str
    ) -> None:
        await store.save_report("f-1", _report())
        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("SELECT research_data FROM festival_research")
            (blob,) = await cursor.fetchone()
        data = json.loads(blob)
        assert "companyDiscovery" in data
        assert "websiteInfo" in data
        assert data["companyDiscovery"]["company_name"] == "Acme Events BV"

    @pytest.mark.asyncio
    async def test_upsert_keeps_columns_when_not_given(self, store: SQLiteResearchStore) -> None:
        await store.save_report("f-1", _report(), "Acme Events BV", "https://zomerfest.nl")
        news_only = ResearchReport(news=NewsDiscovery(confidence=0.5))
        saved = await store.save_report("f-1", news_only)
        assert saved.report == news_only
        assert saved.organizing_company == "Acme Events BV"
        assert saved.homepage_url == "https://zomerfest.nl"

    @pytest.mark.asyncio
    async def test_delete(self, store: SQLiteResearchStore) -> None:
        await store.save_report("f-1", _report())
        assert await store.delete_report("f-1") is True
        assert await store.delete_report("f-1") is False
        assert await store.get_report("f-1") is None

    @pytest.mark.asyncio
    async def test_unreadable_blob_raises(self, store: SQLiteResearchStore, db_path: str) -> None:
        async with aiosqlite.connect(db_path) as db:
            await db.execute(
                "INSERT INTO festival_research (festival_id, research_data) VALUES (?, ?)",
                ("f-2", '{"companyDiscovery": {"confidence": 7}}'),
            )
            await db.commit()
        with pytest.raises(PersistenceFailure, match="unreadable"):
            await store.get_report("f-2")

    @pytest.mark.asyncio
    async def test_missing_table_raises(self, db_path: str) -> None:
        with pytest.raises(PersistenceFailure):
            await SQLiteResearchStore(db_path).get_report("f-1")

    def test_provider_name(self, db_path: str) -> None:
        assert SQLiteResearchStore(db_path).get_provider_name() == "sqlite_research"
