"""SQLite-backed research store.

Persists one research blob per festival to a local SQLite database at
``data/research.db``.  Uses ``aiosqlite`` for async I/O.  The report is
stored as JSON (``ResearchReport.model_dump_json``) next to the two columns
the festival list shows directly.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog
from pydantic import ValidationError

from src.interfaces.research_store import IResearchStore, StoredResearch
from src.models.report import ResearchReport
from src.utils.errors import PersistenceFailure

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/research.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS festival_research (
    festival_id         TEXT PRIMARY KEY,
    research_data       TEXT NOT NULL,
    organizing_company  TEXT,
    homepage_url        TEXT,
    created_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_UPSERT_SQL = """\
INSERT INTO festival_research (festival_id, research_data, organizing_company, homepage_url)
VALUES (?, ?, ?, ?)
ON CONFLICT(festival_id)
DO UPDATE SET research_data      = excluded.research_data,
              organizing_company = COALESCE(excluded.organizing_company, organizing_company),
              homepage_url       = COALESCE(excluded.homepage_url, homepage_url),
              updated_at         = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = """\
SELECT festival_id, research_data, organizing_company, homepage_url, updated_at
FROM festival_research
WHERE festival_id = ?;
"""

_DELETE_SQL = "DELETE FROM festival_research WHERE festival_id = ?;"

_PROVIDER_NAME = "sqlite_research"


class SQLiteResearchStore(IResearchStore):
    """SQLite-backed research persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the research table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceFailure(
                message=f"Cannot initialise research store: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        logger.info("research_db_initialized", path=str(self._db_path))

    async def get_report(self, festival_id: str) -> StoredResearch | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_SQL, (festival_id,))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceFailure(
                message=f"Cannot read research for {festival_id}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        if row is None:
            return None
        return _row_to_stored(dict(row))

    async def save_report(
        self,
        festival_id: str,
        report: ResearchReport,
        organizing_company: str | None = None,
        homepage_url: str | None = None,
    ) -> StoredResearch:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute(
                    _UPSERT_SQL,
                    (
                        festival_id,
                        report.model_dump_json(by_alias=True),
                        organizing_company,
                        homepage_url,
                    ),
                )
                await db.commit()
                cursor = await db.execute(_SELECT_SQL, (festival_id,))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceFailure(
                message=f"Cannot write research for {festival_id}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        logger.info(
            "research_saved",
            festival_id=festival_id,
            sections=report.present_sections(),
        )
        return _row_to_stored(dict(row))

    async def delete_report(self, festival_id: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_DELETE_SQL, (festival_id,))
                await db.commit()
                deleted = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise PersistenceFailure(
                message=f"Cannot delete research for {festival_id}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        logger.info("research_deleted", festival_id=festival_id, existed=deleted)
        return deleted

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME


def _row_to_stored(row: dict) -> StoredResearch:
    try:
        report = ResearchReport.model_validate_json(row["research_data"])
    except ValidationError as exc:
        raise PersistenceFailure(
            message=f"Stored research for {row['festival_id']} is unreadable",
            provider_name=_PROVIDER_NAME,
        ) from exc
    updated = row.get("updated_at")
    return StoredResearch(
        festival_id=row["festival_id"],
        report=report,
        organizing_company=row.get("organizing_company"),
        homepage_url=row.get("homepage_url"),
        updated_at=datetime.fromisoformat(updated.replace("Z", "+00:00")) if updated else None,
    )
