"""Research store implementations.

SQLiteResearchStore keeps one row per festival in a local SQLite file.  A
hosted database adapter would implement IResearchStore the same way.
"""

from src.providers.store.sqlite_research_store import SQLiteResearchStore

__all__ = ["SQLiteResearchStore"]
