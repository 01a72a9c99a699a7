"""Public interface definitions for all external collaborators.

The search API, the research store and the cache are accessed exclusively
through the abstract base classes defined in this package.  Concrete
adapters live in ``src/providers/`` and are wired together in
``src/main.py`` during application startup.

CONCRETE PROVIDER MAP:
    Interface          →  Concrete implementation (in src/providers/)
    ─────────────────────────────────────────────────────────────
    ISearchGateway     →  ExaSearchGateway
    IResearchStore     →  SQLiteResearchStore
    ICacheProvider     →  MemoryCacheProvider
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.research_store import IResearchStore, StoredResearch
from src.interfaces.search_gateway import ISearchGateway, SearchOptions, SearchResponse

__all__ = [
    "ICacheProvider",
    "IResearchStore",
    "ISearchGateway",
    "SearchOptions",
    "SearchResponse",
    "StoredResearch",
]
