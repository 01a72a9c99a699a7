"""Cache providers.

In-memory TTL cache used to avoid repeating identical external searches
(e.g. a user re-running research for the same festival a few minutes later).

MemoryCacheProvider is a dict-based cache, fast but not shared across
processes.  For multi-worker deployments, swap in a Redis adapter
implementing ICacheProvider without changing any business logic.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
