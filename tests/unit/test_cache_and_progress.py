"""Unit tests for MemoryCacheProvider and ProgressTracker."""

from __future__ import annotations

import pytest

from src.models.events import ProgressEvent
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.cache.memory_cache import MemoryCacheProvider


def _event(run_id: str = "run-1", phase: str = "starting") -> ProgressEvent:
    return ProgressEvent(run_id=run_id, phase=phase)


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def cache(self) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=100, ttl=3600)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        assert await cache.get("key1") == "value1"

    @pytest.mark.asyncio
    async def test_set_overwrites_existing(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "old")
        await cache.set("key1", "new")
        assert await cache.get("key1") == "new"

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        await cache.delete("key1")
        assert await cache.exists("key1") is False

    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, cache: MemoryCacheProvider) -> None:
        await cache.delete("nonexistent")

    @pytest.mark.asyncio
    async def test_max_size_evicts(self) -> None:
        cache = MemoryCacheProvider(max_size=2, ttl=3600)
        for key in ("a", "b", "c"):
            await cache.set(key, key)
        assert len(cache) == 2

    def test_ttl_property(self, cache: MemoryCacheProvider) -> None:
        assert cache.ttl == 3600


# ======================================================================
# ProgressTracker
# ======================================================================


class TestProgressTracker:
    @pytest.mark.asyncio
    async def test_update_stores_latest(self) -> None:
        tracker = ProgressTracker()
        await tracker.update("run-1", _event(phase="starting"))
        await tracker.update("run-1", _event(phase="discovering_website"))
        status = tracker.get_status("run-1")
        assert status is not None
        assert status.phase == "discovering_website"

    @pytest.mark.asyncio
    async def test_listeners_receive_events_in_order(self) -> None:
        tracker = ProgressTracker()
        received: list[str] = []
        tracker.register_listener("run-1", lambda event: received.append(event.phase))
        for phase in ("starting", "discovering_website", "extracting_company"):
            await tracker.update("run-1", _event(phase=phase))
        assert received == ["starting", "discovering_website", "extracting_company"]

    @pytest.mark.asyncio
    async def test_runs_are_isolated(self) -> None:
        tracker = ProgressTracker()
        first: list[str] = []
        second: list[str] = []
        tracker.register_listener("run-1", lambda event: first.append(event.run_id))
        tracker.register_listener("run-2", lambda event: second.append(event.run_id))
        await tracker.update("run-1", _event("run-1"))
        await tracker.update("run-2", _event("run-2"))
        assert first == ["run-1"]
        assert second == ["run-2"]

    @pytest.mark.asyncio
    async def test_async_listener_is_awaited(self) -> None:
        tracker = ProgressTracker()
        received: list[str] = []

        async def listener(event: ProgressEvent) -> None:
            received.append(event.phase)

        tracker.register_listener("run-1", listener)
        await tracker.update("run-1", _event())
        assert received == ["starting"]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_others(self) -> None:
        tracker = ProgressTracker()
        received: list[str] = []

        def broken(event: ProgressEvent) -> None:
            raise RuntimeError("socket closed")

        tracker.register_listener("run-1", broken)
        tracker.register_listener("run-1", lambda event: received.append(event.phase))
        await tracker.update("run-1", _event())
        assert received == ["starting"]

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_ignored(self) -> None:
        tracker = ProgressTracker()
        received: list[str] = []

        def listener(event: ProgressEvent) -> None:
            received.append(event.phase)

        tracker.register_listener("run-1", listener)
        tracker.register_listener("run-1", listener)
        await tracker.update("run-1", _event())
        assert received == ["starting"]

    @pytest.mark.asyncio
    async def test_unregister_and_forget(self) -> None:
        tracker = ProgressTracker()
        received: list[str] = []

        def listener(event: ProgressEvent) -> None:
            received.append(event.phase)

        tracker.register_listener("run-1", listener)
        tracker.unregister_listener("run-1", listener)
        await tracker.update("run-1", _event())
        assert received == []

        tracker.forget("run-1")
        assert tracker.get_status("run-1") is None
