"""Shared pytest fixtures for the FestiScout test suite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest

from src.interfaces.search_gateway import (
    ISearchGateway,
    SearchOptions,
    SearchResponse,
    retry_override,
)
from src.models.evidence import Evidence, SearchPurpose

# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------


def _build_evidence(
    url: str,
    text: str = "",
    title: str = "",
    purpose: SearchPurpose = SearchPurpose.EXISTENCE,
    quality: float = 0.5,
    **extra: Any,
) -> Evidence:
    return Evidence(
        url=url,
        raw_text=text,
        title=title,
        search_purpose=purpose,
        quality_score=quality,
        **extra,
    )


@pytest.fixture
def make_evidence() -> Callable[..., Evidence]:
    """Factory for Evidence records: ``make_evidence(url, text, title=..., purpose=...)``."""
    return _build_evidence


# ---------------------------------------------------------------------------
# Scripted search gateway
# ---------------------------------------------------------------------------


@dataclass
class _Rule:
    match: str | SearchPurpose
    results: list[Evidence] = field(default_factory=list)
    error: BaseException | None = None
    delay: float = 0.0
    event: asyncio.Event | None = None

    def applies(self, query: str, purpose: SearchPurpose) -> bool:
        if isinstance(self.match, SearchPurpose):
            return purpose is self.match
        return self.match in query


class ScriptedGateway(ISearchGateway):
    """In-memory gateway answering queries from a list of rules.

    The first rule whose substring occurs in the query (or whose purpose
    equals the call's purpose) decides the response.  Unmatched queries
    return no results.  Every call is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self._rules: list[_Rule] = []
        self.calls: list[tuple[str, SearchPurpose, SearchOptions | None]] = []
        # Run-scoped retry bound seen by each call.
        self.retry_bounds: list[int | None] = []
        # Calls abandoned while waiting (task cancelled).
        self.cancelled = 0

    def script(
        self,
        match: str | SearchPurpose,
        results: list[Evidence] | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
        event: asyncio.Event | None = None,
    ) -> ScriptedGateway:
        """Add a rule; ``event`` (when given) is awaited before answering."""
        self._rules.append(_Rule(match, list(results or []), error, delay, event))
        return self

    def queries(self, purpose: SearchPurpose | None = None) -> list[str]:
        return [q for q, p, _ in self.calls if purpose is None or p is purpose]

    async def search(
        self,
        query: str,
        purpose: SearchPurpose,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        self.calls.append((query, purpose, options))
        self.retry_bounds.append(retry_override.get())
        rule = next((r for r in self._rules if r.applies(query, purpose)), None)
        if rule is None:
            return SearchResponse(query=query, purpose=purpose)
        try:
            if rule.event is not None:
                await rule.event.wait()
            if rule.delay:
                await asyncio.sleep(rule.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if rule.error is not None:
            raise rule.error
        results = [
            item.model_copy(update={"search_purpose": purpose, "query": query})
            for item in rule.results
        ]
        return SearchResponse(query=query, purpose=purpose, results=results)

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def gateway() -> ScriptedGateway:
    """A fresh scripted gateway with no rules."""
    return ScriptedGateway()


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Path of a throwaway SQLite research database."""
    return str(tmp_path / "research.db")
