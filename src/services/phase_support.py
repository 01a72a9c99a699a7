"""Shared plumbing for the phase extractors.

:class:`PhaseResult` is what every extractor hands back to the orchestrator:
the report section it produced, the phase confidence, soft warnings and a
small summary for progress events.  :func:`run_phase_queries` fans a phase's
queries out over the gateway and keeps successes and failures apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog

from src.interfaces.search_gateway import ISearchGateway, SearchResponse
from src.services.query_builders import PhaseQuery
from src.utils.concurrency import parallel_search
from src.utils.errors import ExtractionAmbiguous

_SectionT = TypeVar("_SectionT")


@dataclass
class PhaseResult(Generic[_SectionT]):
    """Output of one phase extractor."""

    section: _SectionT
    confidence: float
    # Soft problems (partial query failures, empty results).
    warnings: list[str] = field(default_factory=list)
    ambiguities: list[ExtractionAmbiguous] = field(default_factory=list)
    # Small per-phase summary carried on progress events.
    summary: dict[str, Any] = field(default_factory=dict)

    @property
    def warning_count(self) -> int:
        return len(self.warnings) + len(self.ambiguities)


@dataclass
class QueryBatch:
    """Responses of a phase's queries, paired with the query that produced them."""

    responses: list[tuple[PhaseQuery, SearchResponse]] = field(default_factory=list)
    failures: list[tuple[PhaseQuery, BaseException]] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.failures) and not self.responses

    def first_error(self) -> BaseException:
        return self.failures[0][1]

    def failure_warnings(self, phase: str) -> list[str]:
        return [
            f"{phase}: query failed ({type(exc).__name__}): {query.query}"
            for query, exc in self.failures
        ]


async def run_phase_queries(
    gateway: ISearchGateway,
    queries: list[PhaseQuery],
    logger: structlog.BoundLogger,
    error_msg: str,
) -> QueryBatch:
    """Run *queries* concurrently and split the outcomes.

    Cancellation of the calling task propagates; gateway errors are
    collected in ``failures``.
    """

    async def _search(phase_query: PhaseQuery) -> tuple[PhaseQuery, SearchResponse]:
        response = await gateway.search(
            phase_query.query, phase_query.purpose, phase_query.options
        )
        return phase_query, response

    outcome = await parallel_search(
        _search,
        [{"phase_query": q} for q in queries],
        logger=logger,
        error_msg=error_msg,
    )
    return QueryBatch(
        responses=list(outcome.results),
        failures=[(query["phase_query"], exc) for query, exc in outcome.failures],
    )
