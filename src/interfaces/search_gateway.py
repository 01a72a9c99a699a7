"""Abstract base class for the external search gateway.

Defines the contract for the one external search API the research phases
depend on.  Phase extractors never build HTTP requests themselves; they call
:meth:`ISearchGateway.search` with a query produced by
``src/services/query_builders.py`` and receive scored :class:`Evidence`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextvars import ContextVar
from dataclasses import dataclass, field

from src.models.evidence import Evidence, SearchPurpose

# Per-run retry bound.  The orchestrator sets it for the duration of a run
# (request option ``maxRetries``); gateways use it when a call's options do
# not carry their own ``max_retries``.
retry_override: ContextVar[int | None] = ContextVar("retry_override", default=None)


# frozen=True keeps options hashable so they can take part in cache keys.
@dataclass(frozen=True)
class SearchOptions:
    """Content-shaping hints for one search call.

    Attributes
    ----------
    num_results:
        Maximum number of results to request.
    summary_query:
        Focus prompt for the API-generated per-result summary.
    highlight_query:
        Focus prompt for highlight sentence selection.
    category:
        Optional result category filter (e.g. ``"news"``, ``"company"``).
    max_retries:
        Per-call override of the gateway's retry bound.
    """

    num_results: int = 10
    summary_query: str | None = None
    highlight_query: str | None = None
    category: str | None = None
    max_retries: int | None = None


@dataclass(frozen=True)
class SearchResponse:
    """Results of one successful search call.

    An empty ``results`` list means the API answered with no matches; a
    failed call raises instead of returning an empty response.
    """

    query: str
    purpose: SearchPurpose
    results: list[Evidence] = field(default_factory=list)
    # Number of HTTP attempts the call took (1 when no retry was needed).
    attempts: int = 1


# Concrete implementation: ExaSearchGateway (src/providers/search/)
class ISearchGateway(ABC):
    """Contract for the retrying external search client."""

    @abstractmethod
    async def search(
        self,
        query: str,
        purpose: SearchPurpose,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """Execute one search and return scored evidence.

        Parameters
        ----------
        query:
            The search query string.
        purpose:
            Which phase query this is; stamped on every returned Evidence.
        options:
            Content-shaping hints; defaults apply when omitted.

        Returns
        -------
        SearchResponse
            Zero or more results ordered by relevance.

        Raises
        ------
        src.utils.errors.GatewayTimeout
            If the final attempt exceeded the per-call time ceiling.
        src.utils.errors.GatewayError
            If the final attempt failed for any other reason.
        asyncio.CancelledError
            If the calling task is cancelled; the in-flight request is
            abandoned.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this gateway (e.g. ``"exa"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the gateway is configured (API key present)."""
