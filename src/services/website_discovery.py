"""Website discovery and festival-existence check.

The first step of every research run.  One existence query is issued; its
evidence is cross-referenced to estimate whether the festival is real, and
the homepage is taken from the caller or from the first result that is not a
social network, media platform or festival calendar.

Gateway errors are not caught here.  The orchestrator treats a failure of
this first call as the fatal setup condition for the run.
"""

from __future__ import annotations

import re

import structlog

from src.interfaces.search_gateway import ISearchGateway
from src.models.report import WebsiteInfo
from src.services.evidence_scorer import cross_reference_confidence
from src.services.phase_support import PhaseResult
from src.services.query_builders import existence_query
from src.utils.errors import ExtractionAmbiguous
from src.utils.logging import get_logger
from src.utils.text_normalizer import extract_domain

# Hosts that never count as a festival's own homepage.
_NON_HOMEPAGE_HOSTS = re.compile(
    r"(^|\.)(facebook|instagram|twitter|x|linkedin|youtube|tiktok|spotify|soundcloud)\.com$|"
    r"(^|\.)(festivalinfo\.nl|partyflock\.nl|eblive\.nl|festileaks\.com|befesti\.nl|"
    r"festivalfans\.nl|followthebeat\.nl|wikipedia\.org)$"
)

# Below this the festival may not exist (or has negligible web presence).
EXISTENCE_WARNING_THRESHOLD = 0.2


class WebsiteDiscovery:
    """Resolves the festival homepage and the existence confidence."""

    def __init__(self, gateway: ISearchGateway) -> None:
        self._gateway = gateway
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def discover(
        self,
        festival_name: str,
        festival_url: str | None = None,
    ) -> PhaseResult[WebsiteInfo]:
        """Run the existence query and pick the homepage.

        Raises
        ------
        src.utils.errors.GatewayError, src.utils.errors.GatewayTimeout
            When the existence query fails after retries.
        """
        query = existence_query(festival_name)
        response = await self._gateway.search(query.query, query.purpose, query.options)

        existence = cross_reference_confidence(festival_name, response.results)

        homepage_url = festival_url
        homepage_source = "provided" if festival_url else None
        if homepage_url is None:
            for evidence in response.results:
                if not _NON_HOMEPAGE_HOSTS.search(extract_domain(evidence.url)):
                    homepage_url = evidence.url
                    homepage_source = "search"
                    break

        ambiguities: list[ExtractionAmbiguous] = []
        if existence.confidence < EXISTENCE_WARNING_THRESHOLD:
            ambiguities.append(
                ExtractionAmbiguous(
                    message=(
                        f"Existence confidence {existence.confidence:.2f} for "
                        f"'{festival_name}': festival may not exist"
                    ),
                    phase="discovering_website",
                )
            )

        info = WebsiteInfo(
            homepage_url=homepage_url,
            homepage_source=homepage_source,
            existence=existence,
            confidence=existence.confidence,
        )
        self._logger.info(
            "website_discovered",
            festival=festival_name,
            homepage=homepage_url,
            existence_confidence=existence.confidence,
            aggregator_suppressed=existence.aggregator_suppressed,
        )
        return PhaseResult(
            section=info,
            confidence=existence.confidence,
            ambiguities=ambiguities,
            summary={"homepage_url": homepage_url, "existence_confidence": existence.confidence},
        )
