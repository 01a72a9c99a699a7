"""Search gateway implementations.

Currently only Exa.  Another search API could be added here as a second
implementation of ISearchGateway without touching the research services.
"""

from src.providers.search.exa_gateway import ExaSearchGateway

__all__ = ["ExaSearchGateway"]
