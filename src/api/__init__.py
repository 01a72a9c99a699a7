"""FestiScout API layer - routes, schemas and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    require_api_key,
)
from src.api.routes import router
from src.api.schemas import (
    ErrorResponse,
    HealthResponse,
    PersistResearchRequest,
    ResearchDataResponse,
    ResearchStartRequest,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "require_api_key",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "PersistResearchRequest",
    "ResearchDataResponse",
    "ResearchStartRequest",
]
