"""FestiScout FastAPI application entry point.

Wires together the search gateway, research store, phase services and the
research pipeline via dependency injection.  Loads configuration from
``.env`` and ``config/config.yaml`` and configures structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.pipeline.orchestrator import PipelineSettings, ResearchPipeline
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.state_machine import validate_weights
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.search.exa_gateway import ExaSearchGateway
from src.providers.store.sqlite_research_store import SQLiteResearchStore
from src.services.calendar_verification import CalendarVerificationService
from src.services.company_discovery import CompanyDiscoveryService
from src.services.linkedin_discovery import LinkedInDiscoveryService
from src.services.news_discovery import NewsDiscoveryService
from src.services.persistence import ResearchPersistence
from src.services.website_discovery import WebsiteDiscovery
from src.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


def _build_all(app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.

    Raises
    ------
    src.utils.errors.ConfigurationError
        When the configured phase weights are invalid.
    """
    gateway_cfg = app_config.get("gateway", {})
    research_cfg = app_config.get("research", {})

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=gateway_cfg.get("timeout_seconds", 60))
    cache = MemoryCacheProvider(
        max_size=gateway_cfg.get("cache_size", 1000),
        ttl=gateway_cfg.get("cache_ttl_seconds", 3600),
    )

    # -- Search gateway --
    gateway = ExaSearchGateway(
        http_client=http_client,
        api_key=gateway_cfg.get("api_key", ""),
        base_url=gateway_cfg.get("base_url", "https://api.exa.ai"),
        timeout_seconds=gateway_cfg.get("timeout_seconds", 60),
        max_retries=gateway_cfg.get("max_retries", 2),
        backoff_base=gateway_cfg.get("backoff_base_seconds", 1.0),
        max_concurrent=gateway_cfg.get("max_concurrent_requests", 5),
        cache=cache,
    )

    # -- Storage --
    store = SQLiteResearchStore(
        db_path=app_config.get("storage", {}).get("research_db_path", "data/research.db")
    )
    persistence = ResearchPersistence(store)

    # -- Pipeline --
    progress_tracker = ProgressTracker()
    pipeline = ResearchPipeline(
        website_discovery=WebsiteDiscovery(gateway),
        company_discovery=CompanyDiscoveryService(
            gateway, max_candidates=research_cfg.get("max_company_candidates", 3)
        ),
        linkedin_discovery=LinkedInDiscoveryService(
            gateway, max_people=research_cfg.get("max_linkedin_people", 15)
        ),
        news_discovery=NewsDiscoveryService(
            gateway, max_articles=research_cfg.get("max_news_articles", 10)
        ),
        calendar_verification=CalendarVerificationService(gateway),
        persistence=persistence,
        progress_tracker=progress_tracker,
        settings=PipelineSettings(
            weights=validate_weights(research_cfg.get("weights")),
            min_confidence_to_pass=research_cfg.get("min_confidence_to_pass", 0.3),
            phase_timeout_seconds=research_cfg.get("phase_timeout_seconds", 180),
            persist_incrementally=research_cfg.get("persist_incrementally", True),
        ),
    )

    return {
        "http_client": http_client,
        "cache": cache,
        "search_gateway": gateway,
        "research_store": store,
        "persistence": persistence,
        "progress_tracker": progress_tracker,
        "pipeline": pipeline,
        "api_keys": app_config.get("api", {}).get("keys", []),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await application.state.research_store.initialize()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        search_provider=components["search_gateway"].get_provider_name(),
        search_available=components["search_gateway"].is_available(),
        api_key_check=bool(components["api_keys"]),
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="FestiScout API",
        version=_VERSION,
        description=(
            "Research a music festival's organizing company, key people, press "
            "coverage and calendar listings, streaming progress as each phase "
            "completes and persisting a merged research report."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.cors_origin_list())

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
