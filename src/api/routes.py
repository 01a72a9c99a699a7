"""FastAPI API routes for FestiScout.

Provides the streamed research endpoint, the research-data persistence
endpoints and a health check.  Service dependencies are resolved from
``app.state`` via FastAPI's ``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP (Junior Developer Guide) ───────────────────────────
#
# Endpoint                                   Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/festivals/research                 POST    Start a run, stream progress
# /api/v1/festivals/{fid}/research-data      GET     Fetch the merged report
# /api/v1/festivals/{fid}/research-data      POST    Merge (or replace) research
# /api/v1/festivals/{fid}/research-data      DELETE  Drop stored research
# /api/v1/health                             GET     Health check + provider status
#
# STREAMING + CANCELLATION:
# The research run executes in its own asyncio task so it can finish
# persisting even after the stream ends.  The stream generator polls
# for a client disconnect; when the client goes away (or the generator
# is torn down) it fires the run's CancelToken and the run moves to
# ``aborted`` at its next await point.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from src.api.middleware import require_api_key
from src.api.schemas import (
    DeleteResponse,
    ErrorResponse,
    HealthResponse,
    PersistResearchRequest,
    ResearchDataResponse,
    ResearchStartRequest,
)
from src.interfaces.research_store import IResearchStore, StoredResearch
from src.interfaces.search_gateway import ISearchGateway
from src.pipeline.cancellation import CancelToken
from src.pipeline.orchestrator import ResearchPipeline
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.stream_encoder import ProgressStream
from src.services.persistence import ResearchPersistence
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Applied to every festival route; the health check stays open.
_AUTH = [Depends(require_api_key)]

_VERSION = "0.1.0"

# How often the stream checks for a client disconnect while idle.
_DISCONNECT_POLL_SECONDS = 1.0

# Strong references to in-flight run tasks; the event loop only keeps weak ones.
_RUN_TASKS: set[asyncio.Task] = set()


# ---------------------------------------------------------------------------
# Dependency injection helpers - resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> ResearchPipeline:
    """Return the research orchestrator from application state."""
    return request.app.state.pipeline


def _get_progress_tracker(request: Request) -> ProgressTracker:
    return request.app.state.progress_tracker


def _get_persistence(request: Request) -> ResearchPersistence:
    return request.app.state.persistence


def _get_store(request: Request) -> IResearchStore:
    return request.app.state.research_store


def _get_gateway(request: Request) -> ISearchGateway:
    return request.app.state.search_gateway


PipelineDep = Annotated[ResearchPipeline, Depends(_get_pipeline)]
TrackerDep = Annotated[ProgressTracker, Depends(_get_progress_tracker)]
PersistenceDep = Annotated[ResearchPersistence, Depends(_get_persistence)]
StoreDep = Annotated[IResearchStore, Depends(_get_store)]
GatewayDep = Annotated[ISearchGateway, Depends(_get_gateway)]


# ---------------------------------------------------------------------------
# Research stream
# ---------------------------------------------------------------------------


@router.post(
    "/festivals/research",
    dependencies=_AUTH,
    responses={200: {"content": {"text/event-stream": {}}}, 422: {"model": ErrorResponse}},
    summary="Research a festival and stream progress events",
)
async def start_research(
    body: ResearchStartRequest,
    request: Request,
    pipeline: PipelineDep,
    tracker: TrackerDep,
) -> StreamingResponse:
    """Start a research run and stream ``data: <json>`` events until it completes."""
    run_id = uuid.uuid4().hex
    token = CancelToken()
    stream = ProgressStream()
    tracker.register_listener(run_id, stream.publish)
    run_request = body.to_request()

    async def _run() -> None:
        try:
            await pipeline.run(run_request, token, run_id=run_id)
        except Exception as exc:
            _logger.exception("research_run_crashed", run_id=run_id, error=str(exc))
        finally:
            stream.close()
            tracker.forget(run_id)

    task = asyncio.create_task(_run())
    _RUN_TASKS.add(task)
    task.add_done_callback(_RUN_TASKS.discard)

    _logger.info(
        "research_stream_opened",
        run_id=run_id,
        festival_id=run_request.festival_id,
        festival=run_request.festival_name,
    )
    return StreamingResponse(
        _stream_events(request, stream, token, run_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _stream_events(
    request: Request,
    stream: ProgressStream,
    token: CancelToken,
    run_id: str,
) -> AsyncIterator[str]:
    finished = False
    try:
        while True:
            try:
                chunk = await stream.next_chunk(timeout=_DISCONNECT_POLL_SECONDS)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                continue
            if chunk is None:
                finished = True
                return
            yield chunk
    finally:
        if not finished:
            _logger.info("research_stream_closed_early", run_id=run_id)
            token.cancel("client disconnected")


# ---------------------------------------------------------------------------
# Research data
# ---------------------------------------------------------------------------


def _to_response(stored: StoredResearch) -> ResearchDataResponse:
    return ResearchDataResponse(
        festival_id=stored.festival_id,
        research_data=stored.report.model_dump(mode="json", by_alias=True, exclude_none=True),
        organizing_company=stored.organizing_company,
        homepage_url=stored.homepage_url,
        updated_at=stored.updated_at,
    )


@router.get(
    "/festivals/{festival_id}/research-data",
    dependencies=_AUTH,
    response_model=ResearchDataResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Fetch the merged research report",
)
async def get_research_data(festival_id: str, store: StoreDep) -> ResearchDataResponse:
    stored = await store.get_report(festival_id)
    if stored is None:
        raise HTTPException(status_code=404, detail=f"No research stored for: {festival_id}")
    return _to_response(stored)


@router.post(
    "/festivals/{festival_id}/research-data",
    dependencies=_AUTH,
    response_model=ResearchDataResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Merge partial research into the stored report",
)
async def save_research_data(
    festival_id: str,
    body: PersistResearchRequest,
    persistence: PersistenceDep,
    store: StoreDep,
) -> ResearchDataResponse:
    """Apply the field-wise merge (or a full replace when ``merge`` is false).

    A ``PersistenceFailure`` after the adapter's retry becomes a 503 via
    ErrorHandlingMiddleware.
    """
    await persistence.merge_and_save(
        festival_id,
        body.research_data,
        body.organizing_company,
        body.homepage_url,
        merge=body.merge,
    )
    stored = await store.get_report(festival_id)
    if stored is None:
        raise HTTPException(status_code=503, detail="Research was not readable after save")
    return _to_response(stored)


@router.delete(
    "/festivals/{festival_id}/research-data",
    dependencies=_AUTH,
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete stored research",
)
async def delete_research_data(
    festival_id: str,
    persistence: PersistenceDep,
) -> DeleteResponse:
    deleted = await persistence.delete(festival_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"No research stored for: {festival_id}")
    return DeleteResponse(festival_id=festival_id, deleted=True)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(gateway: GatewayDep, store: StoreDep) -> HealthResponse:
    """Report whether the search gateway is configured and which store is used."""
    search_ok = gateway.is_available()
    providers = {
        "search": search_ok,
        "search_provider": gateway.get_provider_name(),
        "store": store.get_provider_name(),
    }
    return HealthResponse(
        status="healthy" if search_ok else "degraded",
        version=_VERSION,
        providers=providers,
    )
