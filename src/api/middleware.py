"""API middleware - CORS, request logging, error handling and API keys.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), automatic
conversion of ``FestiScoutError`` subclasses into JSON ``ErrorResponse``
bodies, and the static API-key check used as a route dependency.

# ─── MIDDLEWARE EXECUTION ORDER (Junior Developer Guide) ───────────────
#
# Starlette middleware is a stack (LIFO - last added, first executed):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)   # added 1st → inner
#     app.add_middleware(RequestLoggingMiddleware)   # added 2nd → outermost
#
#   Request flow:
#     Client → RequestLogging → ErrorHandling → route handler
#   Response flow:
#     Client ← RequestLogging ← ErrorHandling ← route handler
#
# So RequestLoggingMiddleware sees the *final* response status code
# (even if ErrorHandling replaced an exception with a structured error).
#
# The research stream itself never raises through here: run errors are
# reported inside the stream as progress/complete events.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import secrets
import time

import structlog
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import FestiScoutError, PersistenceFailure
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_BEARER_PREFIX = "bearer "


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; override with specific origins in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    For the streaming endpoint the duration covers the time to the first
    byte, not the whole stream.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``FestiScoutError`` subclasses and return structured JSON errors.

    ``PersistenceFailure`` maps to 503 (storage unavailable, retry later);
    every other application error maps to 500.  Stack traces are logged
    server-side only - never leaked to the client.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except FestiScoutError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
            )
            status_code = 503 if isinstance(exc, PersistenceFailure) else 500
            return JSONResponse(
                status_code=status_code,
                content=body.model_dump(),
            )


# ---------------------------------------------------------------------------
# API key check
# ---------------------------------------------------------------------------


def extract_api_key(request: Request) -> str | None:
    """Read the key from ``X-API-Key`` or an ``Authorization: Bearer`` header."""
    key = request.headers.get("x-api-key")
    if key:
        return key.strip()
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith(_BEARER_PREFIX):
        return authorization[len(_BEARER_PREFIX):].strip() or None
    return None


def require_api_key(request: Request) -> None:
    """Route dependency comparing the caller's key against the allow-list.

    An empty allow-list (``API_KEYS`` unset) disables the check.

    Raises
    ------
    HTTPException
        401 when the key is missing or not on the list.
    """
    allowed: list[str] = getattr(request.app.state, "api_keys", [])
    if not allowed:
        return
    supplied = extract_api_key(request)
    if supplied and any(secrets.compare_digest(supplied, key) for key in allowed):
        return
    _logger.warning("api_key_rejected", path=str(request.url.path), key_present=bool(supplied))
    raise HTTPException(status_code=401, detail="Invalid or missing API key")
