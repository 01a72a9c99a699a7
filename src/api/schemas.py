"""Pydantic request/response schemas for the FestiScout API.

Defines the public contract for the research stream, the research-data
persistence endpoints and the health check.

# ─── HOW SCHEMAS WORK (Junior Developer Guide) ────────────────────────
#
# These Pydantic models define the *shape* of every HTTP request body
# and response body in the API.  FastAPI uses them for:
#
#   1. **Validation** - Incoming JSON is automatically validated against
#      the schema.  Invalid requests get a 422 error with details.
#   2. **Serialization** - Outgoing objects are automatically converted
#      to JSON matching the schema (via response_model=...).
#   3. **Documentation** - FastAPI generates OpenAPI/Swagger docs from
#      these schemas automatically (visible at /docs).
#
# The start-research body uses the camelCase keys the UI sends
# (festivalId, festivalName, ...); populate_by_name also accepts the
# snake_case spelling.  The persistence body is snake_case.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.pipeline import ResearchOptions, ResearchRequest
from src.models.report import ResearchReport


class ResearchOptionsInput(BaseModel):
    """Per-run overrides sent with a start-research request."""

    model_config = ConfigDict(populate_by_name=True)

    max_retries: int | None = Field(default=None, ge=0, le=5, alias="maxRetries")
    enable_ai_validation: bool = Field(default=True, alias="enableAIValidation")
    parallel_execution: bool = Field(default=True, alias="parallelExecution")
    min_confidence_to_pass: float | None = Field(
        default=None, ge=0.0, le=1.0, alias="minConfidenceToPass"
    )


class ResearchStartRequest(BaseModel):
    """Body of ``POST /api/v1/festivals/research``."""

    model_config = ConfigDict(populate_by_name=True)

    festival_id: str = Field(..., min_length=1, alias="festivalId")
    festival_name: str = Field(..., min_length=1, max_length=200, alias="festivalName")
    festival_url: str | None = Field(default=None, alias="festivalUrl")
    options: ResearchOptionsInput = Field(default_factory=ResearchOptionsInput)

    def to_request(self) -> ResearchRequest:
        """Convert to the internal run request."""
        return ResearchRequest(
            festival_id=self.festival_id,
            festival_name=self.festival_name.strip(),
            festival_url=self.festival_url or None,
            options=ResearchOptions(
                max_retries=self.options.max_retries,
                enable_validation=self.options.enable_ai_validation,
                parallel_execution=self.options.parallel_execution,
                min_confidence_to_pass=self.options.min_confidence_to_pass,
            ),
        )


class PersistResearchRequest(BaseModel):
    """Body of ``POST /api/v1/festivals/{festival_id}/research-data``."""

    research_data: ResearchReport
    organizing_company: str | None = None
    homepage_url: str | None = None
    # False replaces the stored report instead of merging into it.
    merge: bool = True


class ResearchDataResponse(BaseModel):
    """Stored research for one festival."""

    festival_id: str
    research_data: dict[str, Any]
    organizing_company: str | None = None
    homepage_url: str | None = None
    updated_at: datetime | None = None


class DeleteResponse(BaseModel):
    festival_id: str
    deleted: bool


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
