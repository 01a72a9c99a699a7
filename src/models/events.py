"""Stream event models for the research progress stream.

Two event types are sent to the client, each serialized as one
``data: <json>`` line by ``src/pipeline/stream_encoder.py``:

    {"type": "progress", "phase": ..., "step": ..., "stepStatus": ...,
     "confidence": ..., "data": {...}, "warnings": n, "errors": n}
    {"type": "complete", "success": bool, "savedToDatabase": bool,
     "result": <ResearchReport>}
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.report import ResearchReport


class ProgressEvent(BaseModel):
    """Emitted after every state transition of a run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["progress"] = "progress"
    run_id: str = Field(serialization_alias="runId")
    phase: str
    # Phase this transition concerns and what happened to it (started,
    # succeeded, failed).  Differs from ``phase`` while the dependent
    # phases run concurrently.
    step: str | None = None
    step_status: str | None = Field(default=None, serialization_alias="stepStatus")
    confidence: float | None = None
    # Per-phase summaries, e.g. {"company": {"name": ..., "confidence": ...}}.
    data: dict[str, Any] | None = None
    warnings: int = 0
    errors: int = 0
    message: str | None = None


class CompleteEvent(BaseModel):
    """The final event of a stream."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["complete"] = "complete"
    run_id: str = Field(serialization_alias="runId")
    # Terminal phase: completed, failed or aborted.
    phase: str
    success: bool
    saved_to_database: bool = Field(serialization_alias="savedToDatabase")
    result: ResearchReport
    confidence: float = 0.0
    warnings: int = 0
    errors: int = 0
    error: str | None = None


StreamEvent = ProgressEvent | CompleteEvent
