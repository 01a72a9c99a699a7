"""Progress stream encoding.

Event factories turn a :class:`ResearchRun` snapshot into typed stream
events, :func:`encode_sse` frames one event as ``data: <json>\\n\\n``, and
:class:`ProgressStream` is the per-request queue the HTTP response iterates.
The orchestrator never sees the wire format.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from src.models.events import CompleteEvent, ProgressEvent, StreamEvent
from src.models.pipeline import ResearchPhase, ResearchRun
from src.models.report import ResearchReport

_CLOSED = object()


def progress_event(
    run: ResearchRun,
    data: dict[str, Any] | None = None,
    message: str | None = None,
    step: ResearchPhase | None = None,
    step_status: str | None = None,
) -> ProgressEvent:
    return ProgressEvent(
        run_id=run.run_id,
        phase=run.phase.value,
        step=step.value if step is not None else None,
        step_status=step_status,
        confidence=run.overall_confidence,
        data=data or None,
        warnings=run.warnings,
        errors=run.errors,
        message=message,
    )


def complete_event(
    run: ResearchRun,
    report: ResearchReport,
    saved_to_database: bool,
) -> CompleteEvent:
    return CompleteEvent(
        run_id=run.run_id,
        phase=run.phase.value,
        success=run.phase == ResearchPhase.COMPLETED,
        saved_to_database=saved_to_database,
        result=report,
        confidence=run.overall_confidence,
        warnings=run.warnings,
        errors=run.errors,
        error=run.failure_reason,
    )


def encode_sse(event: StreamEvent) -> str:
    """Frame *event* as one server-sent-events ``data:`` line."""
    payload = event.model_dump_json(by_alias=True, exclude_none=True)
    return f"data: {payload}\n\n"


class ProgressStream:
    """Queue of encoded events for one streamed response.

    ``publish`` is a plain callable so it can be registered as a
    ProgressTracker listener.  Iteration ends after :meth:`close`.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    def publish(self, event: StreamEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(encode_sse(event))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def next_chunk(self, timeout: float | None = None) -> str | None:
        """Return the next encoded event, or ``None`` once closed.

        Raises ``asyncio.TimeoutError`` when nothing arrives in *timeout*.
        """
        item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            chunk = await self.next_chunk()
            if chunk is None:
                return
            yield chunk
