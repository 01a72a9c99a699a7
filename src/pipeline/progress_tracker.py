"""Run progress tracking with callback-based listener notification.

Stores the latest progress event for each research run and broadcasts every
update to the listeners registered for that run.  Listeners are keyed by run
ID so concurrent runs never see each other's events.

# ─── HOW PROGRESS TRACKING WORKS (Junior Developer Guide) ─────────────
#
#   Orchestrator ──update()──→ ProgressTracker ──callback()──→ ProgressStream
#                                                          ──→ (any other listener)
#
#   1. The orchestrator calls tracker.update(run_id, event) after every
#      state transition.
#   2. ProgressTracker stores the event and calls the run's listeners in
#      registration order, awaiting each before the next update is accepted,
#      so a run's events reach its stream in transition order.
#   3. The streaming endpoint registered ProgressStream.publish as listener
#      and writes each event to the HTTP response.
#
#   - Listener errors are caught and logged; a broken stream must not stop
#     the research run.
#   - Both sync and async callbacks are supported.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from src.models.events import StreamEvent
from src.utils.logging import get_logger


class ProgressTracker:
    """Tracks and broadcasts research progress via callbacks."""

    def __init__(self) -> None:
        self._latest: dict[str, StreamEvent] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(self, run_id: str, event: StreamEvent) -> None:
        """Record *event* for *run_id* and notify the run's listeners."""
        self._latest[run_id] = event
        self._logger.debug(
            "progress_update",
            run_id=run_id,
            type=event.type,
            phase=event.phase,
            warnings=event.warnings,
            errors=event.errors,
        )
        await self._notify_listeners(run_id, event)

    def register_listener(self, run_id: str, callback: Callable) -> None:
        """Register a callback ``callback(event)`` for one run's updates."""
        listeners = self._listeners.setdefault(run_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered", run_id=run_id, total_listeners=len(listeners)
            )

    def unregister_listener(self, run_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(run_id, [])
        if callback in listeners:
            listeners.remove(callback)
        if not listeners:
            self._listeners.pop(run_id, None)

    def get_status(self, run_id: str) -> StreamEvent | None:
        """Return the last event recorded for *run_id*, if any."""
        return self._latest.get(run_id)

    def forget(self, run_id: str) -> None:
        """Drop stored state and listeners of a finished run."""
        self._latest.pop(run_id, None)
        self._listeners.pop(run_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, run_id: str, event: StreamEvent) -> None:
        for callback in list(self._listeners.get(run_id, [])):
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    run_id=run_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
