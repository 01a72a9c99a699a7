"""Cooperative cancellation for research runs.

The API layer creates one :class:`CancelToken` per streamed request and
cancels it when the client disconnects.  The orchestrator checks the token
at every phase boundary and races in-flight phase work against
:meth:`CancelToken.wait`, cancelling the phase tasks (and with them the
in-flight HTTP requests) as soon as the token fires.
"""

from __future__ import annotations

import asyncio

from src.utils.errors import ResearchCancelled


class CancelToken:
    """A one-shot cancellation flag backed by :class:`asyncio.Event`."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Signal cancellation (idempotent; the first reason wins)."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ResearchCancelled(message=self._reason or "Research cancelled")
