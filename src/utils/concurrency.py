"""Shared concurrency primitives for research fan-out.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with every awaitable wrapped
   in a semaphore acquire/release.  Phase extractors use it when several
   gateway queries belong to one phase.

2. **parallel_search** -- fan-out-then-merge for a list of query dicts.
   Unlike a bare gather it keeps successes and failures apart, so a phase
   can tell "every query failed" (a phase error) from "some queries
   failed" (a warning) from "no matches" (a normal empty result).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

# Default cap on concurrent gateway calls issued by one phase.  The
# gateway holds its own semaphore across runs; this one only limits a
# single fan-out.
_DEFAULT_FANOUT_LIMIT = 5

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass
class FanoutResult:
    """Outcome of :func:`parallel_search`.

    ``results`` holds the successful return values in query order (lists
    are flattened); ``failures`` pairs each failed query dict with the
    exception it raised.
    """

    results: list[Any] = field(default_factory=list)
    failures: list[tuple[dict[str, Any], BaseException]] = field(default_factory=list)
    attempted: int = 0

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and len(self.failures) == self.attempted


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  A fresh semaphore of
        size ``_DEFAULT_FANOUT_LIMIT`` is used when omitted.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(_DEFAULT_FANOUT_LIMIT)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def parallel_search(
    search_fn: Callable[..., Awaitable[Any]],
    queries: list[dict[str, Any]],
    logger: structlog.BoundLogger | None = None,
    error_msg: str = "search_query_failed",
) -> FanoutResult:
    """Execute several search calls in parallel and split the outcomes.

    Parameters
    ----------
    search_fn:
        The async search function, called as ``search_fn(**query)``.
    queries:
        List of keyword-argument dicts, one per search call.
    logger:
        Optional structured logger for warnings on failures.
    error_msg:
        Log event name for failed queries.

    Returns
    -------
    FanoutResult
        Flattened successes plus the failures with their query dicts.

    Raises
    ------
    asyncio.CancelledError
        Cancellation is never folded into ``failures``.
    """
    if logger is None:
        logger = _logger

    coros = [search_fn(**q) for q in queries]
    raw_results = await throttled_gather(coros, return_exceptions=True)

    outcome = FanoutResult(attempted=len(queries))
    for idx, result in enumerate(raw_results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            logger.warning(error_msg, query=queries[idx], error=str(result))
            outcome.failures.append((queries[idx], result))
        elif isinstance(result, list):
            outcome.results.extend(result)
        else:
            outcome.results.append(result)

    return outcome
