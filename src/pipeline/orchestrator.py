"""Central orchestrator for the festival research pipeline.

Drives one research run through website discovery, company discovery and
the three dependent phases (LinkedIn, news, calendars), validates the
combined result, and hands the assembled :class:`ResearchReport` to the
persistence adapter.  Every state change goes through the pure
:func:`advance` transition function and is broadcast through the injected
:class:`ProgressTracker`.

ARCHITECTURE NOTE (for junior developers):
    The run state is a frozen ResearchRun.  The orchestrator never edits
    it in place; ``_transition`` applies one event with ``advance`` and
    emits one progress event for the new state.  A lock around those two
    steps keeps a run's events in transition order even while the three
    dependent phases run concurrently.

    Each phase follows the same pattern:
        1. PhaseStarted  → progress event
        2. Call the phase service (bounded by the phase timeout)
        3. PhaseSucceeded with confidence + summary, or PhaseFailed with
           the error type.  A failed phase never stops its siblings.
        4. Persist the new section right away (incremental persistence)

    Only two things end a run early:
        - website discovery fails (the run moves to ``failed``)
        - the caller's CancelToken fires (the run moves to ``aborted``)
    In both cases the sections produced so far are still persisted.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from src.interfaces.search_gateway import retry_override
from src.models.pipeline import (
    DEPENDENT_PHASES,
    PhaseKey,
    ResearchPhase,
    ResearchRequest,
    ResearchRun,
)
from src.models.report import ReportConfidence, ResearchReport, RunMeta
from src.pipeline.cancellation import CancelToken
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.state_machine import (
    DEFAULT_PHASE_WEIGHTS,
    PhaseFailed,
    PhaseRevised,
    PhaseStarted,
    PhaseSucceeded,
    RunAborted,
    RunCompleted,
    RunEvent,
    RunFailed,
    RunStarted,
    advance,
)
from src.pipeline.stream_encoder import complete_event, progress_event
from src.services.calendar_verification import CalendarVerificationService
from src.services.company_discovery import CompanyDiscoveryService
from src.services.linkedin_discovery import LinkedInDiscoveryService
from src.services.news_discovery import NewsDiscoveryService, news_confidence
from src.services.persistence import ResearchPersistence
from src.services.phase_support import PhaseResult
from src.services.quality_metrics import calculate_quality
from src.services.website_discovery import WebsiteDiscovery
from src.utils.confidence import confidence_to_level
from src.utils.errors import (
    FestiScoutError,
    GatewayError,
    GatewayTimeout,
    PersistenceFailure,
    ResearchCancelled,
)
from src.utils.logging import get_logger

# News articles whose source scored below this are dropped by validation.
_MIN_NEWS_QUALITY = 0.15

# Report section and progress-data key written by each phase.
_PHASE_SECTIONS: dict[ResearchPhase, tuple[str, str]] = {
    ResearchPhase.DISCOVERING_WEBSITE: ("website_info", "website"),
    ResearchPhase.EXTRACTING_COMPANY: ("company_discovery", PhaseKey.COMPANY.value),
    ResearchPhase.SEARCHING_LINKEDIN: ("linkedin", PhaseKey.LINKEDIN.value),
    ResearchPhase.FETCHING_NEWS: ("news", PhaseKey.NEWS.value),
    ResearchPhase.VERIFYING_CALENDARS: ("calendar_verification", PhaseKey.CALENDAR.value),
}


@dataclass(frozen=True)
class PipelineSettings:
    """Run-level tunables from the ``research`` config section."""

    weights: Mapping[PhaseKey, float] = field(
        default_factory=lambda: dict(DEFAULT_PHASE_WEIGHTS)
    )
    min_confidence_to_pass: float = 0.3
    # None disables the per-phase ceiling.
    phase_timeout_seconds: float | None = 180.0
    persist_incrementally: bool = True


@dataclass
class RunOutcome:
    """What a finished run hands back to its caller."""

    run: ResearchRun
    report: ResearchReport
    saved_to_database: bool

    @property
    def success(self) -> bool:
        return self.run.phase == ResearchPhase.COMPLETED


@dataclass
class _RunContext:
    run: ResearchRun
    token: CancelToken
    sections: dict[str, Any] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # Serializes incremental saves of concurrently finishing phases.
    persist_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def festival_id(self) -> str:
        return self.run.festival_id


class ResearchPipeline:
    """Runs the research phases for one festival at a time per call.

    A single instance is shared by all requests; every call to :meth:`run`
    keeps its state in its own run context, so concurrent runs for
    different festivals share nothing but the injected services.
    """

    def __init__(
        self,
        website_discovery: WebsiteDiscovery,
        company_discovery: CompanyDiscoveryService,
        linkedin_discovery: LinkedInDiscoveryService,
        news_discovery: NewsDiscoveryService,
        calendar_verification: CalendarVerificationService,
        persistence: ResearchPersistence,
        progress_tracker: ProgressTracker,
        settings: PipelineSettings | None = None,
    ) -> None:
        self._website = website_discovery             # discovering_website
        self._company = company_discovery             # extracting_company
        self._linkedin = linkedin_discovery           # searching_linkedin
        self._news = news_discovery                   # fetching_news
        self._calendar = calendar_verification        # verifying_calendars
        self._persistence = persistence
        self._progress_tracker = progress_tracker
        self._settings = settings or PipelineSettings()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        request: ResearchRequest,
        cancel_token: CancelToken | None = None,
        run_id: str | None = None,
    ) -> RunOutcome:
        """Execute one research run end to end.

        Parameters
        ----------
        request:
            Festival identity plus per-run option overrides.
        cancel_token:
            Cooperative cancellation signal; checked at every phase
            boundary and raced against in-flight phase work.
        run_id:
            Identifier used for progress events; generated when omitted.

        Returns
        -------
        RunOutcome
            The terminal run state, the assembled report and whether the
            final save succeeded.  Phase failures, cancellation and
            persistence failures are reported here, never raised.
        """
        run = ResearchRun(run_id=run_id or uuid.uuid4().hex, request=request)
        ctx = _RunContext(run=run, token=cancel_token or CancelToken())

        retry_token = retry_override.set(request.options.max_retries)
        try:
            with structlog.contextvars.bound_contextvars(
                run_id=run.run_id, festival_id=request.festival_id
            ):
                self._logger.info("research_started", festival=request.festival_name)
                await self._drive(ctx)
                outcome = await self._finish(ctx)
        finally:
            retry_override.reset(retry_token)
        return outcome

    # ------------------------------------------------------------------
    # Run driver
    # ------------------------------------------------------------------

    async def _drive(self, ctx: _RunContext) -> None:
        """Move the run to a terminal phase.  Never raises phase errors."""
        try:
            ctx.token.raise_if_cancelled()
            await self._transition(ctx, RunStarted())

            if not await self._discover_website(ctx):
                return

            ctx.token.raise_if_cancelled()
            website = ctx.sections.get("website_info")
            homepage_url = website.homepage_url if website else None
            await self._guarded(
                ctx,
                self._run_phase(
                    ctx,
                    ResearchPhase.EXTRACTING_COMPANY,
                    lambda: self._company.discover(ctx.run.festival_name, homepage_url),
                ),
            )

            ctx.token.raise_if_cancelled()
            await self._run_dependent_phases(ctx)

            ctx.token.raise_if_cancelled()
            await self._validate(ctx)
            await self._transition(ctx, RunCompleted())

        except ResearchCancelled as exc:
            self._logger.warning(
                "research_aborted",
                reason=exc.message,
                completed_phases=ctx.run.completed_phase_count(),
            )
            if not ctx.run.phase.is_terminal:
                await self._transition(ctx, RunAborted(reason=exc.message))
        except FestiScoutError as exc:
            self._logger.error("research_failed", error_type=type(exc).__name__, error=str(exc))
            if not ctx.run.phase.is_terminal:
                await self._transition(ctx, RunFailed(reason=exc.message))

    async def _discover_website(self, ctx: _RunContext) -> bool:
        """First step; any failure here is fatal for the run."""
        phase = ResearchPhase.DISCOVERING_WEBSITE
        await self._transition(ctx, PhaseStarted(phase))
        try:
            result = await self._guarded(
                ctx,
                self._with_timeout(
                    self._website.discover(
                        ctx.run.festival_name, ctx.run.request.festival_url
                    )
                ),
            )
        except ResearchCancelled:
            raise
        except Exception as exc:
            error_type = type(exc).__name__
            message = exc.message if isinstance(exc, FestiScoutError) else str(exc)
            await self._transition(
                ctx,
                PhaseFailed(phase, error_type, message),
                data=_failure_data(phase, error_type, message),
                message=f"{phase.value}: {message}",
            )
            if isinstance(exc, (GatewayError, GatewayTimeout)):
                reason = f"Search gateway unreachable: {message}"
            else:
                reason = f"Website discovery failed: {message}"
            await self._transition(ctx, RunFailed(reason=reason))
            self._logger.error("research_failed", error_type=error_type, error=message)
            return False

        await self._record_success(ctx, phase, result)
        return True

    async def _run_dependent_phases(self, ctx: _RunContext) -> None:
        company = ctx.sections.get("company_discovery")
        company_names = [c.name for c in company.candidates] if company else []
        company_name = company.company_name if company else None
        festival = ctx.run.festival_name

        factories: dict[ResearchPhase, Callable[[], Awaitable[PhaseResult]]] = {
            ResearchPhase.SEARCHING_LINKEDIN: lambda: self._linkedin.discover(
                festival, company_names
            ),
            ResearchPhase.FETCHING_NEWS: lambda: self._news.discover(festival, company_name),
            ResearchPhase.VERIFYING_CALENDARS: lambda: self._calendar.verify(festival),
        }

        if ctx.run.request.options.parallel_execution:
            await self._guarded(
                ctx,
                asyncio.gather(
                    *(self._run_phase(ctx, phase, factories[phase]) for phase in DEPENDENT_PHASES)
                ),
            )
        else:
            for phase in DEPENDENT_PHASES:
                ctx.token.raise_if_cancelled()
                await self._guarded(ctx, self._run_phase(ctx, phase, factories[phase]))

    async def _run_phase(
        self,
        ctx: _RunContext,
        phase: ResearchPhase,
        factory: Callable[[], Awaitable[PhaseResult]],
    ) -> PhaseResult | None:
        """Run one isolated phase: its failure is recorded, never raised."""
        await self._transition(ctx, PhaseStarted(phase))
        try:
            result = await self._with_timeout(factory())
        except Exception as exc:
            error_type = type(exc).__name__
            message = exc.message if isinstance(exc, FestiScoutError) else str(exc)
            self._logger.warning(
                "phase_failed", phase=phase.value, error_type=error_type, error=message
            )
            await self._transition(
                ctx,
                PhaseFailed(phase, error_type, message),
                data=_failure_data(phase, error_type, message),
                message=f"{phase.value}: {message}",
            )
            return None

        await self._record_success(ctx, phase, result)
        if self._settings.persist_incrementally:
            section_name, _ = _PHASE_SECTIONS[phase]
            await self._persist_partial(ctx, ResearchReport(**{section_name: result.section}))
        return result

    async def _record_success(
        self, ctx: _RunContext, phase: ResearchPhase, result: PhaseResult
    ) -> None:
        section_name, data_key = _PHASE_SECTIONS[phase]
        ctx.sections[section_name] = result.section
        for ambiguity in result.ambiguities:
            self._logger.info(
                "extraction_ambiguous", phase=ambiguity.phase, detail=ambiguity.message
            )
        await self._transition(
            ctx,
            PhaseSucceeded(phase, result.confidence, result.warning_count),
            data={data_key: result.summary},
        )

    # ------------------------------------------------------------------
    # Validation and completion
    # ------------------------------------------------------------------

    async def _validate(self, ctx: _RunContext) -> None:
        """Heuristic validation pass over the combined sections."""
        await self._transition(ctx, PhaseStarted(ResearchPhase.VALIDATING_RESULTS))
        options = ctx.run.request.options
        if not options.enable_validation:
            await self._transition(ctx, PhaseSucceeded(ResearchPhase.VALIDATING_RESULTS))
            return

        min_pass = options.min_confidence_to_pass
        if min_pass is None:
            min_pass = self._settings.min_confidence_to_pass
        warnings: list[str] = []

        news = ctx.sections.get("news")
        if news is not None:
            kept = [a for a in news.articles if a.quality_score >= _MIN_NEWS_QUALITY]
            if len(kept) != len(news.articles):
                self._logger.info(
                    "news_articles_dropped",
                    dropped=len(news.articles) - len(kept),
                    min_quality=_MIN_NEWS_QUALITY,
                )
                confidence = news_confidence(len(kept))
                ctx.sections["news"] = news.model_copy(
                    update={"articles": kept, "confidence": confidence}
                )
                await self._transition(
                    ctx,
                    PhaseRevised(ResearchPhase.FETCHING_NEWS, confidence),
                    data={PhaseKey.NEWS.value: {"count": len(kept), "confidence": confidence}},
                )

        company = ctx.sections.get("company_discovery")
        if company is not None and company.company_name:
            validated = company.confidence >= min_pass
            if not validated:
                warnings.append(
                    f"company: '{company.company_name}' confidence {company.confidence:.2f} "
                    f"below {min_pass:.2f}"
                )
            ctx.sections["company_discovery"] = company.model_copy(
                update={"validated": validated}
            )

        if ctx.run.overall_confidence < min_pass:
            warnings.append(
                f"overall confidence {ctx.run.overall_confidence:.2f} below {min_pass:.2f}"
            )

        await self._transition(
            ctx,
            PhaseSucceeded(ResearchPhase.VALIDATING_RESULTS, warnings=len(warnings)),
            message="; ".join(warnings) or None,
        )

    async def _finish(self, ctx: _RunContext) -> RunOutcome:
        """Persist what the run produced and emit the complete event."""
        run = ctx.run
        if run.phase == ResearchPhase.COMPLETED:
            report = self._build_report(ctx)
        else:
            # Partial sections only; cancellation is not rollback.
            report = ResearchReport(**ctx.sections)

        saved = False
        if not report.is_empty():
            try:
                async with ctx.persist_lock:
                    await self._persistence.merge_and_save(ctx.festival_id, report)
                saved = True
            except PersistenceFailure as exc:
                self._logger.error("research_not_saved", error=str(exc), phase=run.phase.value)

        self._logger.info(
            "research_finished",
            phase=run.phase.value,
            overall_confidence=run.overall_confidence,
            warnings=run.warnings,
            errors=run.errors,
            sections=report.present_sections(),
            saved_to_database=saved,
        )
        await self._progress_tracker.update(run.run_id, complete_event(run, report, saved))
        return RunOutcome(run=run, report=report, saved_to_database=saved)

    def _build_report(self, ctx: _RunContext) -> ResearchReport:
        run = ctx.run
        report = ResearchReport(
            **ctx.sections,
            confidence=ReportConfidence(
                overall=run.overall_confidence,
                level=confidence_to_level(run.overall_confidence).value,
            ),
            meta=RunMeta(
                run_id=run.run_id,
                phase=run.phase.value,
                started_at=run.started_at,
                completed_at=run.completed_at,
                warnings=run.warnings,
                errors=run.errors,
                error_log=[record.model_dump(mode="json") for record in run.error_log],
            ),
        )
        return report.model_copy(update={"quality": calculate_quality(report)})

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _transition(
        self,
        ctx: _RunContext,
        event: RunEvent,
        data: dict[str, Any] | None = None,
        message: str | None = None,
    ) -> None:
        step, step_status = _step_of(event)
        async with ctx.lock:
            ctx.run = advance(ctx.run, event, self._settings.weights)
            await self._progress_tracker.update(
                ctx.run.run_id,
                progress_event(ctx.run, data, message, step=step, step_status=step_status),
            )

    async def _with_timeout(self, awaitable: Awaitable[PhaseResult]) -> PhaseResult:
        timeout = self._settings.phase_timeout_seconds
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise GatewayTimeout(
                message=f"Phase exceeded {timeout}s",
                timeout_seconds=timeout,
            ) from exc

    async def _guarded(self, ctx: _RunContext, awaitable: Awaitable[Any]) -> Any:
        """Await *awaitable* unless the cancel token fires first.

        On cancellation the in-flight work (and any HTTP call inside it) is
        cancelled and :class:`ResearchCancelled` is raised.
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(ctx.token.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise ResearchCancelled(message=ctx.token.reason or "Research cancelled")

    async def _persist_partial(self, ctx: _RunContext, partial: ResearchReport) -> None:
        """Incremental save; a failure is logged and the run continues."""
        try:
            async with ctx.persist_lock:
                await self._persistence.merge_and_save(ctx.festival_id, partial)
        except PersistenceFailure as exc:
            self._logger.warning(
                "incremental_save_failed",
                sections=partial.present_sections(),
                error=str(exc),
            )


def _step_of(event: RunEvent) -> tuple[ResearchPhase | None, str | None]:
    if isinstance(event, PhaseStarted):
        return event.phase, "started"
    if isinstance(event, PhaseSucceeded):
        return event.phase, "succeeded"
    if isinstance(event, PhaseFailed):
        return event.phase, "failed"
    if isinstance(event, PhaseRevised):
        return event.phase, "revised"
    return None, None


def _failure_data(phase: ResearchPhase, error_type: str, message: str) -> dict[str, Any]:
    _, data_key = _PHASE_SECTIONS.get(phase, (None, phase.value))
    return {data_key: {"error": message, "error_type": error_type}}
