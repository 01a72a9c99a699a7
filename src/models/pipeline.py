"""Research run state models.

Defines Pydantic v2 models for research phases, per-phase outcomes, phase
errors and the :class:`ResearchRun` snapshot.  All models use frozen config;
the state machine (src/pipeline/state_machine.py) produces new ResearchRun
instances via ``model_copy(update={...})``.

Architecture note:
    ResearchRun is in-memory only and lives for one streamed request.  What
    gets persisted is the ResearchReport assembled from the phase results
    (src/models/report.py), never the run itself.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# ResearchPhase - the states of a research run.
# ---------------------------------------------------------------------------
class ResearchPhase(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Phases of a research run.

        NOT_STARTED → STARTING → DISCOVERING_WEBSITE → EXTRACTING_COMPANY →
        {SEARCHING_LINKEDIN, FETCHING_NEWS, VERIFYING_CALENDARS} →
        VALIDATING_RESULTS → COMPLETED

    FAILED and ABORTED are the alternate terminal states.
    """

    NOT_STARTED = "not_started"
    STARTING = "starting"
    DISCOVERING_WEBSITE = "discovering_website"
    EXTRACTING_COMPANY = "extracting_company"
    SEARCHING_LINKEDIN = "searching_linkedin"
    FETCHING_NEWS = "fetching_news"
    VERIFYING_CALENDARS = "verifying_calendars"
    VALIDATING_RESULTS = "validating_results"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_PHASES


_TERMINAL_PHASES = frozenset(
    {ResearchPhase.COMPLETED, ResearchPhase.FAILED, ResearchPhase.ABORTED}
)

# The three phases that run concurrently once company discovery is done.
DEPENDENT_PHASES: tuple[ResearchPhase, ...] = (
    ResearchPhase.SEARCHING_LINKEDIN,
    ResearchPhase.FETCHING_NEWS,
    ResearchPhase.VERIFYING_CALENDARS,
)


class PhaseKey(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """The four scored discovery phases (weights are keyed by these)."""

    COMPANY = "company"
    LINKEDIN = "linkedin"
    NEWS = "news"
    CALENDAR = "calendar"


PHASE_KEYS: dict[ResearchPhase, PhaseKey] = {
    ResearchPhase.EXTRACTING_COMPANY: PhaseKey.COMPANY,
    ResearchPhase.SEARCHING_LINKEDIN: PhaseKey.LINKEDIN,
    ResearchPhase.FETCHING_NEWS: PhaseKey.NEWS,
    ResearchPhase.VERIFYING_CALENDARS: PhaseKey.CALENDAR,
}


class PhaseStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# PhaseOutcome / PhaseErrorRecord
# ---------------------------------------------------------------------------
class PhaseOutcome(BaseModel):
    """Status and confidence of one scored phase within a run."""

    model_config = ConfigDict(frozen=True)

    status: PhaseStatus = PhaseStatus.PENDING
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    warnings: int = 0
    error: str | None = None


class PhaseErrorRecord(BaseModel):
    """A phase-level error captured without stopping the run."""

    model_config = ConfigDict(frozen=True)

    phase: ResearchPhase
    # Exception class name, e.g. "GatewayTimeout".
    error_type: str
    message: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


# ---------------------------------------------------------------------------
# Request / options
# ---------------------------------------------------------------------------
class ResearchOptions(BaseModel):
    """Per-run overrides of the configured research defaults."""

    model_config = ConfigDict(frozen=True)

    max_retries: int | None = Field(default=None, ge=0, le=5)
    enable_validation: bool = True
    parallel_execution: bool = True
    min_confidence_to_pass: float | None = Field(default=None, ge=0.0, le=1.0)


class ResearchRequest(BaseModel):
    """Inputs of one research run (immutable for the run)."""

    model_config = ConfigDict(frozen=True)

    festival_id: str
    festival_name: str
    festival_url: str | None = None
    options: ResearchOptions = Field(default_factory=ResearchOptions)


# ---------------------------------------------------------------------------
# ResearchRun - the complete snapshot of a run.
# ---------------------------------------------------------------------------
class ResearchRun(BaseModel):
    """State of one research run.

    Immutable - the state machine returns a new instance per transition::

        run = advance(run, PhaseStarted(ResearchPhase.FETCHING_NEWS))
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    request: ResearchRequest
    phase: ResearchPhase = ResearchPhase.NOT_STARTED
    # Keyed by PhaseKey value; every scored phase starts PENDING.
    phase_outcomes: dict[str, PhaseOutcome] = Field(
        default_factory=lambda: {key.value: PhaseOutcome() for key in PhaseKey}
    )
    overall_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    warnings: int = 0
    errors: int = 0
    error_log: list[PhaseErrorRecord] = Field(default_factory=list)
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    completed_at: datetime | None = None
    failure_reason: str | None = None

    @property
    def festival_id(self) -> str:
        return self.request.festival_id

    @property
    def festival_name(self) -> str:
        return self.request.festival_name

    def outcome(self, key: PhaseKey) -> PhaseOutcome:
        return self.phase_outcomes[key.value]

    def completed_phase_count(self) -> int:
        return sum(
            1 for outcome in self.phase_outcomes.values()
            if outcome.status == PhaseStatus.SUCCEEDED
        )
