"""Pure state machine for research runs.

``advance(run, event) -> run'`` is the only way a :class:`ResearchRun`
changes.  It validates the transition, updates the counters and recomputes
the overall confidence.  The orchestrator calls it and then emits one
progress event per returned state.

# ─── TRANSITIONS (Junior Developer Guide) ─────────────────────────────
#
#   not_started ─RunStarted─→ starting
#   starting ─PhaseStarted(discovering_website)─→ discovering_website
#   discovering_website ─PhaseStarted(extracting_company)─→ extracting_company
#   extracting_company ─PhaseStarted(linkedin|news|calendar)─→ that phase
#        (only once company discovery has succeeded or failed)
#   dependent phase ─PhaseStarted(another dependent phase)─→ that phase
#   dependent phase ─PhaseStarted(validating_results)─→ validating_results
#        (only once all three dependent phases have settled)
#   validating_results ─RunCompleted─→ completed
#   any non-terminal ─RunFailed─→ failed,  ─RunAborted─→ aborted
#
# PhaseSucceeded / PhaseFailed record a phase outcome without changing
# which phase is current.  PhaseRevised replaces the confidence of a
# phase that already succeeded (used by validation).  Any event on a
# terminal run is a PipelineError.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from src.models.pipeline import (
    DEPENDENT_PHASES,
    PHASE_KEYS,
    PhaseErrorRecord,
    PhaseKey,
    PhaseOutcome,
    PhaseStatus,
    ResearchPhase,
    ResearchRun,
)
from src.utils.confidence import calculate_confidence
from src.utils.errors import ConfigurationError, PipelineError

DEFAULT_PHASE_WEIGHTS: dict[PhaseKey, float] = {
    PhaseKey.COMPANY: 0.30,
    PhaseKey.LINKEDIN: 0.30,
    PhaseKey.NEWS: 0.20,
    PhaseKey.CALENDAR: 0.20,
}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RunStarted:
    pass


@dataclass(frozen=True)
class PhaseStarted:
    phase: ResearchPhase


@dataclass(frozen=True)
class PhaseSucceeded:
    phase: ResearchPhase
    confidence: float = 0.0
    warnings: int = 0


@dataclass(frozen=True)
class PhaseFailed:
    phase: ResearchPhase
    error_type: str
    message: str


@dataclass(frozen=True)
class PhaseRevised:
    """Replaces the confidence of an already succeeded phase."""

    phase: ResearchPhase
    confidence: float


@dataclass(frozen=True)
class RunCompleted:
    pass


@dataclass(frozen=True)
class RunFailed:
    reason: str


@dataclass(frozen=True)
class RunAborted:
    reason: str = "cancelled"


RunEvent = (
    RunStarted
    | PhaseStarted
    | PhaseSucceeded
    | PhaseFailed
    | PhaseRevised
    | RunCompleted
    | RunFailed
    | RunAborted
)

_SETTLED = (PhaseStatus.SUCCEEDED, PhaseStatus.FAILED)

_SERIAL_NEXT: dict[ResearchPhase, ResearchPhase] = {
    ResearchPhase.STARTING: ResearchPhase.DISCOVERING_WEBSITE,
    ResearchPhase.DISCOVERING_WEBSITE: ResearchPhase.EXTRACTING_COMPANY,
}


# ---------------------------------------------------------------------------
# Weights and confidence
# ---------------------------------------------------------------------------
def validate_weights(weights: Mapping[str, float] | None) -> dict[PhaseKey, float]:
    """Validate configured phase weights.

    Missing phases fall back to the defaults.

    Raises
    ------
    ConfigurationError
        For unknown phase names, negative weights or an all-zero set.
    """
    resolved = dict(DEFAULT_PHASE_WEIGHTS)
    for name, value in (weights or {}).items():
        try:
            key = PhaseKey(name)
        except ValueError as exc:
            raise ConfigurationError(message=f"Unknown phase weight '{name}'") from exc
        if value < 0:
            raise ConfigurationError(message=f"Phase weight '{name}' must be >= 0, got {value}")
        resolved[key] = float(value)
    if not any(resolved.values()):
        raise ConfigurationError(message="At least one phase weight must be positive")
    return resolved


def overall_confidence(
    outcomes: Mapping[str, PhaseOutcome],
    weights: Mapping[PhaseKey, float] = DEFAULT_PHASE_WEIGHTS,
) -> float:
    """Weighted mean of succeeded phases, scaled by the share that succeeded.

    A run where one of four phases succeeded with confidence 0.9 scores at
    most ``0.9 * 1/4``.
    """
    completed = [
        key for key in PhaseKey if outcomes[key.value].status == PhaseStatus.SUCCEEDED
    ]
    if not completed:
        return 0.0
    mean = calculate_confidence(
        [outcomes[key.value].confidence for key in completed],
        [weights[key] for key in completed],
    )
    return round(mean * len(completed) / len(PhaseKey), 4)


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------
def advance(
    run: ResearchRun,
    event: RunEvent,
    weights: Mapping[PhaseKey, float] = DEFAULT_PHASE_WEIGHTS,
) -> ResearchRun:
    """Apply *event* to *run* and return the new state.

    Raises
    ------
    PipelineError
        If the event is not allowed in the current state.
    """
    if run.phase.is_terminal:
        raise PipelineError(
            message=f"Run {run.run_id} is {run.phase.value}; cannot apply {type(event).__name__}"
        )

    if isinstance(event, RunStarted):
        _require(run, run.phase == ResearchPhase.NOT_STARTED, event)
        return run.model_copy(update={"phase": ResearchPhase.STARTING})

    if isinstance(event, PhaseStarted):
        _require(run, _can_start(run, event.phase), event)
        update: dict = {"phase": event.phase}
        key = PHASE_KEYS.get(event.phase)
        if key is not None:
            update["phase_outcomes"] = _with_outcome(
                run, key, PhaseOutcome(status=PhaseStatus.RUNNING)
            )
        return run.model_copy(update=update)

    if isinstance(event, PhaseSucceeded):
        key = PHASE_KEYS.get(event.phase)
        update = {"warnings": run.warnings + event.warnings}
        if key is not None:
            _require(run, run.outcome(key).status == PhaseStatus.RUNNING, event)
            outcomes = _with_outcome(
                run,
                key,
                PhaseOutcome(
                    status=PhaseStatus.SUCCEEDED,
                    confidence=max(0.0, min(1.0, event.confidence)),
                    warnings=event.warnings,
                ),
            )
            update["phase_outcomes"] = outcomes
            update["overall_confidence"] = overall_confidence(outcomes, weights)
        return run.model_copy(update=update)

    if isinstance(event, PhaseFailed):
        key = PHASE_KEYS.get(event.phase)
        record = PhaseErrorRecord(
            phase=event.phase, error_type=event.error_type, message=event.message
        )
        update = {"errors": run.errors + 1, "error_log": [*run.error_log, record]}
        if key is not None:
            _require(run, run.outcome(key).status == PhaseStatus.RUNNING, event)
            outcomes = _with_outcome(
                run, key, PhaseOutcome(status=PhaseStatus.FAILED, error=event.message)
            )
            update["phase_outcomes"] = outcomes
            update["overall_confidence"] = overall_confidence(outcomes, weights)
        return run.model_copy(update=update)

    if isinstance(event, PhaseRevised):
        key = PHASE_KEYS.get(event.phase)
        _require(
            run, key is not None and run.outcome(key).status == PhaseStatus.SUCCEEDED, event
        )
        previous = run.outcome(key)
        outcomes = _with_outcome(
            run,
            key,
            previous.model_copy(update={"confidence": max(0.0, min(1.0, event.confidence))}),
        )
        return run.model_copy(
            update={
                "phase_outcomes": outcomes,
                "overall_confidence": overall_confidence(outcomes, weights),
            }
        )

    if isinstance(event, RunCompleted):
        _require(run, run.phase == ResearchPhase.VALIDATING_RESULTS, event)
        return run.model_copy(
            update={"phase": ResearchPhase.COMPLETED, "completed_at": _now()}
        )

    if isinstance(event, RunFailed):
        return run.model_copy(
            update={
                "phase": ResearchPhase.FAILED,
                "failure_reason": event.reason,
                "completed_at": _now(),
            }
        )

    if isinstance(event, RunAborted):
        return run.model_copy(
            update={
                "phase": ResearchPhase.ABORTED,
                "failure_reason": event.reason,
                "completed_at": _now(),
            }
        )

    raise PipelineError(message=f"Unknown event {event!r}")


def _can_start(run: ResearchRun, target: ResearchPhase) -> bool:
    current = run.phase
    if _SERIAL_NEXT.get(current) == target:
        return True
    if target in DEPENDENT_PHASES:
        company_settled = run.outcome(PhaseKey.COMPANY).status in _SETTLED
        not_started = run.outcome(PHASE_KEYS[target]).status == PhaseStatus.PENDING
        return (
            company_settled
            and not_started
            and (current == ResearchPhase.EXTRACTING_COMPANY or current in DEPENDENT_PHASES)
        )
    if target == ResearchPhase.VALIDATING_RESULTS:
        return current in DEPENDENT_PHASES and all(
            run.outcome(PHASE_KEYS[phase]).status in _SETTLED for phase in DEPENDENT_PHASES
        )
    return False


def _with_outcome(
    run: ResearchRun, key: PhaseKey, outcome: PhaseOutcome
) -> dict[str, PhaseOutcome]:
    return {**run.phase_outcomes, key.value: outcome}


def _require(run: ResearchRun, condition: bool, event: RunEvent) -> None:
    if not condition:
        raise PipelineError(
            message=(
                f"Illegal transition for run {run.run_id}: "
                f"{type(event).__name__} in phase {run.phase.value}"
            )
        )


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017
