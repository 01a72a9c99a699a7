"""Custom exception hierarchy for FestiScout.

All application exceptions inherit from :class:`FestiScoutError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "exa", "sqlite") caused the failure.

The hierarchy is organized by research domain:

    FestiScoutError  (base -- catch-all for any FestiScout error)
    +-- GatewayError          (external search call failed: transport / status)
    +-- GatewayTimeout        (external search call exceeded its time ceiling)
    +-- ExtractionAmbiguous   (evidence found but no claim could be asserted)
    +-- VerificationRejected  (candidate failed the employment-evidence gate)
    +-- PersistenceFailure    (research store read/write failed)
    +-- PipelineError         (illegal research-run state transition)
    +-- ResearchCancelled     (caller cancelled the run)
    +-- ConfigurationError    (startup / missing config)

``GatewayTimeout`` is a sibling of ``GatewayError``, not a subclass, so
``except GatewayError`` does not catch timeouts.

``ExtractionAmbiguous`` and ``VerificationRejected`` describe expected
outcomes, not malfunctions.  Extractors hand ``ExtractionAmbiguous``
instances back as values (the orchestrator counts them as warnings) and
catch ``VerificationRejected`` internally to write an audit log line.
"""


class FestiScoutError(Exception):
    """Base exception for all FestiScout errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[exa] HTTP 502 from search API``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# External search gateway errors
# ---------------------------------------------------------------------------

class GatewayError(FestiScoutError):
    """Raised when a search call fails for a reason other than a timeout.

    ``status_code`` is set when the failure was an HTTP status returned by
    the search API, and ``None`` for transport-level failures.
    """

    def __init__(
        self,
        message: str = "External search call failed",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code

    @property
    def status_code(self) -> int | None:
        return self._status_code


class GatewayTimeout(FestiScoutError):
    """Raised when a search call exceeds the configured time ceiling."""

    def __init__(
        self,
        message: str = "External search call timed out",
        provider_name: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float | None:
        return self._timeout_seconds


# ---------------------------------------------------------------------------
# Extraction outcomes
# ---------------------------------------------------------------------------

class ExtractionAmbiguous(FestiScoutError):
    """Evidence was found but did not support a confident claim.

    Not an error condition: phase extractors return instances of this class
    next to their (empty or low-confidence) result so the orchestrator can
    count them as warnings.
    """

    def __init__(
        self,
        message: str = "Evidence did not reach the confidence threshold",
        provider_name: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._phase = phase

    @property
    def phase(self) -> str | None:
        return self._phase


class VerificationRejected(FestiScoutError):
    """A candidate claim failed the employment-evidence check."""

    def __init__(
        self,
        message: str = "Candidate rejected by employment verification",
        provider_name: str | None = None,
        candidate_url: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._candidate_url = candidate_url
        self._reason = reason

    @property
    def candidate_url(self) -> str | None:
        return self._candidate_url

    @property
    def reason(self) -> str | None:
        return self._reason


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class PersistenceFailure(FestiScoutError):
    """Raised when the research store cannot be read or written."""

    def __init__(
        self,
        message: str = "Research store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(FestiScoutError):
    """Raised when the research state machine is asked for an illegal transition."""

    def __init__(
        self,
        message: str = "Research pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ResearchCancelled(FestiScoutError):
    """Raised inside the orchestrator when the caller's cancel token fires."""

    def __init__(
        self,
        message: str = "Research run cancelled by caller",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(FestiScoutError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
