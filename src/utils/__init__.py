"""Utility modules for FestiScout.

Available utility modules (all re-exported here for convenience):

- **confidence** -- Weighted scoring math, noisy-OR combination of
  independent support and human-readable level mapping.
- **errors** -- Domain-specific exception hierarchy rooted at
  FestiScoutError; gateway, persistence, verification and pipeline
  failures each have their own subclass.
- **concurrency** -- asyncio semaphore throttling and fan-out helpers that
  keep parallel gateway calls under provider rate limits.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- URL/domain normalization, company-name keys and
  fuzzy similarity, date and year extraction from page text.
"""

# -- Confidence scoring utilities ------------------------------------------
from src.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    combine_independent,
    confidence_to_level,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import parallel_search, throttled_gather

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    ExtractionAmbiguous,
    FestiScoutError,
    GatewayError,
    GatewayTimeout,
    PersistenceFailure,
    PipelineError,
    ResearchCancelled,
    VerificationRejected,
)

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- Text normalization -----------------------------------------------------
from src.utils.text_normalizer import company_similarity, extract_domain, normalize_url

__all__ = [
    "ConfidenceLevel",
    "ConfigurationError",
    "ExtractionAmbiguous",
    "FestiScoutError",
    "GatewayError",
    "GatewayTimeout",
    "PersistenceFailure",
    "PipelineError",
    "ResearchCancelled",
    "VerificationRejected",
    "calculate_confidence",
    "combine_independent",
    "company_similarity",
    "confidence_to_level",
    "configure_logging",
    "extract_domain",
    "get_logger",
    "normalize_url",
    "parallel_search",
    "throttled_gather",
]
