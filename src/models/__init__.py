"""FestiScout domain models - re-exports all public model classes.

Other parts of the codebase can import directly from ``src.models``
(e.g. ``from src.models import ResearchReport``) instead of the
individual submodules.

The models are organized across four submodules by domain concern:
    - evidence.py  - Search evidence, authenticity scores, cross-references
    - report.py    - Per-phase report sections and the merged ResearchReport
    - pipeline.py  - Research run state, phases, options and error records
    - events.py    - Progress / complete events sent on the research stream

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

from src.models.events import CompleteEvent, ProgressEvent, StreamEvent
from src.models.evidence import (
    AuthenticityScore,
    CrossReferenceResult,
    Evidence,
    SearchPurpose,
    SourceBreakdown,
    SourceCategory,
)
from src.models.pipeline import (
    PhaseErrorRecord,
    PhaseKey,
    PhaseOutcome,
    PhaseStatus,
    ResearchOptions,
    ResearchPhase,
    ResearchRequest,
    ResearchRun,
)
from src.models.report import (
    CalendarListing,
    CalendarVerification,
    CompanyCandidate,
    CompanyDiscovery,
    DiscoveryChannel,
    EmploymentMatchType,
    EmploymentVerification,
    LinkedInCompanyPage,
    LinkedInDiscovery,
    LinkedInProfile,
    NewsArticle,
    NewsCategory,
    NewsDiscovery,
    QualityScore,
    ReportConfidence,
    ResearchReport,
    RoleBucket,
    RunMeta,
    WebsiteInfo,
)

__all__ = [
    # events
    "CompleteEvent",
    "ProgressEvent",
    "StreamEvent",
    # evidence
    "AuthenticityScore",
    "CrossReferenceResult",
    "Evidence",
    "SearchPurpose",
    "SourceBreakdown",
    "SourceCategory",
    # pipeline
    "PhaseErrorRecord",
    "PhaseKey",
    "PhaseOutcome",
    "PhaseStatus",
    "ResearchOptions",
    "ResearchPhase",
    "ResearchRequest",
    "ResearchRun",
    # report
    "CalendarListing",
    "CalendarVerification",
    "CompanyCandidate",
    "CompanyDiscovery",
    "DiscoveryChannel",
    "EmploymentMatchType",
    "EmploymentVerification",
    "LinkedInCompanyPage",
    "LinkedInDiscovery",
    "LinkedInProfile",
    "NewsArticle",
    "NewsCategory",
    "NewsDiscovery",
    "QualityScore",
    "ReportConfidence",
    "ResearchReport",
    "RoleBucket",
    "RunMeta",
    "WebsiteInfo",
]
