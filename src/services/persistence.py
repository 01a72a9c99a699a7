"""Persistence adapter: field-wise merge of research into the store.

:func:`merge_reports` is the single merge rule for research reports:

* a top-level section present in the incoming report replaces the stored one;
* a section absent from the incoming report is left untouched;
* a replacement with lower confidence than the stored section is still
  applied (last write wins) but reported as a downgrade, unless the caller
  asks to keep the higher-confidence section.

:class:`ResearchPersistence` wraps read-merge-write with one retry.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from src.interfaces.research_store import IResearchStore
from src.models.report import ResearchReport
from src.utils.errors import PersistenceFailure
from src.utils.logging import get_logger

_MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class MergeOutcome:
    report: ResearchReport
    # Sections replaced by a lower-confidence version.
    downgrades: list[str] = field(default_factory=list)
    # Sections where the stored higher-confidence version was kept.
    kept: list[str] = field(default_factory=list)


def section_confidence(report: ResearchReport, name: str) -> float | None:
    """Confidence of one top-level section, or ``None`` if it has none."""
    section = getattr(report, name)
    if section is None:
        return None
    if name == "confidence":
        return section.overall
    if name == "quality":
        return section.overall / 100
    return getattr(section, "confidence", None)


def merge_reports(
    stored: ResearchReport | None,
    incoming: ResearchReport,
    *,
    keep_higher_confidence: bool = False,
) -> MergeOutcome:
    """Merge *incoming* into *stored* section by section.

    Parameters
    ----------
    stored:
        The currently persisted report (``None`` when nothing is stored).
    incoming:
        The partial report to apply.
    keep_higher_confidence:
        Keep a stored section when the incoming one is less confident.

    Returns
    -------
    MergeOutcome
        The merged report plus the names of downgraded / kept sections.
    """
    if stored is None:
        return MergeOutcome(report=incoming)

    updates = {}
    downgrades: list[str] = []
    kept: list[str] = []
    for name in incoming.present_sections():
        old_conf = section_confidence(stored, name)
        new_conf = section_confidence(incoming, name)
        if old_conf is not None and new_conf is not None and new_conf < old_conf:
            if keep_higher_confidence:
                kept.append(name)
                continue
            downgrades.append(name)
        updates[name] = getattr(incoming, name)

    return MergeOutcome(
        report=stored.model_copy(update=updates),
        downgrades=downgrades,
        kept=kept,
    )


class ResearchPersistence:
    """Merges partial research into the store, retrying once on failure."""

    def __init__(self, store: IResearchStore) -> None:
        self._store = store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def get(self, festival_id: str) -> ResearchReport | None:
        stored = await self._store.get_report(festival_id)
        return stored.report if stored else None

    async def merge_and_save(
        self,
        festival_id: str,
        partial: ResearchReport,
        organizing_company: str | None = None,
        homepage_url: str | None = None,
        *,
        merge: bool = True,
        keep_higher_confidence: bool = False,
    ) -> ResearchReport:
        """Merge *partial* into the stored research and write it back.

        Parameters
        ----------
        festival_id:
            The festival whose research is updated.
        partial:
            Sections to apply; absent sections are left untouched.
        organizing_company, homepage_url:
            Column values; derived from the merged report when omitted.
        merge:
            ``False`` replaces the stored report instead of merging.
        keep_higher_confidence:
            See :func:`merge_reports`.

        Returns
        -------
        ResearchReport
            The report as written.

        Raises
        ------
        PersistenceFailure
            When both attempts failed.
        """
        last_error: PersistenceFailure | None = None
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                return await self._merge_once(
                    festival_id,
                    partial,
                    organizing_company,
                    homepage_url,
                    merge=merge,
                    keep_higher_confidence=keep_higher_confidence,
                )
            except PersistenceFailure as exc:
                last_error = exc
                if attempt < _MAX_ATTEMPTS:
                    self._logger.warning(
                        "persistence_retry",
                        festival_id=festival_id,
                        attempt=attempt,
                        error=str(exc),
                    )

        self._logger.error("persistence_failed", festival_id=festival_id, error=str(last_error))
        raise PersistenceFailure(
            message=f"Could not save research for {festival_id}: {last_error.message}",
            provider_name=self._store.get_provider_name(),
        ) from last_error

    async def delete(self, festival_id: str) -> bool:
        return await self._store.delete_report(festival_id)

    async def _merge_once(
        self,
        festival_id: str,
        partial: ResearchReport,
        organizing_company: str | None,
        homepage_url: str | None,
        *,
        merge: bool,
        keep_higher_confidence: bool,
    ) -> ResearchReport:
        if merge:
            stored = await self._store.get_report(festival_id)
            outcome = merge_reports(
                stored.report if stored else None,
                partial,
                keep_higher_confidence=keep_higher_confidence,
            )
        else:
            outcome = MergeOutcome(report=partial)

        if outcome.downgrades or outcome.kept:
            self._logger.info(
                "research_confidence_downgrade",
                festival_id=festival_id,
                replaced=outcome.downgrades,
                kept_stored=outcome.kept,
            )

        merged = outcome.report
        if organizing_company is None and merged.company_discovery:
            organizing_company = merged.company_discovery.company_name
        if homepage_url is None and merged.website_info:
            homepage_url = merged.website_info.homepage_url

        await self._store.save_report(festival_id, merged, organizing_company, homepage_url)
        return merged
