"""Abstract base class for research report storage.

The store keeps one research blob per festival plus the two denormalised
columns the dashboard lists (organizing company and homepage).  Merge rules
live above the store in ``src/services/persistence.py``; implementations only
read and write whole reports.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from src.models.report import ResearchReport


@dataclass(frozen=True)
class StoredResearch:
    """A stored research row."""

    festival_id: str
    report: ResearchReport
    organizing_company: str | None = None
    homepage_url: str | None = None
    updated_at: datetime | None = None


class IResearchStore(ABC):
    """Contract for persisting research reports keyed by festival id."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the backing schema if needed."""

    @abstractmethod
    async def get_report(self, festival_id: str) -> StoredResearch | None:
        """Return the stored research for *festival_id*, or ``None``.

        Raises
        ------
        src.utils.errors.PersistenceFailure
            If the store cannot be read.
        """

    @abstractmethod
    async def save_report(
        self,
        festival_id: str,
        report: ResearchReport,
        organizing_company: str | None = None,
        homepage_url: str | None = None,
    ) -> StoredResearch:
        """Insert or replace the research for *festival_id*.

        ``organizing_company`` / ``homepage_url`` only overwrite the stored
        columns when not ``None``.

        Raises
        ------
        src.utils.errors.PersistenceFailure
            If the write fails.
        """

    @abstractmethod
    async def delete_report(self, festival_id: str) -> bool:
        """Delete the research for *festival_id*; ``True`` if a row existed."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
