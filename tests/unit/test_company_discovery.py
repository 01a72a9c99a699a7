"""Unit tests for company extraction and the company discovery service."""

from __future__ import annotations

from typing import Any

import pytest

from src.models.evidence import SearchPurpose
from src.services.company_discovery import (
    CompanyDiscoveryService,
    clean_company_name,
    extract_company_candidates,
    is_plausible_company_name,
)
from src.utils.errors import GatewayError, GatewayTimeout


# ======================================================================
# Name hygiene
# ======================================================================


class TestCleanCompanyName:
    def test_strips_leading_noise_words(self) -> None:
        assert clean_company_name("Copyright  The Acme Events BV,") == "Acme Events BV"

    def test_keeps_single_word(self) -> None:
        assert clean_company_name("Door") == "Door"


class TestIsPlausibleCompanyName:
    @pytest.mark.parametrize("name", ["Acme Events BV", "Stichting Zomer Cultuur", "Mojo Concerts"])
    def test_accepts_real_names(self, name: str) -> None:
        assert is_plausible_company_name(name)

    @pytest.mark.parametrize(
        "name",
        [
            "Ab",  # too short
            "acme events",  # not capitalized
            "Privacy Policy BV",  # boilerplate
            "ABCDEFGHIJKL",  # shouting acronym
            "A1 2 3 4 5 6 7 8",  # mostly digits
        ],
    )
    def test_rejects_fragments(self, name: str) -> None:
        assert not is_plausible_company_name(name)


# ======================================================================
# extract_company_candidates
# ======================================================================


class TestExtractCompanyCandidates:
    def test_organized_by_with_legal_suffix(self, make_evidence: Any) -> None:
        evidence = [
            make_evidence(
                "https://zomerfest.nl/colofon",
                "Zomerfest is organized by Acme Events BV. KvK nummer: 12345678",
                purpose=SearchPurpose.OFFICIAL_SITE,
            )
        ]
        candidates, ambiguities = extract_company_candidates(evidence, "Zomerfest")
        assert ambiguities == []
        top = candidates[0]
        assert top.name == "Acme Events BV"
        assert top.kvk_number == "12345678"
        assert {"legal_suffix", "organized_by", "kvk_registration"} <= set(top.match_categories)
        assert top.confidence >= 0.25

    def test_suffix_spellings_merge_into_one_candidate(self, make_evidence: Any) -> None:
        evidence = [
            make_evidence("https://zomerfest.nl", "© 2025 Acme Events B.V."),
            make_evidence(
                "https://kvk.nl/acme",
                "Handelsnaam: Acme Events BV",
                purpose=SearchPurpose.LEGAL_REGISTRATION,
                quality=0.9,
            ),
        ]
        candidates, _ = extract_company_candidates(evidence, "Zomerfest")
        assert len(candidates) == 1
        assert candidates[0].source_count == 2

    def test_more_sources_rank_higher(self, make_evidence: Any) -> None:
        evidence = [
            make_evidence("https://a.nl", "Organized by Acme Events BV"),
            make_evidence("https://b.nl", "Organized by Acme Events BV"),
            make_evidence("https://c.nl", "Organized by Zeppelin Concerts BV"),
        ]
        candidates, _ = extract_company_candidates(evidence, "Zomerfest")
        assert [c.name for c in candidates] == ["Acme Events BV", "Zeppelin Concerts BV"]
        assert candidates[0].confidence > candidates[1].confidence

    def test_presents_festival_pattern(self, make_evidence: Any) -> None:
        evidence = [make_evidence("https://x.nl", "Mojo Concerts presents Zomerfest 2025")]
        candidates, _ = extract_company_candidates(evidence, "Zomerfest")
        assert candidates[0].name == "Mojo Concerts"
        assert "presents_festival" in candidates[0].match_categories

    def test_at_most_max_candidates(self, make_evidence: Any) -> None:
        evidence = [
            make_evidence(f"https://s{i}.nl", f"Organized by Company{i} Events BV")
            for i in range(5)
        ]
        candidates, _ = extract_company_candidates(evidence, "Zomerfest", max_candidates=3)
        assert len(candidates) == 3

    def test_evidence_without_names_is_ambiguous(self, make_evidence: Any) -> None:
        evidence = [make_evidence("https://zomerfest.nl", "tickets and line-up soon")]
        candidates, ambiguities = extract_company_candidates(evidence, "Zomerfest")
        assert candidates == []
        assert len(ambiguities) == 1
        assert ambiguities[0].phase == "extracting_company"

    def test_no_evidence_is_not_ambiguous(self) -> None:
        assert extract_company_candidates([], "Zomerfest") == ([], [])


# ======================================================================
# CompanyDiscoveryService
# ======================================================================


class TestCompanyDiscoveryService:
    @pytest.mark.asyncio
    async def test_discovers_company(self, gateway: Any, make_evidence: Any) -> None:
        gateway.script(
            SearchPurpose.PRIVACY_POLICY,
            [make_evidence("https://zomerfest.nl/privacy", "Organized by Acme Events BV")],
        )
        result = await CompanyDiscoveryService(gateway).discover(
            "Zomerfest", "https://zomerfest.nl"
        )
        assert result.section.company_name == "Acme Events BV"
        assert result.confidence == result.section.confidence
        assert result.summary["name"] == "Acme Events BV"
        assert len(gateway.calls) == 3
        assert gateway.queries(SearchPurpose.OFFICIAL_SITE)[0].startswith("site:zomerfest.nl")

    @pytest.mark.asyncio
    async def test_nothing_found_is_a_normal_result(self, gateway: Any) -> None:
        result = await CompanyDiscoveryService(gateway).discover("Zomerfest")
        assert result.section.company_name is None
        assert result.section.confidence == 0.0
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_partial_failure_becomes_warning(self, gateway: Any, make_evidence: Any) -> None:
        gateway.script(SearchPurpose.LEGAL_REGISTRATION, error=GatewayError("HTTP 502"))
        gateway.script(
            SearchPurpose.OFFICIAL_SITE,
            [make_evidence("https://zomerfest.nl", "Organized by Acme Events BV")],
        )
        result = await CompanyDiscoveryService(gateway).discover("Zomerfest")
        assert result.section.company_name == "Acme Events BV"
        assert result.section.queries_failed == 1
        assert len(result.warnings) == 1
        assert "GatewayError" in result.warnings[0]

    @pytest.mark.asyncio
    async def test_every_query_failing_raises(self, gateway: Any) -> None:
        gateway.script("Zomerfest", error=GatewayTimeout("slow"))
        with pytest.raises(GatewayTimeout):
            await CompanyDiscoveryService(gateway).discover("Zomerfest")
