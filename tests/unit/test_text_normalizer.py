"""Unit tests for URL, company-name and date helpers."""

from __future__ import annotations

import pytest

from src.utils.text_normalizer import (
    company_similarity,
    extract_date,
    extract_domain,
    extract_years,
    normalize_company_key,
    normalize_url,
    shorten,
)


class TestExtractDomain:
    def test_strips_www_and_lowercases(self) -> None:
        assert extract_domain("https://WWW.Example.NL/contact") == "example.nl"

    def test_strips_port(self) -> None:
        assert extract_domain("http://localhost:8080/x") == "localhost"

    def test_bare_host(self) -> None:
        assert extract_domain("festivalinfo.nl/festival/123") == "festivalinfo.nl"

    def test_garbage_returns_empty(self) -> None:
        assert extract_domain("") == ""


class TestNormalizeUrl:
    def test_drops_query_fragment_and_trailing_slash(self) -> None:
        assert (
            normalize_url("https://www.linkedin.com/in/jane-doe/?trk=abc#top")
            == "https://linkedin.com/in/jane-doe"
        )

    def test_variants_share_a_key(self) -> None:
        assert normalize_url("HTTPS://linkedin.com/in/x/") == normalize_url(
            "https://www.linkedin.com/in/x"
        )


class TestCompanyKeys:
    @pytest.mark.parametrize(
        "name",
        ["Acme Events B.V.", "ACME Events BV", "acme  events bv", "Acme Events B. V."],
    )
    def test_legal_suffix_spellings_share_a_key(self, name: str) -> None:
        assert normalize_company_key(name) == "acme events bv"

    def test_similarity_identical_names(self) -> None:
        assert company_similarity("Acme Events BV", "Acme Events B.V.") == pytest.approx(1.0)

    def test_similarity_unrelated_names_is_low(self) -> None:
        assert company_similarity("Acme Events BV", "Zeppelin Holding") < 0.5

    def test_similarity_empty_is_zero(self) -> None:
        assert company_similarity("", "Acme") == 0.0


class TestExtractDate:
    def test_iso_date(self) -> None:
        assert extract_date("Published 2025-06-14 by staff") == "2025-06-14"

    def test_day_month_year(self) -> None:
        assert extract_date("Op 14-06-2025 gaat het los") == "2025-06-14"

    def test_dutch_month_name(self) -> None:
        assert extract_date("Zaterdag 5 juli 2025 in het park") == "2025-07-05"

    def test_english_month_name_first(self) -> None:
        assert extract_date("Returning on August 23, 2025") == "2025-08-23"

    def test_invalid_calendar_date_is_skipped(self) -> None:
        assert extract_date("31-02-2025 or 01-03-2025") == "2025-03-01"

    def test_no_date(self) -> None:
        assert extract_date("No dates here") is None


class TestExtractYears:
    def test_distinct_sorted_years(self) -> None:
        assert extract_years("Editions 2024, 2023 and 2024 again; next 2025") == [2023, 2024, 2025]

    def test_ignores_out_of_range_numbers(self) -> None:
        assert extract_years("Room 1999 and 2100") == []


class TestShorten:
    def test_short_text_unchanged(self) -> None:
        assert shorten("  a   b  ") == "a b"

    def test_cuts_at_word_boundary(self) -> None:
        result = shorten("alpha beta gamma delta", max_length=12)
        assert result == "alpha beta..."
