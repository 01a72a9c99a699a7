"""Unit tests for the per-phase query builders (no gateway involved)."""

from __future__ import annotations

from src.models.evidence import SearchPurpose
from src.services.query_builders import (
    calendar_query,
    company_queries,
    existence_query,
    linkedin_queries,
    news_query,
)


class TestExistenceQuery:
    def test_quotes_the_festival_name(self) -> None:
        query = existence_query("Zomer Fest")
        assert query.query == '"Zomer Fest" festival official website'
        assert query.purpose is SearchPurpose.EXISTENCE
        assert query.options.num_results == 8

    def test_embedded_quotes_are_dropped(self) -> None:
        assert existence_query('The "Big" Day').query.startswith('"The Big Day"')


class TestCompanyQueries:
    def test_three_queries_in_purpose_order(self) -> None:
        queries = company_queries("Zomerfest")
        assert [q.purpose for q in queries] == [
            SearchPurpose.OFFICIAL_SITE,
            SearchPurpose.PRIVACY_POLICY,
            SearchPurpose.LEGAL_REGISTRATION,
        ]

    def test_known_homepage_restricts_official_query_to_host(self) -> None:
        official = company_queries("Zomerfest", "https://www.zomerfest.nl/tickets")[0]
        assert official.query.startswith("site:zomerfest.nl ")
        assert "colofon" in official.query
        assert official.options.category is None

    def test_without_homepage_uses_company_category(self) -> None:
        official = company_queries("Zomerfest")[0]
        assert official.query.startswith('"Zomerfest" official website')
        assert official.options.category == "company"

    def test_privacy_query_is_multilingual(self) -> None:
        privacy = company_queries("Zomerfest")[1]
        assert "privacybeleid" in privacy.query
        assert "privacy policy" in privacy.query

    def test_registration_query_mentions_kvk(self) -> None:
        assert "KvK" in company_queries("Zomerfest")[2].query


class TestLinkedInQueries:
    def test_with_companies(self) -> None:
        queries = linkedin_queries("Zomerfest", ["Acme Events BV", "Zomer Holding"])
        pages = [q for q in queries if q.purpose is SearchPurpose.LINKEDIN_COMPANY]
        people = [q for q in queries if q.purpose is SearchPurpose.LINKEDIN_EMPLOYEES]
        # one page query per company plus one for the festival
        assert len(pages) == 3
        assert len(people) == 6
        assert {q.target_company for q in people} == {"Acme Events BV", "Zomer Holding"}
        assert 'site:linkedin.com/in "works at Acme Events BV"' in [q.query for q in people]
        assert not any(q.purpose is SearchPurpose.LINKEDIN_FESTIVAL for q in queries)

    def test_without_companies_searches_festival_staff(self) -> None:
        queries = linkedin_queries("Zomerfest", [])
        assert [q.purpose for q in queries] == [
            SearchPurpose.LINKEDIN_COMPANY,
            SearchPurpose.LINKEDIN_FESTIVAL,
        ]
        assert queries[1].query.startswith('site:linkedin.com/in "Zomerfest"')


class TestNewsQuery:
    def test_festival_only(self) -> None:
        query = news_query("Zomerfest")
        assert query.query.startswith('"Zomerfest" festival attendance')
        assert query.purpose is SearchPurpose.NEWS
        assert query.options.category == "news"
        assert query.options.num_results == 10

    def test_blends_company_name(self) -> None:
        query = news_query("Zomerfest", "Acme Events BV")
        assert query.query.startswith('("Zomerfest" OR "Acme Events BV")')


class TestCalendarQuery:
    def test_site_restricted(self) -> None:
        query = calendar_query("Zomerfest", "partyflock.nl")
        assert query.query == 'site:partyflock.nl "Zomerfest"'
        assert query.purpose is SearchPurpose.CALENDAR
        assert query.options.num_results == 3
