"""Integration tests for FastAPI API endpoints using TestClient."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import ErrorHandlingMiddleware
from src.api.routes import router as api_router
from src.models.evidence import SearchPurpose
from src.pipeline.orchestrator import ResearchPipeline
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.store.sqlite_research_store import SQLiteResearchStore
from src.services.calendar_verification import CalendarVerificationService
from src.services.company_discovery import CompanyDiscoveryService
from src.services.linkedin_discovery import LinkedInDiscoveryService
from src.services.news_discovery import NewsDiscoveryService
from src.services.persistence import ResearchPersistence
from src.services.website_discovery import WebsiteDiscovery
from src.utils.errors import GatewayError, PersistenceFailure

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app(gateway: Any, store: SQLiteResearchStore) -> FastAPI:
    """Create a FastAPI app wired to a scripted gateway and a temp database."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.include_router(api_router)

    asyncio.run(store.initialize())
    persistence = ResearchPersistence(store)
    tracker = ProgressTracker()
    pipeline = ResearchPipeline(
        website_discovery=WebsiteDiscovery(gateway),
        company_discovery=CompanyDiscoveryService(gateway),
        linkedin_discovery=LinkedInDiscoveryService(gateway),
        news_discovery=NewsDiscoveryService(gateway),
        calendar_verification=CalendarVerificationService(gateway, today=date(2026, 5, 1)),
        persistence=persistence,
        progress_tracker=tracker,
    )

    app.state.pipeline = pipeline
    app.state.progress_tracker = tracker
    app.state.persistence = persistence
    app.state.research_store = store
    app.state.search_gateway = gateway
    app.state.api_keys = []
    return app


def _frames(body: str) -> list[dict]:
    frames = [chunk for chunk in body.split("\n\n") if chunk]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: "):]) for frame in frames]


_START_BODY = {"festivalId": "f-1", "festivalName": "Zomerfest"}


@pytest.fixture
def store(db_path: str) -> SQLiteResearchStore:
    return SQLiteResearchStore(db_path)


@pytest.fixture
def test_app(gateway: Any, make_evidence: Any, store: SQLiteResearchStore) -> FastAPI:
    gateway.script(
        SearchPurpose.EXISTENCE,
        [make_evidence("https://www.zomerfest.nl", "Zomerfest official site", title="Zomerfest")],
    )
    gateway.script(
        SearchPurpose.OFFICIAL_SITE,
        [
            make_evidence(
                "https://www.zomerfest.nl/colofon",
                "Zomerfest is organized by Acme Events BV. KvK 12345678",
            )
        ],
    )
    return _create_test_app(gateway, store)


# ---------------------------------------------------------------------------
# Research stream
# ---------------------------------------------------------------------------


class TestResearchStream:
    def test_streams_progress_then_complete(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        response = client.post("/api/v1/festivals/research", json=_START_BODY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = _frames(response.text)
        assert frames[0]["type"] == "progress"
        assert frames[0]["phase"] == "starting"
        assert all(f["type"] == "progress" for f in frames[:-1])

        complete = frames[-1]
        assert complete["type"] == "complete"
        assert complete["success"] is True
        assert complete["savedToDatabase"] is True
        assert complete["result"]["companyDiscovery"]["company_name"] == "Acme Events BV"
        assert len({f["runId"] for f in frames}) == 1

    def test_snake_case_body_is_accepted(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        response = client.post(
            "/api/v1/festivals/research",
            json={"festival_id": "f-2", "festival_name": "Zomerfest"},
        )
        assert response.status_code == 200
        assert _frames(response.text)[-1]["success"] is True

    def test_unreachable_gateway_is_reported_in_stream(
        self, gateway: Any, store: SQLiteResearchStore
    ) -> None:
        gateway.script(SearchPurpose.EXISTENCE, error=GatewayError("connection refused"))
        client = TestClient(_create_test_app(gateway, store))
        response = client.post("/api/v1/festivals/research", json=_START_BODY)

        assert response.status_code == 200
        complete = _frames(response.text)[-1]
        assert complete["success"] is False
        assert complete["phase"] == "failed"
        assert complete["error"].startswith("Search gateway unreachable")
        assert complete["savedToDatabase"] is False

    def test_options_are_applied(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        body = {**_START_BODY, "options": {"maxRetries": 0, "minConfidenceToPass": 0.99}}
        response = client.post("/api/v1/festivals/research", json=body)
        complete = _frames(response.text)[-1]
        assert complete["result"]["companyDiscovery"]["validated"] is False
        assert set(test_app.state.search_gateway.retry_bounds) == {0}

    @pytest.mark.parametrize(
        "body",
        [
            {"festivalId": "f-1"},
            {"festivalId": "f-1", "festivalName": ""},
            {**_START_BODY, "options": {"maxRetries": 9}},
            {**_START_BODY, "options": {"minConfidenceToPass": 1.5}},
        ],
    )
    def test_invalid_body_is_rejected(self, test_app: FastAPI, body: dict) -> None:
        client = TestClient(test_app)
        response = client.post("/api/v1/festivals/research", json=body)
        assert response.status_code == 422
        assert test_app.state.search_gateway.calls == []


# ---------------------------------------------------------------------------
# Research data
# ---------------------------------------------------------------------------


class TestResearchData:
    def test_get_unknown_festival_is_404(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        response = client.get("/api/v1/festivals/missing/research-data")
        assert response.status_code == 404

    def test_save_then_get(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        payload = {
            "research_data": {
                "companyDiscovery": {"company_name": "Acme Events BV", "confidence": 0.7}
            },
            "homepage_url": "https://zomerfest.nl",
        }
        saved = client.post("/api/v1/festivals/f-9/research-data", json=payload)
        assert saved.status_code == 200
        assert saved.json()["organizing_company"] == "Acme Events BV"

        fetched = client.get("/api/v1/festivals/f-9/research-data").json()
        assert fetched["festival_id"] == "f-9"
        assert fetched["homepage_url"] == "https://zomerfest.nl"
        assert fetched["research_data"]["companyDiscovery"]["company_name"] == "Acme Events BV"

    def test_merge_keeps_other_sections(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        url = "/api/v1/festivals/f-9/research-data"
        client.post(
            url,
            json={"research_data": {"companyDiscovery": {"company_name": "Acme Events BV"}}},
        )
        client.post(
            url,
            json={"research_data": {"calendarVerification": {"found_on": ["Partyflock"]}}},
        )
        data = client.get(url).json()["research_data"]
        assert data["companyDiscovery"]["company_name"] == "Acme Events BV"
        assert data["calendarVerification"]["found_on"] == ["Partyflock"]

    def test_replace_drops_other_sections(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        url = "/api/v1/festivals/f-9/research-data"
        client.post(
            url,
            json={"research_data": {"companyDiscovery": {"company_name": "Acme Events BV"}}},
        )
        client.post(
            url,
            json={
                "research_data": {"calendarVerification": {"found_on": ["Partyflock"]}},
                "merge": False,
            },
        )
        data = client.get(url).json()["research_data"]
        assert "companyDiscovery" not in data

    def test_delete(self, test_app: FastAPI) -> None:
        client = TestClient(test_app)
        url = "/api/v1/festivals/f-9/research-data"
        client.post(
            url,
            json={"research_data": {"companyDiscovery": {"company_name": "Acme Events BV"}}},
        )
        response = client.delete(url)
        assert response.status_code == 200
        assert response.json() == {"festival_id": "f-9", "deleted": True}
        assert client.get(url).status_code == 404
        assert client.delete(url).status_code == 404

    def test_store_failure_is_503(self, gateway: Any, db_path: str) -> None:
        class _BrokenStore(SQLiteResearchStore):
            async def save_report(self, *args: Any, **kwargs: Any) -> Any:
                raise PersistenceFailure("disk full")

        client = TestClient(_create_test_app(gateway, _BrokenStore(db_path)))
        response = client.post(
            "/api/v1/festivals/f-9/research-data",
            json={"research_data": {"companyDiscovery": {"company_name": "Acme Events BV"}}},
        )
        assert response.status_code == 503
        assert response.json()["error"] == "PersistenceFailure"


# ---------------------------------------------------------------------------
# Auth and health
# ---------------------------------------------------------------------------


class TestApiKeys:
    def test_missing_key_is_401(self, test_app: FastAPI) -> None:
        test_app.state.api_keys = ["secret"]
        client = TestClient(test_app)
        response = client.get("/api/v1/festivals/f-1/research-data")
        assert response.status_code == 401

    def test_header_and_bearer_keys_are_accepted(self, test_app: FastAPI) -> None:
        test_app.state.api_keys = ["secret"]
        client = TestClient(test_app)
        url = "/api/v1/festivals/f-1/research-data"
        assert client.get(url, headers={"X-API-Key": "secret"}).status_code == 404
        assert client.get(url, headers={"Authorization": "Bearer secret"}).status_code == 404
        assert client.get(url, headers={"X-API-Key": "wrong"}).status_code == 401

    def test_stream_requires_key(self, test_app: FastAPI) -> None:
        test_app.state.api_keys = ["secret"]
        client = TestClient(test_app)
        response = client.post("/api/v1/festivals/research", json=_START_BODY)
        assert response.status_code == 401
        assert test_app.state.search_gateway.calls == []

    def test_health_is_open(self, test_app: FastAPI) -> None:
        test_app.state.api_keys = ["secret"]
        client = TestClient(test_app)
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["providers"] == {
            "search": True,
            "search_provider": "scripted",
            "store": "sqlite_research",
        }
