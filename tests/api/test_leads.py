from __future__ import annotations

from contextlib import contextmanager

import pytest

from app.api.routes.leads import get_lead_candidate_source, get_lead_youtube_client
from app.clients.youtube import YouTubeQuotaError
from app.main import app
from app.services.prospecting.candidate_source import FixtureCandidateSource
from pipelines import youtube_verify
from tests.helpers.youtube_stub import StubChannel, StubYouTubeClient

DARK_DOCS = StubChannel("UCdark", "Dark Docs", 1_240_000, upload_days_ago=(4,))
PLAINLY = StubChannel("UCplain", "Plainly Difficult", 653_000, upload_days_ago=(2,))

SEARCH_PAYLOAD = {
    "query": "Cold War",
    "filters": {"category": "Documentary", "min_subs": "50k", "max_subs": "2M"},
    "blocklist": [],
}


@pytest.fixture(autouse=True)
def _no_pacing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(youtube_verify.settings, "pacing_delay_seconds", 0.0)


@contextmanager
def _override_sources(candidates, youtube_client):
    app.dependency_overrides[get_lead_candidate_source] = lambda: FixtureCandidateSource(candidates)
    app.dependency_overrides[get_lead_youtube_client] = lambda: youtube_client
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_lead_candidate_source, None)
        app.dependency_overrides.pop(get_lead_youtube_client, None)


def test_search_returns_verified_leads(client, sample_candidates, stub_metrics):
    with _override_sources(sample_candidates, StubYouTubeClient([DARK_DOCS, PLAINLY])):
        response = client.post("/api/leads/search", json=SEARCH_PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["verification"] == "verified"
    assert [lead["channel_name"] for lead in body["leads"]] == ["Dark Docs", "Plainly Difficult"]
    assert body["leads"][0]["subscriber_count"] == "1.2M"
    assert body["leads"][0]["verified"] is True
    assert body["dropped"][0]["channel_name"] == "FakeChannelXYZ"


def test_search_with_nothing_verified_is_empty(client, sample_candidates, stub_metrics):
    with _override_sources(sample_candidates, StubYouTubeClient([])):
        response = client.post("/api/leads/search", json=SEARCH_PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "empty"
    assert body["leads"] == []
    assert body["message"].startswith("No verifiable candidates")


def test_search_failure_returns_bad_gateway(client, sample_candidates, stub_metrics):
    youtube_client = StubYouTubeClient([DARK_DOCS], failures={"Dark Docs": YouTubeQuotaError()})
    with _override_sources(sample_candidates, youtube_client):
        response = client.post("/api/leads/search", json=SEARCH_PAYLOAD)

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["status"] == "error"
    assert detail["error_code"] == "YOUTUBE_403"
    assert "quota" in detail["message"]


def test_search_without_youtube_key_returns_unverified(client, sample_candidates):
    with _override_sources(sample_candidates, None):
        response = client.post("/api/leads/search", json=SEARCH_PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["verification"] == "unverified"
    assert len(body["leads"]) == 3
    assert all(lead["verified"] is False for lead in body["leads"])


def test_search_rejects_unknown_category(client, sample_candidates):
    payload = {**SEARCH_PAYLOAD, "filters": {"category": "Cooking"}}
    with _override_sources(sample_candidates, None):
        response = client.post("/api/leads/search", json=payload)

    assert response.status_code == 422


def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "healthy"
    ready = client.get("/health/ready").json()
    assert ready["status"] == "ready"
    assert ready["mode"] in {"online", "fixture"}


def test_unsupported_runtime_mode_is_service_unavailable(client, sample_candidates, monkeypatch):
    monkeypatch.setenv("LEAD_HUNTER_MODE", "offline-ish")
    app.dependency_overrides[get_lead_candidate_source] = lambda: FixtureCandidateSource(sample_candidates)
    try:
        response = client.post("/api/leads/search", json=SEARCH_PAYLOAD)
    finally:
        app.dependency_overrides.pop(get_lead_candidate_source, None)

    assert response.status_code == 503
    assert "LEAD_HUNTER_MODE" in response.json()["detail"]
