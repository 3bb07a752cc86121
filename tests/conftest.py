import pytest
from fastapi.testclient import TestClient

from app.main import app
from pipelines import youtube_verify
from tests.helpers.metrics_stub import StubMetrics


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def stub_metrics(monkeypatch: pytest.MonkeyPatch) -> StubMetrics:
    """Capture verification metrics instead of logging them."""
    stub = StubMetrics()
    monkeypatch.setattr(youtube_verify, "metrics", stub)
    return stub


@pytest.fixture
def sample_candidates():
    """Candidate payloads in the generator's wire shape."""
    return [
        {
            "channelName": "Dark Docs",
            "subscriberCount": "1.2M",
            "niche": "Cold War History",
            "editGap": "Strong scripts carried by static archive shots.",
        },
        {
            "channelName": "Plainly Difficult",
            "subscriberCount": "650K",
            "niche": "Engineering Disasters",
            "editGap": "Repetitive diagram animation.",
        },
        {
            "channelName": "FakeChannelXYZ",
            "subscriberCount": "120K",
            "niche": "Maritime History",
            "editGap": "Generic stock footage.",
        },
    ]
