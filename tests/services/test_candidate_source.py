import json

import httpx
import pytest
from openai import OpenAIError, RateLimitError

from app.models.lead import SearchFilters, SearchRequest
from app.services.prospecting import candidate_source
from app.services.prospecting.candidate_source import (
    CandidateSourceError,
    FixtureCandidateSource,
    GenerationContext,
    OpenAICandidateSource,
    parse_candidates,
    render_user_prompt,
)
from tests.helpers.metrics_stub import StubMetrics

CONTEXT = GenerationContext(model="test-model", temperature=0.0, batch_size=10)


class StubOpenAIClient:
    """Deterministic stub for the OpenAI client."""

    def __init__(self, response: str | None = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[dict[str, object]] = []

    def generate(self, **kwargs) -> str:
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._response or ""


@pytest.fixture(autouse=True)
def _stub_metrics(monkeypatch: pytest.MonkeyPatch) -> StubMetrics:
    stub = StubMetrics()
    monkeypatch.setattr(candidate_source, "metrics", stub)
    return stub


def _request(**overrides) -> SearchRequest:
    payload = {
        "query": "SunnyV2",
        "filters": SearchFilters(category="Education", min_subs="100k", max_subs="2M"),
        "blocklist": [],
    }
    payload.update(overrides)
    return SearchRequest(**payload)


def test_generate_parses_fenced_json(sample_candidates):
    raw = "```json\n" + json.dumps(sample_candidates) + "\n```"
    stub = StubOpenAIClient(raw)
    source = OpenAICandidateSource(client=stub, context=CONTEXT)

    candidates = source.generate(_request())

    assert [candidate.channel_name for candidate in candidates] == ["Dark Docs", "Plainly Difficult", "FakeChannelXYZ"]
    assert candidates[0].subscriber_estimate == "1.2M"
    assert candidates[1].edit_gap == "Repetitive diagram animation."
    assert stub.calls[0]["model"] == "test-model"
    assert stub.calls[0]["system_prompt"] == candidate_source.SYSTEM_PROMPT


def test_generate_applies_blocklist_case_insensitively(sample_candidates):
    source = OpenAICandidateSource(client=StubOpenAIClient(json.dumps(sample_candidates)), context=CONTEXT)

    candidates = source.generate(_request(blocklist=["  dark DOCS", "fakechannelxyz"]))

    assert [candidate.channel_name for candidate in candidates] == ["Plainly Difficult"]


def test_user_prompt_carries_filters_and_blocklist():
    prompt = render_user_prompt(_request(blocklist=["Nexpo", "SunnyV2"]), batch_size=10)

    assert 'SEARCH QUERY: "SunnyV2"' in prompt
    assert 'TARGET CATEGORY: "Education"' in prompt
    assert "Must be between 100k and 2M." in prompt
    assert "Nexpo\nSunnyV2" in prompt
    assert "batch of 10" in prompt


def test_parse_candidates_skips_invalid_items():
    raw = 'Here you go: [{"channelName": "Dark Docs"}, {"channelName": "  "}, 42, {"channel_name": "Nexpo"}] done'

    candidates = parse_candidates(raw)

    assert [candidate.channel_name for candidate in candidates] == ["Dark Docs", "Nexpo"]


def test_unparseable_response_raises_source_error():
    source = OpenAICandidateSource(client=StubOpenAIClient("Sorry, I cannot help with that."), context=CONTEXT)

    with pytest.raises(CandidateSourceError) as excinfo:
        source.generate(_request())
    assert excinfo.value.code == "502_OPENAI_UPSTREAM"


def test_rate_limit_maps_to_429_code(_stub_metrics):
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    error = RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)
    source = OpenAICandidateSource(client=StubOpenAIClient(error=error), context=CONTEXT)

    with pytest.raises(CandidateSourceError) as excinfo:
        source.generate(_request())

    assert excinfo.value.code == "429_RATE_LIMIT"
    assert _stub_metrics.counted("candidates.errors", code="429_RATE_LIMIT") == 1


def test_generic_openai_error_maps_to_upstream_code():
    source = OpenAICandidateSource(client=StubOpenAIClient(error=OpenAIError("offline")), context=CONTEXT)

    with pytest.raises(CandidateSourceError) as excinfo:
        source.generate(_request())
    assert excinfo.value.code == "502_OPENAI_UPSTREAM"


def test_missing_api_key_is_unconfigured(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(candidate_source.settings, "openai_api_key", None)
    source = OpenAICandidateSource(context=CONTEXT)

    with pytest.raises(CandidateSourceError) as excinfo:
        source.generate(_request())
    assert excinfo.value.code == "E_SOURCE_UNCONFIGURED"


def test_fixture_source_honors_blocklist(sample_candidates):
    source = FixtureCandidateSource(sample_candidates)

    candidates = source.generate(_request(blocklist=["Plainly Difficult"]))

    assert [candidate.channel_name for candidate in candidates] == ["Dark Docs", "FakeChannelXYZ"]
