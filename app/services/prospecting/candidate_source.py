"""Generative candidate source: asks an LLM for channels worth pitching."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Final, Protocol

from openai import APIError as OpenAIAPIError
from openai import OpenAI
from openai import OpenAIError as OpenAIBaseError
from pydantic import ValidationError

from app.config import settings
from app.models.lead import CandidateRecord, SearchRequest, normalize_name
from app.observability.metrics import metrics

logger = logging.getLogger(__name__)

SYSTEM_PROMPT: Final[str] = """
You are the Head of Lead Generation for "ClearCut STUDIO," a premium video editing agency.
Your goal is to find specific YouTube channels that are NOT in the provided blocklist.

PHASE 1: INPUT ANALYSIS
- The user will provide a "Search Query" and a "Target Category".
- Search Query could be a NICHE topic (e.g., "True Crime") OR a YOUTUBE CHANNEL NAME (e.g., "SunnyV2").
- IF CHANNEL NAME: Identify the style of that channel and find similar channels WITHIN the selected Category.
- IF NICHE TOPIC: Search directly within that niche and Category.
- BLOCKLIST: You must strictly ignore any channels found in the blocklist.

PHASE 2: THE FILTER (STRICT)
- Subscriber Count: Must be strictly within the user's requested range.
- Activity: Must have uploaded in the last 30 days.
- Category: Channels MUST belong to the user's selected category.

PHASE 3: THE "CLIENT GAP"
- Look for channels with good content/storytelling but "Average/Poor" editing (static images,
  bad pacing, lack of polish). These are our target clients.

PHASE 4: OUTPUT
- Return strictly a JSON array of objects with the keys
  "channelName", "subscriberCount", "niche" and "editGap".
""".strip()


class CandidateSourceError(RuntimeError):
    """Raised when candidate generation fails."""

    def __init__(self, message: str, code: str = "CANDIDATE_SOURCE_ERROR") -> None:
        super().__init__(message)
        self.code = code


class CandidateSource(Protocol):
    """Produces an ordered batch of unverified candidates for a search."""

    def generate(self, request: SearchRequest) -> list[CandidateRecord]:
        ...


class OpenAIChatClient(Protocol):
    """Minimal contract for OpenAI text generation."""

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
    ) -> str:
        ...


class OpenAIResponseClient:
    """Thin wrapper around the official OpenAI Responses API."""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required to generate candidates in online mode.")
        self._client = OpenAI(api_key=api_key)

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
    ) -> str:
        response = self._client.responses.create(
            model=model,
            temperature=temperature,
            input=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        text = getattr(response, "output_text", "") or ""
        if not text.strip():
            raise CandidateSourceError("OpenAI response did not include text output.", code="502_OPENAI_UPSTREAM")
        return text.strip()


@dataclass(frozen=True)
class GenerationContext:
    """Model settings for candidate generation."""

    model: str
    temperature: float
    batch_size: int


def render_user_prompt(request: SearchRequest, *, batch_size: int) -> str:
    filters = request.filters
    blocklist = "\n".join(request.blocklist)
    return (
        f"I need to find a batch of {batch_size} NEW potential clients for ClearCut STUDIO.\n\n"
        "--- SEARCH CONFIGURATION ---\n"
        f'SEARCH QUERY: "{request.query}"\n'
        f'TARGET CATEGORY: "{filters.category}"\n'
        f'SUBSCRIBER RANGE: "{filters.min_subs}" to "{filters.max_subs}"\n'
        "----------------------------\n\n"
        "INSTRUCTIONS:\n"
        "1. Analyze the SEARCH QUERY in the context of the TARGET CATEGORY.\n"
        f"   - If the query is a Channel Name, find similar channels in the {filters.category} space.\n"
        f"   - If the query is a Topic, find channels covering that topic within {filters.category}.\n"
        "2. Apply constraints:\n"
        f"   - SUBSCRIBERS: Must be between {filters.min_subs} and {filters.max_subs}.\n"
        "   - STATUS: Active channels only.\n"
        "   - NOT in the Blocklist below.\n"
        '3. Prioritize channels that have "Edit Gaps" (potential for improvement).\n\n'
        "*** BLOCKLIST START (Ignore these) ***\n"
        f"{blocklist}\n"
        "*** BLOCKLIST END ***\n"
    )


def parse_candidates(raw_text: str) -> list[CandidateRecord]:
    """Decode a JSON array of candidates, tolerating code fences and prose."""
    text = raw_text.strip()
    if text.startswith("```"):
        text = "\n".join(line for line in text.splitlines() if not line.strip().startswith("```")).strip()
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        raise ValueError("Response did not contain a JSON array.")
    payload = json.loads(text[start : end + 1])
    if not isinstance(payload, list):
        raise ValueError("Response JSON must be an array.")

    candidates: list[CandidateRecord] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            candidates.append(_candidate_from_payload(item))
        except ValidationError:
            logger.warning("candidates.invalid_item", extra={"item": str(item)[:200]})
    return candidates


def _candidate_from_payload(item: dict[str, Any]) -> CandidateRecord:
    return CandidateRecord(
        channel_name=str(item.get("channelName") or item.get("channel_name") or ""),
        subscriber_estimate=str(item.get("subscriberCount") or item.get("subscriber_estimate") or ""),
        niche=str(item.get("niche") or ""),
        edit_gap=str(item.get("editGap") or item.get("edit_gap") or ""),
    )


def apply_blocklist(candidates: list[CandidateRecord], blocklist: list[str]) -> list[CandidateRecord]:
    """Drop candidates whose normalized name appears in the blocklist."""
    blocked = {normalize_name(name) for name in blocklist if name.strip()}
    if not blocked:
        return candidates
    kept = [candidate for candidate in candidates if normalize_name(candidate.channel_name) not in blocked]
    if len(kept) != len(candidates):
        logger.info("Removed %s blocklisted candidates.", len(candidates) - len(kept))
    return kept


class OpenAICandidateSource:
    """Generates candidates with an OpenAI model."""

    def __init__(
        self,
        *,
        client: OpenAIChatClient | None = None,
        context: GenerationContext | None = None,
    ) -> None:
        self._client = client
        self._context = context or GenerationContext(
            model=settings.candidate_model,
            temperature=settings.candidate_temperature,
            batch_size=settings.candidate_batch_size,
        )

    def generate(self, request: SearchRequest) -> list[CandidateRecord]:
        client = self._ensure_client()
        start = time.perf_counter()
        try:
            response_text = client.generate(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=render_user_prompt(request, batch_size=self._context.batch_size),
                model=self._context.model,
                temperature=self._context.temperature,
            )
        except OpenAIAPIError as exc:
            code = "429_RATE_LIMIT" if getattr(exc, "status_code", 500) == 429 else "502_OPENAI_UPSTREAM"
            metrics.increment("candidates.errors", tags={"code": code})
            raise CandidateSourceError(f"OpenAI request failed: {exc.message}", code=code) from exc
        except OpenAIBaseError as exc:
            metrics.increment("candidates.errors", tags={"code": "502_OPENAI_UPSTREAM"})
            raise CandidateSourceError(f"OpenAI request failed: {exc}", code="502_OPENAI_UPSTREAM") from exc
        finally:
            metrics.timing("candidates.latency_ms", (time.perf_counter() - start) * 1000)

        try:
            candidates = parse_candidates(response_text)
        except ValueError as exc:
            logger.error("candidates.parse_error", extra={"model": self._context.model})
            raise CandidateSourceError("Model response was not a valid JSON array.", code="502_OPENAI_UPSTREAM") from exc

        candidates = apply_blocklist(candidates, request.blocklist)
        logger.info("Generated %s candidates for query=%r category=%s.", len(candidates), request.query, request.filters.category)
        return candidates

    def _ensure_client(self) -> OpenAIChatClient:
        if self._client:
            return self._client
        if not settings.openai_api_key:
            raise CandidateSourceError(
                "OPENAI_API_KEY is required for online candidate generation.",
                code="E_SOURCE_UNCONFIGURED",
            )
        self._client = OpenAIResponseClient(settings.openai_api_key)
        return self._client


class FixtureCandidateSource:
    """Returns a static candidate snapshot, filtered by the request blocklist."""

    def __init__(self, records: list[dict[str, Any]]) -> None:
        self._records = records

    def generate(self, request: SearchRequest) -> list[CandidateRecord]:
        candidates = [_candidate_from_payload(item) for item in self._records if isinstance(item, dict)]
        return apply_blocklist(candidates, request.blocklist)
