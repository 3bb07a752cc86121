"""API endpoint for running a verified lead search."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from fastapi import APIRouter, Depends, HTTPException, status

from app.models.lead import SearchRequest, SearchResult, SearchStatus
from app.services.prospecting.candidate_source import CandidateSource
from pipelines.lead_search import resolve_youtube_client, run_search
from pipelines.source_client import ModeError, YouTubeClientProtocol, get_candidate_source

router = APIRouter()
logger = logging.getLogger(__name__)


def get_lead_candidate_source() -> CandidateSource:
    """Candidate generator for the configured runtime mode."""
    try:
        return get_candidate_source()
    except ModeError as exc:
        logger.error("leads.source_unavailable", extra={"code": exc.code})
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def get_lead_youtube_client() -> Iterator[YouTubeClientProtocol | None]:
    """YouTube client per request; None selects unverified pass-through."""
    try:
        client = resolve_youtube_client()
    except ModeError as exc:
        logger.error("leads.youtube_unavailable", extra={"code": exc.code})
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    try:
        yield client
    finally:
        close_fn = getattr(client, "close", None)
        if close_fn:
            close_fn()


@router.post("/leads/search", response_model=SearchResult)
def search_leads(
    payload: SearchRequest,
    candidate_source: CandidateSource = Depends(get_lead_candidate_source),
    youtube_client: YouTubeClientProtocol | None = Depends(get_lead_youtube_client),
) -> SearchResult:
    """Generate candidates, verify them on YouTube and return the surviving leads."""
    result = run_search(payload, candidate_source=candidate_source, youtube_client=youtube_client)
    if result.status is SearchStatus.ERROR:
        logger.error("leads.search_error", extra={"code": result.error_code})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result.model_dump(mode="json"),
        )
    return result
