"""End-to-end lead search: generate candidates, verify on YouTube, merge."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import get_args

from app.models.lead import (
    ChannelCategory,
    SearchFilters,
    SearchRequest,
    SearchResult,
    SearchStatus,
)
from app.services.prospecting.candidate_source import (
    CandidateSource,
    CandidateSourceError,
    FixtureCandidateSource,
)
from pipelines.merge import merge_leads
from pipelines.source_client import (
    MisconfiguredSourceError,
    ModeError,
    RuntimeConfig,
    YouTubeClientProtocol,
    get_candidate_source,
    get_runtime_config,
    get_youtube_client,
)
from pipelines.youtube_verify import BatchVerificationError, ProgressFn, verify_batch_with_report
from scripts.pacing import PacingPolicy

logger = logging.getLogger("pipelines.lead_search")

EMPTY_MESSAGE = "No verifiable candidates - broaden filters or try different terms."
GENERATION_FAILED_MESSAGE = "Failed to generate leads. The API might be busy or the input was too confusing."
_BLOCKLIST_HEADER = "channel name"


def parse_blocklist(text: str) -> list[str]:
    """Parse a blocklist pasted from a spreadsheet (first column, one name per line)."""
    names: list[str] = []
    for line in text.splitlines():
        name = line.split("\t", 1)[0].strip()
        if not name or name.casefold() == _BLOCKLIST_HEADER:
            continue
        names.append(name)
    return names


def resolve_youtube_client(config: RuntimeConfig | None = None) -> YouTubeClientProtocol | None:
    """Return a YouTube client, or None when no credential is configured."""
    try:
        return get_youtube_client(config)
    except MisconfiguredSourceError as exc:
        logger.warning("YouTube verification disabled: %s Leads will be returned unverified.", exc)
        return None


def run_search(
    request: SearchRequest,
    *,
    candidate_source: CandidateSource,
    youtube_client: YouTubeClientProtocol | None,
    progress: ProgressFn | None = None,
    pacing: PacingPolicy | None = None,
    window_days: int | None = None,
    cancel_event: threading.Event | None = None,
    now: datetime | None = None,
) -> SearchResult:
    """Run one search and report a terminal status instead of raising.

    ``youtube_client=None`` selects the unverified pass-through mode.
    """
    try:
        candidates = candidate_source.generate(request)
    except CandidateSourceError as exc:
        logger.error("Candidate generation failed: %s (code=%s)", exc, exc.code)
        return SearchResult(status=SearchStatus.ERROR, message=GENERATION_FAILED_MESSAGE, error_code=exc.code)
    except ModeError as exc:
        logger.error("Candidate source unavailable: %s (code=%s)", exc, exc.code)
        return SearchResult(status=SearchStatus.ERROR, message=GENERATION_FAILED_MESSAGE, error_code=exc.code)
    logger.info("Received %s candidates for query=%r.", len(candidates), request.query)

    if youtube_client is None:
        leads = merge_leads(candidates, [], verification_available=False)
        return SearchResult(
            status=SearchStatus.SUCCESS if leads else SearchStatus.EMPTY,
            leads=leads,
            message=None if leads else EMPTY_MESSAGE,
            verification="unverified",
        )

    try:
        report = verify_batch_with_report(
            [candidate.channel_name for candidate in candidates],
            client=youtube_client,
            progress=progress,
            pacing=pacing,
            window_days=window_days,
            cancel_event=cancel_event,
            now=now,
        )
    except BatchVerificationError as exc:
        logger.error(
            "Lead search aborted: %s (kind=%s code=%s candidate=%s)",
            exc,
            exc.kind.value,
            exc.code,
            exc.channel_name,
        )
        return SearchResult(status=SearchStatus.ERROR, message=str(exc), error_code=exc.code)

    leads = merge_leads(candidates, report.verified)
    if not leads:
        logger.info("No candidates survived verification (dropped=%s).", len(report.dropped))
        return SearchResult(status=SearchStatus.EMPTY, message=EMPTY_MESSAGE, dropped=report.dropped)
    return SearchResult(status=SearchStatus.SUCCESS, leads=leads, dropped=report.dropped)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Find and verify YouTube channels that need a video editor.")
    parser.add_argument("--query", default="", help="Niche topic or lookalike channel name.")
    parser.add_argument("--category", default="Documentary", choices=get_args(ChannelCategory))
    parser.add_argument("--min-subs", default="50k", help="Lower subscriber bound (free text).")
    parser.add_argument("--max-subs", default="1M", help="Upper subscriber bound (free text).")
    parser.add_argument("--blocklist", type=Path, default=None, help="File with names to exclude (spreadsheet paste).")
    parser.add_argument(
        "--candidates",
        type=Path,
        default=None,
        help="JSON file of candidates to verify instead of calling the generator.",
    )
    parser.add_argument("--output", type=Path, default=Path("leads/search_result.json"), help="Result JSON path.")
    return parser.parse_args(argv)


def _load_candidate_file(path: Path) -> CandidateSource:
    with path.open("r", encoding="utf-8") as infile:
        payload = json.load(infile)
    if not isinstance(payload, list):
        raise ValueError("Candidates JSON must be a list.")
    return FixtureCandidateSource(payload)


def persist_result(result: SearchResult, output_path: Path) -> None:
    """Persist a search result to disk."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as outfile:
        json.dump(result.model_dump(mode="json"), outfile, indent=2)
        outfile.write("\n")


def _log_progress(current: int, total: int) -> None:
    logger.info("Verifying channels... %s/%s", current, total)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint for a lead search."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv or sys.argv[1:])
    blocklist = parse_blocklist(args.blocklist.read_text(encoding="utf-8")) if args.blocklist else []
    request = SearchRequest(
        query=args.query,
        filters=SearchFilters(category=args.category, min_subs=args.min_subs, max_subs=args.max_subs),
        blocklist=blocklist,
    )

    try:
        config = get_runtime_config()
        source = _load_candidate_file(args.candidates) if args.candidates else get_candidate_source(config)
        client = resolve_youtube_client(config)
    except ModeError as exc:
        logger.error("Lead search misconfigured: %s (code=%s)", exc, exc.code)
        return 1
    close_fn = getattr(client, "close", None)
    try:
        result = run_search(request, candidate_source=source, youtube_client=client, progress=_log_progress)
    finally:
        if close_fn:
            close_fn()

    persist_result(result, args.output)
    if result.status is SearchStatus.ERROR:
        logger.error("Lead search failed: %s (code=%s)", result.message, result.error_code)
        return 1
    if result.status is SearchStatus.EMPTY:
        logger.info(result.message)
        return 0
    logger.info(
        "Found %s leads (%s verified) -> %s",
        len(result.leads),
        result.verified_count,
        args.output,
    )
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
