"""YouTube verification pipeline for generated channel candidates."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from app.clients.youtube import (
    MALFORMED_RESPONSE,
    QUOTA_AUTH,
    TRANSPORT,
    YouTubeError,
    YouTubeSchemaError,
)
from app.config import settings
from app.models.lead import CandidateDrop, VerifiedChannel, normalize_name
from app.observability.metrics import metrics
from pipelines.formatting import format_metric, format_relative_age, parse_timestamp
from pipelines.source_client import ModeError, YouTubeClientProtocol, get_youtube_client
from scripts.pacing import ConstantPacing, PacingPolicy
from tools.telemetry import get_telemetry

logger = logging.getLogger("pipelines.youtube_verify")

# Activity policy. Kept separate from the display month length in formatting.
ACTIVITY_WINDOW_DAYS = 30
CHANNEL_URL_TEMPLATE = "https://www.youtube.com/channel/{channel_id}"

ProgressFn = Callable[[int, int], None]


class FailureKind(str, Enum):
    """Classes of batch-fatal failures, each with its own operator remedy."""

    QUOTA_AUTH = QUOTA_AUTH
    TRANSPORT = TRANSPORT
    MALFORMED_RESPONSE = MALFORMED_RESPONSE

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES[self]


_USER_MESSAGES: dict[FailureKind, str] = {
    FailureKind.QUOTA_AUTH: "YouTube verification failed: API quota exceeded or API key rejected.",
    FailureKind.TRANSPORT: "YouTube verification failed: the YouTube API could not be reached.",
    FailureKind.MALFORMED_RESPONSE: "YouTube verification failed: unexpected response from the YouTube API.",
}


class BatchVerificationError(RuntimeError):
    """Raised when a credential, quota or transport failure aborts the whole batch."""

    def __init__(self, kind: FailureKind, *, channel_name: str, code: str) -> None:
        super().__init__(kind.user_message)
        self.kind = kind
        self.channel_name = channel_name
        self.code = code

    @classmethod
    def from_client_error(cls, exc: YouTubeError, *, channel_name: str) -> "BatchVerificationError":
        return cls(FailureKind(exc.kind), channel_name=channel_name, code=exc.code)


@dataclass(frozen=True)
class ChannelDetails:
    """Subset of the ``channels`` resource used for enrichment."""

    channel_id: str
    title: str
    subscribers: int


@dataclass(frozen=True)
class Verified:
    channel: VerifiedChannel


@dataclass(frozen=True)
class NotFound:
    channel_name: str
    stage: str  # "probe" or "details"


@dataclass(frozen=True)
class Dormant:
    channel_name: str
    channel_id: str


@dataclass(frozen=True)
class Fatal:
    channel_name: str
    error: YouTubeError


VerificationOutcome = Union[Verified, NotFound, Dormant, Fatal]


def _mapping(value: Any, label: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise YouTubeSchemaError(f"Expected an object for {label}, got {type(value).__name__}.")
    return value


def probe_channel(client: YouTubeClientProtocol, channel_name: str) -> str | None:
    """Return the id of the best channel match for ``channel_name``, or None."""
    items = client.search_channels(query=channel_name, limit=1)
    if not items:
        return None
    try:
        channel_id = items[0]["id"]["channelId"]
    except (KeyError, TypeError) as exc:
        raise YouTubeSchemaError("Channel search result is missing `id.channelId`.") from exc
    if not isinstance(channel_id, str) or not channel_id:
        raise YouTubeSchemaError("Channel search returned an empty channel id.")
    return channel_id


def fetch_channel_details(client: YouTubeClientProtocol, channel_id: str) -> ChannelDetails | None:
    """Look up title and subscriber count. None means the id is stale."""
    items = client.list_channels(channel_id=channel_id)
    if not items:
        return None
    item = _mapping(items[0], "channel resource")
    snippet = _mapping(item.get("snippet") or {}, "snippet")
    statistics = _mapping(item.get("statistics") or {}, "statistics")
    title = snippet.get("title")
    if not isinstance(title, str) or not title.strip():
        raise YouTubeSchemaError("Channel resource is missing `snippet.title`.")

    if statistics.get("hiddenSubscriberCount"):
        subscribers = 0
    else:
        try:
            subscribers = int(statistics.get("subscriberCount", 0))
        except (TypeError, ValueError) as exc:
            raise YouTubeSchemaError("`statistics.subscriberCount` is not an integer.") from exc
    if subscribers < 0:
        raise YouTubeSchemaError("`statistics.subscriberCount` must be >= 0.")

    resolved_id = item.get("id") or channel_id
    if not isinstance(resolved_id, str):
        raise YouTubeSchemaError("Channel resource `id` is not a string.")
    return ChannelDetails(channel_id=resolved_id, title=title.strip(), subscribers=subscribers)


def check_recent_upload(
    client: YouTubeClientProtocol,
    channel_id: str,
    window_days: int = ACTIVITY_WINDOW_DAYS,
    *,
    now: datetime | None = None,
) -> datetime | None:
    """Return the newest upload inside the window, or None when the channel is dormant."""
    if window_days < 1:
        raise ValueError("window_days must be >= 1")
    reference = now or datetime.now(tz=UTC)
    published_after = (reference - timedelta(days=window_days)).astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    items = client.search_recent_videos(channel_id=channel_id, published_after=published_after, limit=1)
    if not items:
        return None
    video = _mapping(items[0], "video search result")
    published = _mapping(video.get("snippet") or {}, "video snippet").get("publishedAt")
    if not published or not isinstance(published, str):
        raise YouTubeSchemaError("Video search result is missing `snippet.publishedAt`.")
    try:
        return parse_timestamp(published)
    except (TypeError, ValueError) as exc:
        raise YouTubeSchemaError(f"Unparseable publishedAt timestamp: {published!r}") from exc


def build_verified_channel(
    details: ChannelDetails,
    *,
    query_name: str,
    last_upload_at: datetime,
    now: datetime | None = None,
) -> VerifiedChannel:
    """Assemble the enrichment record for a channel that passed every check."""
    try:
        return _verified_channel(details, query_name=query_name, last_upload_at=last_upload_at, now=now)
    except (ValidationError, ValueError) as exc:
        raise YouTubeSchemaError(f"Channel {details.channel_id!r} could not be enriched: {exc}") from exc


def _verified_channel(
    details: ChannelDetails,
    *,
    query_name: str,
    last_upload_at: datetime,
    now: datetime | None,
) -> VerifiedChannel:
    return VerifiedChannel(
        channel_id=details.channel_id,
        channel_name=details.title,
        query_name=query_name,
        actual_subscribers=details.subscribers,
        subscriber_count=format_metric(details.subscribers),
        channel_url=CHANNEL_URL_TEMPLATE.format(channel_id=details.channel_id),
        last_upload=format_relative_age(last_upload_at, now=now),
        last_upload_at=last_upload_at,
        has_recent_upload=True,
    )


def verify_channel(
    client: YouTubeClientProtocol,
    channel_name: str,
    *,
    window_days: int = ACTIVITY_WINDOW_DAYS,
    now: datetime | None = None,
) -> VerificationOutcome:
    """Run probe -> details -> activity for one candidate.

    Missing channels and dormant channels come back as outcomes rather than
    exceptions; client failures come back as ``Fatal`` for the caller to
    escalate.
    """
    try:
        channel_id = probe_channel(client, channel_name)
        if channel_id is None:
            logger.info("Channel not found: %s", channel_name)
            return NotFound(channel_name=channel_name, stage="probe")

        details = fetch_channel_details(client, channel_id)
        if details is None:
            logger.info("Could not fetch details for: %s (id=%s)", channel_name, channel_id)
            return NotFound(channel_name=channel_name, stage="details")

        last_upload_at = check_recent_upload(client, channel_id, window_days, now=now)
        if last_upload_at is None:
            logger.info("Channel %r has not uploaded in the last %s days - skipping.", channel_name, window_days)
            return Dormant(channel_name=channel_name, channel_id=channel_id)

        channel = build_verified_channel(details, query_name=channel_name, last_upload_at=last_upload_at, now=now)
    except YouTubeError as exc:
        logger.error("YouTube verification failed for %s: %s (code=%s)", channel_name, exc, exc.code)
        return Fatal(channel_name=channel_name, error=exc)

    logger.debug("Verified %s as %s (%s subscribers).", channel_name, channel.channel_id, channel.subscriber_count)
    return Verified(channel=channel)


@dataclass
class BatchReport:
    """Outcome of one sequential verification run."""

    total: int
    verified: list[VerifiedChannel] = field(default_factory=list)
    dropped: list[CandidateDrop] = field(default_factory=list)
    processed: int = 0
    cancelled: bool = False


def _unique_names(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for name in names:
        key = normalize_name(name)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(name.strip())
    return unique


def _record_drop(report: BatchReport, outcome: NotFound | Dormant) -> None:
    if isinstance(outcome, NotFound):
        drop = CandidateDrop(channel_name=outcome.channel_name, reason="not_found", stage=outcome.stage)
    else:
        drop = CandidateDrop(channel_name=outcome.channel_name, reason="dormant", channel_id=outcome.channel_id)
    report.dropped.append(drop)
    metrics.increment("verify.dropped", tags={"reason": drop.reason})
    get_telemetry().candidate_dropped(
        channel_name=drop.channel_name,
        reason=drop.reason,
        stage=drop.stage,
        channel_id=drop.channel_id,
    )


def verify_batch_with_report(
    names: Sequence[str],
    *,
    client: YouTubeClientProtocol,
    progress: ProgressFn | None = None,
    pacing: PacingPolicy | None = None,
    window_days: int | None = None,
    cancel_event: threading.Event | None = None,
    now: datetime | None = None,
) -> BatchReport:
    """Verify candidates one at a time, in order, with a fixed pause between calls.

    Raises ``BatchVerificationError`` on the first fatal outcome; nothing after
    that candidate is attempted and no partial result is returned.
    """
    pacing = pacing or ConstantPacing(settings.pacing_delay_seconds)
    window = window_days if window_days is not None else settings.activity_window_days
    unique = _unique_names(names)
    report = BatchReport(total=len(unique))
    start = time.perf_counter()

    for index, channel_name in enumerate(unique):
        if cancel_event is not None and cancel_event.is_set():
            report.cancelled = True
            break

        outcome = verify_channel(client, channel_name, window_days=window, now=now)
        if isinstance(outcome, Fatal):
            metrics.increment("verify.fatal", tags={"kind": outcome.error.kind})
            raise BatchVerificationError.from_client_error(
                outcome.error, channel_name=channel_name
            ) from outcome.error
        if isinstance(outcome, Verified):
            report.verified.append(outcome.channel)
            metrics.increment("verify.verified")
        else:
            _record_drop(report, outcome)

        report.processed = index + 1
        if progress:
            progress(report.processed, report.total)

        if index < len(unique) - 1 and not pacing.wait(cancel_event=cancel_event):
            report.cancelled = True
            break

    if report.cancelled:
        logger.warning("Verification cancelled after %s of %s candidates.", report.processed, report.total)
    metrics.timing("verify.batch_ms", (time.perf_counter() - start) * 1000)
    logger.info(
        "YouTube verification complete. total=%s verified=%s rate=%.1f%%",
        report.total,
        len(report.verified),
        (len(report.verified) / report.total * 100) if report.total else 0.0,
    )
    return report


def verify_batch(
    names: Sequence[str],
    *,
    client: YouTubeClientProtocol,
    progress: ProgressFn | None = None,
    pacing: PacingPolicy | None = None,
    window_days: int | None = None,
    cancel_event: threading.Event | None = None,
    now: datetime | None = None,
) -> list[VerifiedChannel]:
    """Return the verified subset of ``names`` in their original relative order."""
    report = verify_batch_with_report(
        names,
        client=client,
        progress=progress,
        pacing=pacing,
        window_days=window_days,
        cancel_event=cancel_event,
        now=now,
    )
    return report.verified


def load_names(input_path: Path) -> list[str]:
    """Load candidate names from a JSON list of strings or candidate objects."""
    with input_path.open("r", encoding="utf-8") as infile:
        payload = json.load(infile)
    if not isinstance(payload, list):
        raise ValueError("Input JSON must be a list of channel names or candidate records.")
    names: list[str] = []
    for item in payload:
        if isinstance(item, str):
            names.append(item)
        elif isinstance(item, dict) and item.get("channel_name"):
            names.append(str(item["channel_name"]))
    return names


def persist_channels(channels: Sequence[VerifiedChannel], output_path: Path) -> None:
    """Persist verified channels to disk."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as outfile:
        json.dump([channel.model_dump(mode="json") for channel in channels], outfile, indent=2)
        outfile.write("\n")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Verify candidate channels against the YouTube Data API.")
    parser.add_argument("--input", type=Path, default=Path("leads/candidates.json"), help="Candidate JSON path.")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("leads/youtube_verified.json"),
        help="Path to write verified channels JSON.",
    )
    parser.add_argument(
        "--window_days",
        type=int,
        default=settings.activity_window_days,
        help="Activity window in days.",
    )
    return parser.parse_args(argv)


def _log_progress(current: int, total: int) -> None:
    logger.info("Verified %s/%s candidates.", current, total)


def run_pipeline(
    *,
    input_path: Path,
    output_path: Path,
    window_days: int,
    client: YouTubeClientProtocol | None = None,
) -> list[VerifiedChannel]:
    """Run YouTube verification end-to-end on a candidates file."""
    names = load_names(input_path)
    logger.info("Loaded %s candidates from %s.", len(names), input_path)

    close_fn: Any = None
    if client is None:
        client = get_youtube_client()
        close_fn = getattr(client, "close", None)

    try:
        verified = verify_batch(names, client=client, progress=_log_progress, window_days=window_days)
    finally:
        if close_fn:
            close_fn()

    persist_channels(verified, output_path)
    logger.info("Persisted %s verified channels to %s.", len(verified), output_path)
    return verified


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint for YouTube verification."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv or sys.argv[1:])
    try:
        run_pipeline(input_path=args.input, output_path=args.output, window_days=args.window_days)
    except BatchVerificationError as exc:
        logger.error("%s (kind=%s code=%s candidate=%s)", exc, exc.kind.value, exc.code, exc.channel_name)
        return 1
    except ModeError as exc:
        logger.error("YouTube verification unavailable: %s (code=%s)", exc, exc.code)
        return 1
    except Exception as exc:  # pragma: no cover - safety net
        logger.exception("Unexpected error during YouTube verification: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
