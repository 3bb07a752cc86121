from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from pipelines.formatting import parse_timestamp


@dataclass(frozen=True)
class StubChannel:
    channel_id: str
    title: str
    subscribers: int
    upload_days_ago: tuple[float, ...] = (3,)


class StubYouTubeClient:
    """Stub client answering from an in-memory channel table and recording calls."""

    def __init__(
        self,
        channels: list[StubChannel],
        *,
        failures: dict[str, Exception] | None = None,
        stale_ids: set[str] | None = None,
    ) -> None:
        self._by_name = {channel.title.casefold(): channel for channel in channels}
        self._by_id = {channel.channel_id: channel for channel in channels}
        self._failures = failures or {}
        self._stale_ids = stale_ids or set()
        self.calls: list[tuple[str, str]] = []

    def search_channels(self, *, query: str, limit: int = 1) -> list[dict[str, Any]]:
        self.calls.append(("search_channels", query))
        if query in self._failures:
            raise self._failures[query]
        channel = self._by_name.get(query.strip().casefold())
        if channel is None:
            return []
        return [{"id": {"channelId": channel.channel_id}, "snippet": {"channelTitle": channel.title}}][:limit]

    def list_channels(self, *, channel_id: str) -> list[dict[str, Any]]:
        self.calls.append(("list_channels", channel_id))
        channel = self._by_id.get(channel_id)
        if channel is None or channel_id in self._stale_ids:
            return []
        return [
            {
                "id": channel.channel_id,
                "snippet": {"title": channel.title},
                "statistics": {"subscriberCount": str(channel.subscribers)},
            }
        ]

    def search_recent_videos(
        self,
        *,
        channel_id: str,
        published_after: str,
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        self.calls.append(("search_recent_videos", channel_id))
        channel = self._by_id[channel_id]
        cutoff = parse_timestamp(published_after)
        # An hour inside the day so ceiling rounding reports exactly ``days``.
        now = datetime.now(tz=UTC) + timedelta(hours=1)
        uploads = sorted((now - timedelta(days=days) for days in channel.upload_days_ago), reverse=True)
        return [
            {"snippet": {"publishedAt": published.strftime("%Y-%m-%dT%H:%M:%SZ")}}
            for published in uploads
            if published > cutoff
        ][:limit]

    def queried_names(self) -> list[str]:
        return [value for endpoint, value in self.calls if endpoint == "search_channels"]


class RecordingPacing:
    """Pacing policy that records waits instead of sleeping."""

    def __init__(self, *, cancel_after: int | None = None) -> None:
        self.waits = 0
        self._cancel_after = cancel_after

    def wait(self, *, cancel_event: threading.Event | None = None) -> bool:
        self.waits += 1
        if self._cancel_after is not None and self.waits >= self._cancel_after and cancel_event is not None:
            cancel_event.set()
            return False
        return True
