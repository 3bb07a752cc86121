"""Runtime client selection for online vs. fixture modes."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Any, Protocol

from app.clients.youtube import YouTubeClient
from app.config import settings
from app.services.prospecting.candidate_source import (
    CandidateSource,
    FixtureCandidateSource,
    OpenAICandidateSource,
)
from pipelines.formatting import parse_timestamp

logger = logging.getLogger("pipelines.source_client")

MODE_ENV = "LEAD_HUNTER_MODE"
FIXTURE_DIR_ENV = "LEAD_HUNTER_FIXTURE_DIR"
DEFAULT_FIXTURE_DIR = "fixtures/sample"


class RuntimeMode(str, Enum):
    """Available runtime behaviors."""

    ONLINE = "online"
    FIXTURE = "fixture"


class ModeError(RuntimeError):
    """Raised when runtime mode configuration is invalid."""

    def __init__(self, message: str, code: str = "E_MODE_UNSUPPORTED") -> None:
        super().__init__(message)
        self.code = code


class FixtureNotFoundError(ModeError):
    """Raised when a requested fixture artifact cannot be located."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Fixture not found: {path}", code="E_FIXTURE_NOT_FOUND")
        self.path = path


class MisconfiguredSourceError(ModeError):
    """Raised when online mode has no YouTube credential configured."""

    def __init__(self, message: str = "YOUTUBE_API_KEY is not configured.") -> None:
        super().__init__(message, code="E_SOURCE_UNCONFIGURED")


@dataclass(frozen=True)
class RuntimeConfig:
    """Resolved runtime configuration."""

    mode: RuntimeMode
    fixture_base: Path | None = None


class YouTubeClientProtocol(Protocol):
    """Subset of YouTube client behavior used by the verifier."""

    def search_channels(self, *, query: str, limit: int = 1) -> list[dict[str, Any]]:
        ...

    def list_channels(self, *, channel_id: str) -> list[dict[str, Any]]:
        ...

    def search_recent_videos(
        self,
        *,
        channel_id: str,
        published_after: str,
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        ...


def _parse_mode(value: str | None, *, default: RuntimeMode) -> RuntimeMode:
    if not value:
        return default
    normalized = value.strip().lower()
    for mode in RuntimeMode:
        if normalized == mode.value:
            return mode
    raise ModeError(f"Unsupported {MODE_ENV} value: {value}")


_LOGGED_CONFIG = False


def get_runtime_config() -> RuntimeConfig:
    """Resolve runtime configuration from environment variables."""
    global _LOGGED_CONFIG  # noqa: PLW0603
    mode = _parse_mode(os.getenv(MODE_ENV), default=RuntimeMode.FIXTURE)
    fixture_base: Path | None = None
    if mode is RuntimeMode.FIXTURE:
        fixture_base = Path(os.getenv(FIXTURE_DIR_ENV, DEFAULT_FIXTURE_DIR)).expanduser()

    config = RuntimeConfig(mode=mode, fixture_base=fixture_base)
    if not _LOGGED_CONFIG:
        logger.info("Lead Hunter runtime mode=%s", config.mode.value)
        _LOGGED_CONFIG = True
    return config


def get_youtube_client(config: RuntimeConfig | None = None) -> YouTubeClientProtocol:
    """Return an appropriate YouTube client implementation.

    Raises ``MisconfiguredSourceError`` in online mode when no API key is set;
    callers treat that as the unverified pass-through mode.
    """
    config = config or get_runtime_config()
    if config.mode is RuntimeMode.FIXTURE:
        return FixtureYouTubeClient(_build_fixture_store(config))
    api_key = settings.youtube_api_key or os.getenv("YOUTUBE_API_KEY", "")
    if not api_key:
        raise MisconfiguredSourceError()
    return YouTubeClient(
        api_key,
        base_url=settings.youtube_base_url,
        timeout=settings.youtube_timeout_seconds,
    )


def get_candidate_source(config: RuntimeConfig | None = None) -> CandidateSource:
    """Return the generator backing the current runtime mode."""
    config = config or get_runtime_config()
    if config.mode is RuntimeMode.FIXTURE:
        payload = _build_fixture_store(config).load_json("candidates.json")
        if not isinstance(payload, list):
            raise FixtureNotFoundError("candidates.json")
        return FixtureCandidateSource(payload)
    return OpenAICandidateSource()


def _build_fixture_store(config: RuntimeConfig) -> LocalFixtureStore:
    if not config.fixture_base:
        raise ModeError("Fixture base path is required for fixture mode.")
    return LocalFixtureStore(config.fixture_base)


class LocalFixtureStore:
    """Loads fixtures from the repository tree."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir

    def load_json(self, relative_path: str) -> Any:
        target = (self._base_dir / relative_path).resolve()
        if not target.exists():
            raise FixtureNotFoundError(str(target))
        with target.open("r", encoding="utf-8") as infile:
            return json.load(infile)


class FixtureYouTubeClient:
    """Fixture-backed YouTube client.

    The snapshot is a list of channel objects shaped like the ``channels``
    endpoint, each optionally carrying an ``uploadDaysAgo`` list of upload
    ages in days counted back from ``clock``. Channel search matches on the
    case-folded title.
    """

    def __init__(
        self,
        store: LocalFixtureStore,
        artifact: str = "youtube/channels.json",
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._artifact = artifact
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    @cached_property
    def _channels(self) -> Sequence[dict[str, Any]]:
        payload = self._store.load_json(self._artifact)
        if not isinstance(payload, list):
            raise FixtureNotFoundError(self._artifact)
        return payload

    def _find(self, predicate) -> dict[str, Any] | None:
        return next((channel for channel in self._channels if predicate(channel)), None)

    def search_channels(self, *, query: str, limit: int = 1) -> list[dict[str, Any]]:
        needle = " ".join(query.split()).casefold()
        channel = self._find(lambda item: " ".join(item["snippet"]["title"].split()).casefold() == needle)
        if channel is None or limit <= 0:
            return []
        return [{"id": {"channelId": channel["id"]}, "snippet": {"channelTitle": channel["snippet"]["title"]}}]

    def list_channels(self, *, channel_id: str) -> list[dict[str, Any]]:
        channel = self._find(lambda item: item["id"] == channel_id)
        if channel is None:
            return []
        return [{key: value for key, value in channel.items() if key != "uploadDaysAgo"}]

    def search_recent_videos(
        self,
        *,
        channel_id: str,
        published_after: str,
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        channel = self._find(lambda item: item["id"] == channel_id)
        if channel is None or limit <= 0:
            return []
        cutoff = parse_timestamp(published_after)
        now = self._clock()
        uploads = sorted(
            (now - timedelta(days=max(float(days), 0.0)) for days in channel.get("uploadDaysAgo", [])),
            reverse=True,
        )
        return [
            {"snippet": {"publishedAt": published.isoformat().replace("+00:00", "Z"), "channelId": channel_id}}
            for published in uploads
            if published > cutoff
        ][:limit]
