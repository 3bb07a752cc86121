"""Client for the YouTube Data API v3."""

from __future__ import annotations

from typing import Any

import httpx

QUOTA_AUTH = "quota_auth"
TRANSPORT = "transport"
MALFORMED_RESPONSE = "malformed_response"


class YouTubeError(RuntimeError):
    """Base error for YouTube client failures."""

    kind = TRANSPORT

    def __init__(self, message: str, code: str = "YOUTUBE_ERROR") -> None:
        super().__init__(message)
        self.code = code


class YouTubeQuotaError(YouTubeError):
    """Raised when YouTube rejects the API key or the daily quota is spent."""

    kind = QUOTA_AUTH

    def __init__(self, message: str = "YouTube API quota exceeded or invalid API key") -> None:
        super().__init__(message, code="YOUTUBE_403")


class YouTubeRateLimitError(YouTubeError):
    """Raised when YouTube responds with HTTP 429."""

    kind = QUOTA_AUTH

    def __init__(self, message: str = "Rate limited by YouTube") -> None:
        super().__init__(message, code="YOUTUBE_429")


class YouTubeTimeoutError(YouTubeError):
    """Raised when YouTube requests time out."""

    def __init__(self, message: str = "YouTube request timed out") -> None:
        super().__init__(message, code="YOUTUBE_TIMEOUT")


class YouTubeSchemaError(YouTubeError):
    """Raised when the YouTube response schema is not as expected."""

    kind = MALFORMED_RESPONSE

    def __init__(self, message: str = "Unexpected YouTube response schema") -> None:
        super().__init__(message, code="YOUTUBE_SCHEMA_ERR")


class YouTubeClient:
    """Minimal YouTube Data API client covering search and channel lookups."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://www.googleapis.com/youtube/v3",
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("YOUTUBE_API_KEY is required to create a YouTubeClient.")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            self._http.close()

    def search_channels(self, *, query: str, limit: int = 1) -> list[dict[str, Any]]:
        """Search channels by free-text name."""
        if limit <= 0:
            raise ValueError("limit must be a positive integer.")
        params = {
            "part": "snippet",
            "q": query,
            "type": "channel",
            "maxResults": limit,
        }
        return self._get_items("/search", params)

    def list_channels(self, *, channel_id: str) -> list[dict[str, Any]]:
        """Fetch snippet and statistics for a channel id."""
        params = {
            "part": "snippet,statistics",
            "id": channel_id,
        }
        return self._get_items("/channels", params)

    def search_recent_videos(
        self,
        *,
        channel_id: str,
        published_after: str,
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        """Return the newest uploads for a channel published after the given RFC 3339 timestamp."""
        if limit <= 0:
            raise ValueError("limit must be a positive integer.")
        params = {
            "part": "snippet",
            "channelId": channel_id,
            "type": "video",
            "order": "date",
            "maxResults": limit,
            "publishedAfter": published_after,
        }
        return self._get_items("/search", params)

    def _get_items(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        query = {**params, "key": self._api_key}
        try:
            response = self._http.get(path, params=query)
        except httpx.TimeoutException as exc:
            raise YouTubeTimeoutError() from exc
        except httpx.HTTPError as exc:
            raise YouTubeError(f"HTTP error calling YouTube: {type(exc).__name__}") from exc

        if response.status_code in (401, 403):
            raise YouTubeQuotaError()
        if response.status_code == 429:
            raise YouTubeRateLimitError()
        if response.status_code in (408, 504):
            raise YouTubeTimeoutError()
        if response.status_code >= 400:
            detail = response.text[:200]
            try:
                detail_json = response.json()
                error = detail_json.get("error") or {}
                detail = error.get("message") or detail
            except Exception:  # pragma: no cover - best effort decoding
                pass
            raise YouTubeError(f"YouTube request failed: {response.status_code} - {detail}")

        try:
            data = response.json()
        except ValueError as exc:
            raise YouTubeSchemaError("Failed to decode YouTube response JSON.") from exc

        if not isinstance(data, dict):
            raise YouTubeSchemaError("YouTube response must be a JSON object.")
        items = data.get("items", [])
        if not isinstance(items, list):
            raise YouTubeSchemaError("`items` in YouTube response must be a list.")
        if not all(isinstance(item, dict) for item in items):
            raise YouTubeSchemaError("Entries in `items` must be JSON objects.")
        return items

    def __enter__(self) -> "YouTubeClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
