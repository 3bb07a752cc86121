"""Structured diagnostics for verification runs (drop reasons, summaries)."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger("telemetry")

FORMAT_ENV = "LEAD_HUNTER_TELEMETRY_FORMAT"
PATH_ENV = "LEAD_HUNTER_TELEMETRY_PATH"


@dataclass(frozen=True)
class TelemetryConfig:
    format: str = "text"
    path: Path | None = None


class Telemetry:
    """Emit structured telemetry to the log and an optional JSONL file."""

    def __init__(self, config: TelemetryConfig) -> None:
        self._config = config
        if self._config.path:
            self._config.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, module: str, event: str, **fields: Any) -> None:
        payload = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "module": module,
            "event": event,
            **fields,
        }
        serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        if self._config.format == "json":
            logger.info(serialized)
        else:
            logger.info("%s %s %s", module, event, fields)
        self._write_to_file(serialized)

    def candidate_dropped(self, *, channel_name: str, reason: str, **fields: Any) -> None:
        """Record why a candidate left the batch without being verified."""
        self.emit("youtube_verify", "candidate_dropped", channel_name=channel_name, reason=reason, **fields)

    def _write_to_file(self, line: str) -> None:
        if not self._config.path:
            return
        try:
            with self._config.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:  # pragma: no cover
            logger.warning("TELEMETRY_WRITE_ERROR path=%s error=%s", self._config.path, exc)


_TELEMETRY: Telemetry | None = None


def _load_config() -> TelemetryConfig:
    fmt = (os.getenv(FORMAT_ENV) or "text").strip().lower()
    path_value = os.getenv(PATH_ENV)
    path = Path(path_value).expanduser() if path_value else None
    return TelemetryConfig(format=fmt if fmt in {"json", "text"} else "text", path=path)


def get_telemetry() -> Telemetry:
    global _TELEMETRY  # noqa: PLW0603
    if _TELEMETRY is None:
        _TELEMETRY = Telemetry(_load_config())
    return _TELEMETRY


def reset_telemetry_for_testing() -> None:  # pragma: no cover - test helper
    global _TELEMETRY  # noqa: PLW0603
    _TELEMETRY = None
