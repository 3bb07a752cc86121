"""Domain models for channel lead discovery."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ChannelCategory = Literal["Documentary", "Gaming", "Vlog", "Tech", "Education", "Business", "Lifestyle"]

CHANNEL_CATEGORIES: tuple[str, ...] = (
    "Documentary",
    "Gaming",
    "Vlog",
    "Tech",
    "Education",
    "Business",
    "Lifestyle",
)


def normalize_name(name: str) -> str:
    """Join key for channel names: trimmed, single-spaced, case-folded."""
    return " ".join((name or "").split()).casefold()


class CandidateRecord(BaseModel):
    """Unverified channel proposed by the candidate generator."""

    channel_name: str = Field(description="Channel name as proposed; join key after normalization.")
    niche: str = ""
    edit_gap: str = Field(default="", description="Why the channel is worth pitching.")
    subscriber_estimate: str = Field(default="", description="Unvalidated estimate, e.g. '120K'.")

    model_config = ConfigDict(frozen=True)

    @field_validator("channel_name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("channel_name must not be blank.")
        return value.strip()


class VerifiedChannel(BaseModel):
    """Channel confirmed to exist and to have uploaded inside the activity window."""

    channel_id: str
    channel_name: str
    query_name: str = Field(description="Candidate name the identity probe was issued for.")
    actual_subscribers: int = Field(ge=0)
    subscriber_count: str
    channel_url: str
    last_upload: str | None = None
    last_upload_at: datetime | None = None
    has_recent_upload: bool = False

    model_config = ConfigDict(frozen=True)


class EnrichedLead(BaseModel):
    """Final lead handed to the presentation layer."""

    channel_name: str
    subscriber_count: str
    actual_subscribers: int | None = None
    niche: str = ""
    edit_gap: str = ""
    verified: bool = False
    last_upload: str | None = None
    channel_url: str | None = None

    model_config = ConfigDict(frozen=True)


class SearchFilters(BaseModel):
    """User supplied search constraints."""

    category: ChannelCategory = "Documentary"
    min_subs: str = "50k"
    max_subs: str = "1M"


class SearchRequest(BaseModel):
    """Parameters forwarded to the candidate generator."""

    query: str = ""
    filters: SearchFilters = Field(default_factory=SearchFilters)
    blocklist: list[str] = Field(default_factory=list)


class SearchStatus(str, Enum):
    """Terminal status of a lead search."""

    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


class CandidateDrop(BaseModel):
    """Diagnostic record explaining why a candidate was not verified."""

    channel_name: str
    reason: Literal["not_found", "dormant"]
    stage: str | None = None
    channel_id: str | None = None


class SearchResult(BaseModel):
    """Leads plus terminal status returned to the presentation layer."""

    status: SearchStatus
    leads: list[EnrichedLead] = Field(default_factory=list)
    message: str | None = None
    error_code: str | None = None
    verification: Literal["verified", "unverified"] = "verified"
    dropped: list[CandidateDrop] = Field(default_factory=list)

    @property
    def verified_count(self) -> int:
        return sum(1 for lead in self.leads if lead.verified)
