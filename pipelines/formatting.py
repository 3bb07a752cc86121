"""Display formatting for subscriber counts and upload recency."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

# Approximate days in a month (display only, not the activity window).
APPROX_DAYS_PER_MONTH = 30

_SECONDS_PER_DAY = 24 * 60 * 60


def _round_half_up(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_metric(count: int) -> str:
    """Format a subscriber count for display (e.g. 127000 -> "127K")."""
    if count < 0:
        raise ValueError("count must be a non-negative integer.")

    if count >= 1_000_000:
        millions = Decimal(count) / Decimal(1_000_000)
        return f"{_round_half_up(millions, 1)}M"
    if count >= 1_000:
        thousands = Decimal(count) / Decimal(1_000)
        if thousands >= 10:
            return f"{_round_half_up(thousands, 0)}K"
        return f"{_round_half_up(thousands, 1)}K"
    return str(count)


def parse_timestamp(value: datetime | str) -> datetime:
    """Parse an API timestamp into an aware UTC datetime."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_ago(timestamp: datetime | str, *, now: datetime | None = None) -> int:
    """Whole days between ``timestamp`` and ``now``, rounded up."""
    reference = parse_timestamp(now) if now else datetime.now(tz=UTC)
    elapsed = abs((reference - parse_timestamp(timestamp)).total_seconds())
    return math.ceil(elapsed / _SECONDS_PER_DAY)


def format_relative_age(timestamp: datetime | str, *, now: datetime | None = None) -> str:
    """Format a timestamp as "Today", "N days ago" or "N months ago"."""
    days = days_ago(timestamp, now=now)

    if days == 0:
        return "Today"
    if days == 1:
        return "1 day ago"
    if days < APPROX_DAYS_PER_MONTH:
        return f"{days} days ago"
    if days < APPROX_DAYS_PER_MONTH * 2:
        return "1 month ago"
    months = days // APPROX_DAYS_PER_MONTH
    return f"{months} months ago"
