"""Merge generated candidates with YouTube-verified channels."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from app.models.lead import CandidateRecord, EnrichedLead, VerifiedChannel, normalize_name

logger = logging.getLogger("pipelines.merge")


def _index_verified(verified: Iterable[VerifiedChannel]) -> dict[str, VerifiedChannel]:
    lookup: dict[str, VerifiedChannel] = {}
    # Keyed on the name each channel was probed for, never its canonical title.
    for channel in verified:
        lookup.setdefault(normalize_name(channel.query_name), channel)
    return lookup


def enrich(candidate: CandidateRecord, channel: VerifiedChannel) -> EnrichedLead:
    """Combine the candidate's pitch notes with the channel's verified facts."""
    return EnrichedLead(
        channel_name=channel.channel_name,
        subscriber_count=channel.subscriber_count,
        actual_subscribers=channel.actual_subscribers,
        niche=candidate.niche,
        edit_gap=candidate.edit_gap,
        verified=True,
        last_upload=channel.last_upload,
        channel_url=channel.channel_url,
    )


def passthrough(candidate: CandidateRecord) -> EnrichedLead:
    """Represent an unverified candidate as-is."""
    return EnrichedLead(
        channel_name=candidate.channel_name,
        subscriber_count=candidate.subscriber_estimate,
        niche=candidate.niche,
        edit_gap=candidate.edit_gap,
        verified=False,
    )


def merge_leads(
    candidates: Sequence[CandidateRecord],
    verified: Sequence[VerifiedChannel],
    *,
    verification_available: bool = True,
) -> list[EnrichedLead]:
    """Produce one lead per distinct candidate key, in candidate order.

    When verification is available, candidates without a verified channel are
    omitted. When it is not, every candidate passes through marked unverified.
    """
    seen: set[str] = set()
    leads: list[EnrichedLead] = []

    if not verification_available:
        for candidate in candidates:
            key = normalize_name(candidate.channel_name)
            if key in seen:
                continue
            seen.add(key)
            leads.append(passthrough(candidate))
        return leads

    lookup = _index_verified(verified)
    for candidate in candidates:
        key = normalize_name(candidate.channel_name)
        if key in seen:
            continue
        channel = lookup.get(key)
        if channel is None:
            logger.debug("No verified channel for candidate %s; omitting.", candidate.channel_name)
            continue
        seen.add(key)
        leads.append(enrich(candidate, channel))

    logger.info("Merged %s candidates into %s verified leads.", len(candidates), len(leads))
    return leads
