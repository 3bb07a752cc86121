from app.models.lead import CandidateRecord, VerifiedChannel
from pipelines.merge import merge_leads, normalize_name


def make_candidate(name: str, **overrides) -> CandidateRecord:
    payload = {
        "channel_name": name,
        "niche": "Documentary",
        "edit_gap": "Great narration, static visuals.",
        "subscriber_estimate": "120K",
    }
    payload.update(overrides)
    return CandidateRecord(**payload)


def make_verified(title: str, *, query_name: str | None = None, channel_id: str = "UC1") -> VerifiedChannel:
    return VerifiedChannel(
        channel_id=channel_id,
        channel_name=title,
        query_name=query_name or title,
        actual_subscribers=127_000,
        subscriber_count="127K",
        channel_url=f"https://www.youtube.com/channel/{channel_id}",
        last_upload="3 days ago",
        has_recent_upload=True,
    )


def test_normalize_name_trims_collapses_and_casefolds():
    assert normalize_name("  Sunny   V2 ") == "sunny v2"
    assert normalize_name("SunnyV2") == normalize_name("sunnyv2")


def test_merge_is_case_insensitive():
    leads = merge_leads([make_candidate("SunnyV2")], [make_verified("sunnyv2")])

    assert len(leads) == 1
    lead = leads[0]
    assert lead.verified is True
    assert lead.channel_name == "sunnyv2"
    assert lead.subscriber_count == "127K"
    assert lead.actual_subscribers == 127_000
    assert lead.edit_gap == "Great narration, static visuals."
    assert lead.niche == "Documentary"
    assert lead.last_upload == "3 days ago"
    assert lead.channel_url == "https://www.youtube.com/channel/UC1"


def test_unmatched_candidates_are_omitted():
    candidates = [make_candidate("Dark Docs"), make_candidate("FakeChannelXYZ"), make_candidate("Plainly Difficult")]
    verified = [
        make_verified("Plainly Difficult", channel_id="UC2"),
        make_verified("Dark Docs", channel_id="UC1"),
    ]

    leads = merge_leads(candidates, verified)

    assert [lead.channel_name for lead in leads] == ["Dark Docs", "Plainly Difficult"]


def test_query_name_matches_when_canonical_title_differs():
    verified = [make_verified("Plainly Difficult Official", query_name="Plainly Difficult")]

    leads = merge_leads([make_candidate("plainly difficult")], verified)

    assert len(leads) == 1
    assert leads[0].channel_name == "Plainly Difficult Official"


def test_canonical_title_never_verifies_another_candidate():
    # "Foo" resolved to a channel titled "Bar"; candidate "Bar" itself was dropped.
    verified = [make_verified("Bar", query_name="Foo", channel_id="UCx")]

    leads = merge_leads([make_candidate("Foo"), make_candidate("Bar")], verified)

    assert len(leads) == 1
    assert leads[0].channel_name == "Bar"
    assert leads[0].channel_url == "https://www.youtube.com/channel/UCx"


def test_duplicate_candidate_keys_yield_one_lead():
    candidates = [make_candidate("Dark Docs"), make_candidate("dark docs", edit_gap="second")]

    leads = merge_leads(candidates, [make_verified("Dark Docs")])

    assert len(leads) == 1
    assert leads[0].edit_gap == "Great narration, static visuals."


def test_fallback_passes_every_candidate_through_unverified():
    candidates = [make_candidate("Dark Docs"), make_candidate("FakeChannelXYZ", subscriber_estimate="80K")]

    leads = merge_leads(candidates, [], verification_available=False)

    assert len(leads) == 2
    assert all(lead.verified is False for lead in leads)
    assert leads[1].channel_name == "FakeChannelXYZ"
    assert leads[1].subscriber_count == "80K"
    assert leads[1].channel_url is None


def test_empty_verified_set_yields_no_leads_when_verification_ran():
    assert merge_leads([make_candidate("Dark Docs")], []) == []
