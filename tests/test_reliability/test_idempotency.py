"""Tests for webhook idempotency claims."""

from threadline.reliability import claim_event, release_event


async def test_first_claim_wins():
    assert await claim_event("slack", "Ev1") is True
    assert await claim_event("slack", "Ev1") is False


async def test_claims_are_scoped_by_source():
    assert await claim_event("slack", "same-id") is True
    assert await claim_event("figma", "same-id") is True


async def test_missing_event_id_is_always_processed():
    assert await claim_event("slack", "") is True
    assert await claim_event("slack", "") is True


async def test_release_allows_redelivery():
    await claim_event("figma", "<msg@mailgun>")
    await release_event("figma", "<msg@mailgun>")
    assert await claim_event("figma", "<msg@mailgun>") is True
