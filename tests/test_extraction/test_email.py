"""Tests for parse_email: classification plus both cascades."""

from datetime import datetime, timezone

import httpx

from threadline.extraction import EmailType, parse_email


def _no_network() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    return httpx.MockTransport(handler)


def _comment_payload(**overrides) -> dict:
    payload = {
        "from": "Figma <comments-KEY123@email.figma.com>",
        "recipient": "acme@inbound.example.com",
        "subject": "Alice commented on Landing Page",
        "body-html": (
            "<p>@threadline please make the CTA bigger</p>"
            '<a href="https://www.figma.com/file/KEY123/Landing">Open in Figma</a>'
        ),
        "timestamp": "1700000000",
    }
    payload.update(overrides)
    return payload


async def test_parse_comment_email():
    parsed = await parse_email(_comment_payload(), bot_name="threadline", transport=_no_network())

    assert parsed.email_type == EmailType.COMMENT
    assert parsed.file_key == "KEY123"
    assert parsed.text == "@threadline please make the CTA bigger"
    assert parsed.subject == "Alice commented on Landing Page"
    assert parsed.recipient == "acme@inbound.example.com"
    assert parsed.timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert "https://www.figma.com/file/KEY123/Landing" in parsed.links


async def test_plain_text_part_preferred_for_first_line():
    payload = _comment_payload(**{"body-html": "", "body-plain": "Please double check the footer spacing"})
    parsed = await parse_email(payload, bot_name="threadline", transport=_no_network())
    assert parsed.text == "Please double check the footer spacing"


async def test_non_comment_email_skips_extraction():
    payload = _comment_payload(subject="Reset your password")
    parsed = await parse_email(payload, bot_name="threadline", transport=_no_network())

    assert parsed.email_type == EmailType.PASSWORD_RESET
    assert parsed.file_key is None
    assert parsed.text is None


async def test_bad_timestamp_is_ignored():
    parsed = await parse_email(_comment_payload(timestamp="not-a-number"), transport=_no_network())
    assert parsed.timestamp is None
