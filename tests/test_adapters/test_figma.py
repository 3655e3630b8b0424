"""Tests for the Figma source adapter."""

import json

import httpx
import pytest

from threadline.adapters.figma import FigmaAdapter, split_thread_id, team_from_recipient
from threadline.errors import AdapterError, ValidationError
from threadline.models import SourceConfig, StatusMarker

FILE_KEY = "KEY123"

COMMENTS = [
    {
        "id": "c1",
        "message": "Please make the CTA bigger",
        "created_at": "2024-01-10T10:00:00Z",
        "user": {"handle": "alice"},
    },
    {
        "id": "c2",
        "message": "Agreed, and bump the contrast",
        "created_at": "2024-01-10T10:05:00Z",
        "parent_id": "c1",
        "user": {"handle": "bob"},
    },
    {
        "id": "c3",
        "message": "Footer links are broken",
        "created_at": "2024-01-11T09:00:00Z",
        "user": {"handle": "carol"},
    },
    {
        "id": "c4",
        "message": "Fixed in the latest version",
        "created_at": "2024-01-11T09:30:00Z",
        "parent_id": "c3",
        "resolved_at": None,
        "user": {"handle": "alice"},
    },
]


def _config(**overrides) -> SourceConfig:
    defaults = {
        "team_id": "acme",
        "source_type": "figma",
        "api_token": "figd_test_token_1234567890",
        "notion_token": "secret_notion",
        "notion_database_id": "db-1",
    }
    defaults.update(overrides)
    return SourceConfig(**defaults)


def _comments_transport(comments=COMMENTS, status=200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["X-Figma-Token"] == "figd_test_token_1234567890"
        assert request.url.path == f"/v1/files/{FILE_KEY}/comments"
        return httpx.Response(status, json={"comments": comments})

    return httpx.MockTransport(handler)


def _email_payload(**overrides) -> dict:
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


def _no_network() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    return httpx.MockTransport(handler)


# -- helper tests --


def test_split_thread_id():
    assert split_thread_id("KEY123") == ("KEY123", None)
    assert split_thread_id("KEY123:c1") == ("KEY123", "c1")


def test_split_thread_id_rejects_empty():
    with pytest.raises(ValidationError):
        split_thread_id("")


def test_team_from_recipient():
    assert team_from_recipient("acme@inbound.example.com") == "acme"
    assert team_from_recipient("") == "default"


# -- parse_incoming tests --


async def test_parse_incoming_comment_email():
    parsed = await FigmaAdapter(transport=_no_network()).parse_incoming(_email_payload())

    assert parsed.source_type == "figma"
    assert parsed.source_thread_id == FILE_KEY
    assert parsed.source_url == "https://www.figma.com/file/KEY123/Landing"
    assert parsed.team_id == "acme"
    assert parsed.author_handle == "Figma <comments-KEY123@email.figma.com>"
    assert parsed.content == "@threadline please make the CTA bigger"
    assert parsed.title == "Alice commented on Landing Page"
    assert parsed.metadata["file_key"] == FILE_KEY
    assert parsed.metadata["email_slug"] == "acme"


async def test_parse_incoming_rejects_non_comment_email():
    with pytest.raises(ValidationError, match="not a comment"):
        await FigmaAdapter(transport=_no_network()).parse_incoming(
            _email_payload(subject="Verify your email address"),
        )


async def test_parse_incoming_rejects_missing_file_key():
    payload = _email_payload(**{"from": "no-reply@figma.com", "body-html": "<p>Alice commented on a file</p>"})
    with pytest.raises(ValidationError, match="file key"):
        await FigmaAdapter(transport=_no_network()).parse_incoming(payload)


# -- fetch_thread tests --


async def test_fetch_thread_by_comment_id():
    adapter = FigmaAdapter(transport=_comments_transport())
    thread = await adapter.fetch_thread(f"{FILE_KEY}:c3", _config())

    assert thread.id == f"{FILE_KEY}:c3"
    assert thread.root_message.content == "Footer links are broken"
    assert [r.id for r in thread.replies] == ["c4"]
    assert thread.participants == ["carol", "alice"]
    assert thread.metadata["file_key"] == FILE_KEY


async def test_fetch_thread_fuzzy_matches_email_text():
    adapter = FigmaAdapter(transport=_comments_transport())
    thread = await adapter.fetch_thread(FILE_KEY, _config(), match_text="please make the CTA bigger")

    assert thread.id == f"{FILE_KEY}:c1"
    assert [r.content for r in thread.replies] == ["Agreed, and bump the contrast"]


async def test_fetch_thread_match_on_reply_returns_parent_thread():
    adapter = FigmaAdapter(transport=_comments_transport())
    thread = await adapter.fetch_thread(FILE_KEY, _config(), match_text="Agreed, and bump the contrast")
    assert thread.id == f"{FILE_KEY}:c1"


async def test_fetch_thread_without_match_uses_latest_root():
    adapter = FigmaAdapter(transport=_comments_transport())
    thread = await adapter.fetch_thread(FILE_KEY, _config(), match_text="something entirely unrelated to any of it")
    assert thread.id == f"{FILE_KEY}:c3"


async def test_fetch_thread_unknown_comment_is_not_found():
    adapter = FigmaAdapter(transport=_comments_transport())
    with pytest.raises(AdapterError) as exc_info:
        await adapter.fetch_thread(f"{FILE_KEY}:missing", _config())
    assert exc_info.value.code == "not_found"
    assert not exc_info.value.retryable


@pytest.mark.parametrize(
    ("status", "code", "retryable"),
    [
        (403, "invalid_credentials", False),
        (404, "not_found", False),
        (429, "api_error", True),
        (502, "api_error", True),
        (400, "api_error", False),
    ],
)
async def test_fetch_thread_http_errors(status, code, retryable):
    adapter = FigmaAdapter(transport=_comments_transport(status=status))
    with pytest.raises(AdapterError) as exc_info:
        await adapter.fetch_thread(f"{FILE_KEY}:c1", _config())
    assert exc_info.value.code == code
    assert exc_info.value.retryable is retryable
    assert exc_info.value.upstream_status == status


async def test_fetch_thread_timeout_is_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = FigmaAdapter(transport=httpx.MockTransport(handler))
    with pytest.raises(AdapterError) as exc_info:
        await adapter.fetch_thread(f"{FILE_KEY}:c1", _config())
    assert exc_info.value.code == "network_error"
    assert exc_info.value.retryable


# -- post_reply / update_status tests --


async def test_post_reply_sends_comment_reply():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "c9"})

    adapter = FigmaAdapter(transport=httpx.MockTransport(handler))
    assert await adapter.post_reply(f"{FILE_KEY}:c1", "Task created", _config()) is True
    assert seen["path"] == f"/v1/files/{FILE_KEY}/comments"
    assert seen["body"] == {"message": "Task created", "comment_id": "c1"}


async def test_post_reply_without_comment_id_returns_false():
    adapter = FigmaAdapter(transport=_no_network())
    assert await adapter.post_reply(FILE_KEY, "Task created", _config()) is False


async def test_post_reply_failure_returns_false():
    adapter = FigmaAdapter(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    assert await adapter.post_reply(f"{FILE_KEY}:c1", "Task created", _config()) is False


async def test_update_status_posts_reaction():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    adapter = FigmaAdapter(transport=httpx.MockTransport(handler))
    assert await adapter.update_status(f"{FILE_KEY}:c1", StatusMarker.SUCCESS, _config()) is True
    assert seen["path"] == f"/v1/files/{FILE_KEY}/comments/c1/reactions"
    assert seen["body"] == {"emoji": ":white_check_mark:"}


async def test_update_status_existing_reaction_is_success():
    adapter = FigmaAdapter(transport=httpx.MockTransport(lambda request: httpx.Response(409)))
    assert await adapter.update_status(f"{FILE_KEY}:c1", StatusMarker.ANALYZING, _config()) is True


async def test_update_status_failure_returns_false():
    adapter = FigmaAdapter(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))
    assert await adapter.update_status(f"{FILE_KEY}:c1", StatusMarker.ERROR, _config()) is False


# -- validate_config / test_connection tests --


def test_validate_config_valid():
    result = FigmaAdapter().validate_config(
        {"api_token": "figd_test_token_1234567890", "notion_token": "n", "notion_database_id": "d"}
    )
    assert result.valid
    assert result.warnings == []


def test_validate_config_short_token_warns():
    result = FigmaAdapter().validate_config({"api_token": "short", "notion_token": "n", "notion_database_id": "d"})
    assert result.valid
    assert result.warnings == ["Figma API token appears to be too short"]


def test_validate_config_missing_token():
    result = FigmaAdapter().validate_config({"notion_token": "n", "notion_database_id": "d"})
    assert not result.valid
    assert result.errors == ["Figma API token is required"]


async def test_test_connection_ok():
    adapter = FigmaAdapter(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "u1"})))
    assert await adapter.test_connection(_config()) is True


async def test_test_connection_rejected_token():
    adapter = FigmaAdapter(transport=httpx.MockTransport(lambda request: httpx.Response(403, json={"err": "Invalid token"})))
    with pytest.raises(AdapterError) as exc_info:
        await adapter.test_connection(_config())
    assert exc_info.value.code == "invalid_credentials"
    assert "Invalid token" in str(exc_info.value)
