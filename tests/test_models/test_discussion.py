"""Tests for discussion and thread models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from threadline.models import Discussion, DiscussionStatus, DiscussionThread, Message, ParsedDiscussion

T0 = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


def _msg(msg_id: str, author: str, minutes: int) -> Message:
    return Message(id=msg_id, author_handle=author, content=f"message {msg_id}", timestamp=T0 + timedelta(minutes=minutes))


def _parsed(**overrides) -> ParsedDiscussion:
    defaults = {
        "source_type": "slack",
        "source_thread_id": "C1:1700000000.000100",
        "source_url": "https://slack.com/app_redirect?channel=C1",
        "team_id": "T123",
        "author_handle": "alice",
        "title": "Dashboard",
        "content": "Can we update the dashboard by Friday?",
        "participants": ["alice"],
        "metadata": {"event_id": "Ev1"},
    }
    defaults.update(overrides)
    return ParsedDiscussion(**defaults)


def test_thread_build_sorts_replies_and_dedupes_participants():
    root = _msg("r", "alice", 0)
    replies = [_msg("c", "alice", 9), _msg("a", "bob", 1), _msg("b", "carol", 5), _msg("d", "bob", 12)]

    thread = DiscussionThread.build("C1:1", root, replies, metadata={"channel_id": "C1"})

    assert [m.id for m in thread.replies] == ["a", "b", "c", "d"]
    assert thread.participants == ["alice", "bob", "carol"]
    assert [m.id for m in thread.messages] == ["r", "a", "b", "c", "d"]
    assert thread.metadata == {"channel_id": "C1"}


def test_thread_without_replies():
    thread = DiscussionThread.build("C1:1", _msg("r", "alice", 0), [])
    assert thread.replies == []
    assert thread.participants == ["alice"]
    assert thread.metadata == {}


def test_parsed_discussion_is_frozen():
    parsed = _parsed()
    with pytest.raises(ValidationError):
        parsed.title = "changed"


def test_discussion_from_parsed_and_back():
    parsed = _parsed()
    discussion = Discussion.from_parsed(parsed, source_config_id="cfg-1")

    assert discussion.status == DiscussionStatus.PENDING
    assert discussion.source_config_id == "cfg-1"
    assert discussion.created_task_ids == []
    assert discussion.to_parsed() == parsed


def test_discussion_ids_are_unique():
    parsed = _parsed()
    assert Discussion.from_parsed(parsed).id != Discussion.from_parsed(parsed).id
