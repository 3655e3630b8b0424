"""Tests for the Notion block builder."""

from datetime import datetime, timedelta, timezone

from threadline.models import AISummary, DetectedTask, Discussion, DiscussionThread, Message, TaskPriority
from threadline.notion.blocks import build_task_blocks, split_rich_text

T0 = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


def _make_discussion(**overrides) -> Discussion:
    """Create a valid Discussion with sensible defaults."""
    defaults = {
        "source_type": "slack",
        "source_thread_id": "C1:1700000000.000100",
        "source_url": "https://slack.com/app_redirect?channel=C1",
        "team_id": "T123",
        "author_handle": "alice",
        "title": "Dashboard",
        "content": "Can we update the dashboard by Friday?",
        "participants": ["alice"],
        "timestamp": T0,
    }
    defaults.update(overrides)
    return Discussion(**defaults)


def _make_task(**overrides) -> DetectedTask:
    defaults = {
        "title": "Update the dashboard",
        "description": "Refresh charts before Friday",
        "priority": TaskPriority.HIGH,
    }
    defaults.update(overrides)
    return DetectedTask(**defaults)


def _make_thread() -> DiscussionThread:
    root = Message(id="1", author_handle="alice", content="Can we update the dashboard by Friday?", timestamp=T0)
    reply = Message(id="2", author_handle="bob", content="On it", timestamp=T0 + timedelta(minutes=2))
    return DiscussionThread.build("C1:1700000000.000100", root, [reply])


def _texts(block: dict) -> str:
    body = block[block["type"]]
    return "".join(rt["text"]["content"] for rt in body.get("rich_text", []))


# -- split_rich_text --


def test_split_rich_text_chunks_at_limit():
    chunks = split_rich_text("a" * 4500)
    assert [len(c["text"]["content"]) for c in chunks] == [2000, 2000, 500]


def test_split_rich_text_empty():
    assert split_rich_text("") == [{"type": "text", "text": {"content": ""}}]


# -- build_task_blocks --


def test_full_layout_order():
    """Summary callout, key points, participants, divider, thread, metadata, link."""
    summary = AISummary(summary="Dashboard refresh requested.", key_points=["Deadline Friday", "Bob owns it"])
    blocks = build_task_blocks(_make_task(assignee="bob", tags=["dashboard"]), _make_discussion(), summary, _make_thread())

    types = [b["type"] for b in blocks]
    assert types == [
        "callout",
        "heading_3",
        "to_do",
        "to_do",
        "paragraph",
        "divider",
        "heading_2",
        "paragraph",
        "bulleted_list_item",
        "bulleted_list_item",
        "heading_2",
        "bulleted_list_item",
        "bulleted_list_item",
        "bulleted_list_item",
        "bulleted_list_item",
        "bulleted_list_item",
        "bulleted_list_item",
        "paragraph",
    ]
    assert blocks[0]["callout"]["icon"] == {"type": "emoji", "emoji": "\U0001f916"}
    assert _texts(blocks[0]) == "Dashboard refresh requested."
    assert blocks[2]["to_do"]["checked"] is False
    assert _texts(blocks[4]) == "Participants: alice, bob"
    assert _texts(blocks[7]) == "Refresh charts before Friday"
    assert _texts(blocks[9]) == "bob: On it"


def test_metadata_labels_are_bold():
    blocks = build_task_blocks(_make_task(), _make_discussion())
    source = next(b for b in blocks if _texts(b).startswith("Source: "))
    first = source["bulleted_list_item"]["rich_text"][0]
    assert first["annotations"] == {"bold": True}
    assert _texts(source) == "Source: slack"
    assert any(_texts(b) == "Priority: high" for b in blocks)
    assert any(_texts(b) == f"Discussion Date: {T0.isoformat()}" for b in blocks)


def test_no_summary_omits_callout_and_key_points():
    blocks = build_task_blocks(_make_task(), _make_discussion())
    types = [b["type"] for b in blocks]
    assert "callout" not in types
    assert "to_do" not in types
    assert types[0] == "paragraph"


def test_optional_metadata_omitted():
    blocks = build_task_blocks(_make_task(), _make_discussion())
    texts = [_texts(b) for b in blocks]
    assert not any(t.startswith("Assignee:") for t in texts)
    assert not any(t.startswith("Tags:") for t in texts)


def test_description_falls_back_to_discussion_content():
    blocks = build_task_blocks(_make_task(description=""), _make_discussion())
    heading = next(i for i, b in enumerate(blocks) if _texts(b) == "Thread Content")
    assert _texts(blocks[heading + 1]) == "Can we update the dashboard by Friday?"


def test_source_link_block():
    blocks = build_task_blocks(_make_task(), _make_discussion(source_type="figma", source_url="https://www.figma.com/file/K"))
    link = blocks[-1]["paragraph"]["rich_text"][0]["text"]
    assert link == {"content": "View original figma discussion", "link": {"url": "https://www.figma.com/file/K"}}


def test_no_link_without_source_url():
    blocks = build_task_blocks(_make_task(), _make_discussion(source_url=""))
    assert not any("link" in rt["text"] for b in blocks for rt in b.get(b["type"], {}).get("rich_text", []))


def test_long_description_split():
    blocks = build_task_blocks(_make_task(description="x" * 2500), _make_discussion())
    heading = next(i for i, b in enumerate(blocks) if _texts(b) == "Thread Content")
    assert len(blocks[heading + 1]["paragraph"]["rich_text"]) == 2
