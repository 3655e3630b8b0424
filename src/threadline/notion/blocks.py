"""Pure functions converting a detected task and its discussion into Notion blocks.

Page body layout: AI summary callout, key points as to-dos, participants,
divider, thread content, metadata bullets, and a link back to the source.
Handles the 2000-char rich_text limit. The caller handles the 100-block
batch limit.
"""

from threadline.models import AISummary, DetectedTask, Discussion, DiscussionThread

_RICH_TEXT_LIMIT = 2000


def split_rich_text(text: str, limit: int = _RICH_TEXT_LIMIT) -> list[dict]:
    """Split text into multiple rich_text objects respecting Notion's 2000-char limit."""
    if not text:
        return [{"type": "text", "text": {"content": ""}}]
    chunks = []
    for i in range(0, len(text), limit):
        chunks.append({"type": "text", "text": {"content": text[i : i + limit]}})
    return chunks


def _heading_block(text: str, level: int = 2) -> dict:
    """Create a heading block (heading_2 or heading_3). Truncates to 2000 chars."""
    key = f"heading_{level}"
    return {
        "object": "block",
        "type": key,
        key: {"rich_text": [{"type": "text", "text": {"content": text[:_RICH_TEXT_LIMIT]}}]},
    }


def _paragraph_block(text: str) -> dict:
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": split_rich_text(text)},
    }


def _callout_block(text: str, emoji: str) -> dict:
    return {
        "object": "block",
        "type": "callout",
        "callout": {
            "rich_text": split_rich_text(text),
            "icon": {"type": "emoji", "emoji": emoji},
        },
    }


def _todo_block(text: str) -> dict:
    return {
        "object": "block",
        "type": "to_do",
        "to_do": {"rich_text": split_rich_text(text), "checked": False},
    }


def _bulleted_item_block(text: str) -> dict:
    return {
        "object": "block",
        "type": "bulleted_list_item",
        "bulleted_list_item": {"rich_text": split_rich_text(text)},
    }


def _labeled_item_block(label: str, text: str) -> dict:
    """Bulleted item with a bold label, e.g. **Source:** slack."""
    rich_text: list[dict] = [
        {
            "type": "text",
            "text": {"content": f"{label}: "},
            "annotations": {"bold": True},
        }
    ]
    rich_text.extend(split_rich_text(text))
    return {
        "object": "block",
        "type": "bulleted_list_item",
        "bulleted_list_item": {"rich_text": rich_text},
    }


def _link_block(label: str, url: str) -> dict:
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {
            "rich_text": [
                {
                    "type": "text",
                    "text": {"content": label, "link": {"url": url}},
                }
            ]
        },
    }


def _divider_block() -> dict:
    return {"object": "block", "type": "divider", "divider": {}}


def build_task_blocks(
    task: DetectedTask,
    discussion: Discussion,
    summary: AISummary | None = None,
    thread: DiscussionThread | None = None,
) -> list[dict]:
    """Build the page body for one task.

    Summary and key point sections are omitted when no AI summary exists
    (analysis disabled for the source).
    """
    blocks: list[dict] = []

    if summary is not None:
        blocks.append(_callout_block(summary.summary, "\U0001f916"))
        if summary.key_points:
            blocks.append(_heading_block("Key Points", level=3))
            for point in summary.key_points:
                blocks.append(_todo_block(point))

    participants = thread.participants if thread else discussion.participants
    if participants:
        blocks.append(_paragraph_block(f"Participants: {', '.join(participants)}"))
    blocks.append(_divider_block())

    blocks.append(_heading_block("Thread Content"))
    blocks.append(_paragraph_block(task.description or discussion.content))
    if thread is not None:
        for message in thread.messages:
            blocks.append(_bulleted_item_block(f"{message.author_handle}: {message.content}"))

    blocks.append(_heading_block("Metadata"))
    blocks.append(_labeled_item_block("Source", discussion.source_type))
    blocks.append(_labeled_item_block("Author", discussion.author_handle))
    blocks.append(_labeled_item_block("Priority", task.priority.value))
    if task.assignee:
        blocks.append(_labeled_item_block("Assignee", task.assignee))
    if task.tags:
        blocks.append(_labeled_item_block("Tags", ", ".join(task.tags)))
    blocks.append(_labeled_item_block("Discussion Date", discussion.timestamp.isoformat()))

    if discussion.source_url:
        blocks.append(_link_block(f"View original {discussion.source_type} discussion", discussion.source_url))

    return blocks
