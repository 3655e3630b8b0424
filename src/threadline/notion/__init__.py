"""Notion task creation: one page per detected task."""

from threadline.notion.client import get_data_source_id, get_notion_client, reset_client
from threadline.notion.service import create_tasks

__all__ = [
    "create_tasks",
    "get_data_source_id",
    "get_notion_client",
    "reset_client",
]
