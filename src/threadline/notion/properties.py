"""Pure function mapping a detected task to a Notion API properties dict.

The title property is always written. Other fields are written only when the
source config maps them to a database property name, since every team's
database has a different schema.
"""

from threadline.models import DetectedTask, Discussion, SourceConfig
from threadline.notion.blocks import split_rich_text

TITLE_PROPERTY = "title"


def build_properties(task: DetectedTask, discussion: Discussion, config: SourceConfig) -> dict:
    """Map task fields to Notion properties using ``config.notion_field_mapping``.

    Supported mapping keys: ``title`` (defaults to "title"), ``priority``,
    ``assignee``, ``tags``, ``source_type``, ``source_url``.
    """
    mapping = config.notion_field_mapping
    properties: dict = {
        mapping.get("title", TITLE_PROPERTY): {"title": split_rich_text(task.title[:2000])},
    }
    if "priority" in mapping:
        properties[mapping["priority"]] = {"select": {"name": task.priority.value}}
    if "assignee" in mapping and task.assignee:
        properties[mapping["assignee"]] = {"rich_text": split_rich_text(task.assignee)}
    if "tags" in mapping:
        properties[mapping["tags"]] = {"multi_select": [{"name": t} for t in task.tags]}
    if "source_type" in mapping:
        properties[mapping["source_type"]] = {"select": {"name": discussion.source_type}}
    if "source_url" in mapping and discussion.source_url:
        properties[mapping["source_url"]] = {"url": discussion.source_url}
    return properties
