"""Task records linking a discussion to the Notion pages created for it."""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


class ExternalTaskResult(BaseModel):
    """Result of creating a Notion page for a detected task."""

    id: str
    url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TaskRecord(BaseModel):
    """Local row for one created task."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    discussion_id: str
    job_id: str
    external_id: str
    external_url: str
    title: str
    task_index: int = 0
    is_multi_task: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
