"""Normalized discussion models shared by every source adapter."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from threadline.models.analysis import AISummary, DetectedTask


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StatusMarker(str, Enum):
    """Visible progress markers emitted on the origin thread."""

    PROCESSING_STARTED = "processing_started"
    QUEUED = "queued"
    ANALYZING = "analyzing"
    SUCCESS = "success"
    ERROR = "error"
    RETRYING = "retrying"


class DiscussionStatus(str, Enum):
    """Lifecycle of a persisted discussion."""

    PENDING = "pending"
    PROCESSING = "processing"
    ANALYZED = "analyzed"
    COMPLETED = "completed"
    FAILED = "failed"


class ParsedDiscussion(BaseModel):
    """Adapter output: one inbound event normalized to the common shape."""

    model_config = ConfigDict(frozen=True)

    source_type: str
    source_thread_id: str
    source_url: str
    team_id: str
    author_handle: str
    title: str
    content: str
    participants: list[str] = []
    timestamp: datetime = Field(default_factory=_now)
    metadata: dict = {}


class Message(BaseModel):
    """A single message within a thread."""

    id: str
    author_handle: str
    content: str
    timestamp: datetime


class DiscussionThread(BaseModel):
    """A root message plus its replies in chronological order.

    ``id`` is the adapter's composite thread id. ``participants`` holds each
    author once, in order of first appearance.
    """

    id: str
    root_message: Message
    replies: list[Message] = []
    participants: list[str] = []
    metadata: dict = {}

    @classmethod
    def build(
        cls,
        thread_id: str,
        root: Message,
        replies: list[Message],
        metadata: dict | None = None,
    ) -> "DiscussionThread":
        """Sort replies by timestamp and derive the participant list."""
        ordered = sorted(replies, key=lambda m: m.timestamp)
        participants: list[str] = []
        for message in [root, *ordered]:
            if message.author_handle and message.author_handle not in participants:
                participants.append(message.author_handle)
        return cls(
            id=thread_id,
            root_message=root,
            replies=ordered,
            participants=participants,
            metadata=metadata or {},
        )

    @property
    def messages(self) -> list[Message]:
        return [self.root_message, *self.replies]


class Discussion(BaseModel):
    """Persisted discussion: the parsed event plus everything the pipeline produced."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    source_type: str
    source_thread_id: str
    source_url: str
    team_id: str
    author_handle: str
    title: str
    content: str
    participants: list[str] = []
    timestamp: datetime = Field(default_factory=_now)
    metadata: dict = {}
    source_config_id: str | None = None
    sync_job_id: str | None = None
    status: DiscussionStatus = DiscussionStatus.PENDING
    thread_data: DiscussionThread | None = None
    ai_summary: AISummary | None = None
    ai_action_items: list[DetectedTask] = []
    created_task_ids: list[str] = []
    created_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None

    @classmethod
    def from_parsed(cls, parsed: ParsedDiscussion, **kwargs) -> "Discussion":
        return cls(**parsed.model_dump(), **kwargs)

    def to_parsed(self) -> ParsedDiscussion:
        """Rebuild the adapter output, used when a failed discussion is retried."""
        return ParsedDiscussion(
            source_type=self.source_type,
            source_thread_id=self.source_thread_id,
            source_url=self.source_url,
            team_id=self.team_id,
            author_handle=self.author_handle,
            title=self.title,
            content=self.content,
            participants=self.participants,
            timestamp=self.timestamp,
            metadata=self.metadata,
        )
