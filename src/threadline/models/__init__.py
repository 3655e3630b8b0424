"""Data models and enums for the Threadline pipeline."""

from threadline.models.analysis import (
    AISummary,
    AnalysisResult,
    DetectedTask,
    Sentiment,
    TaskPriority,
)
from threadline.models.config import ConfigValidation, SourceConfig
from threadline.models.discussion import (
    Discussion,
    DiscussionStatus,
    DiscussionThread,
    Message,
    ParsedDiscussion,
    StatusMarker,
)
from threadline.models.job import STAGE_ORDER, Job, JobStage, JobStatus
from threadline.models.task import ExternalTaskResult, TaskRecord

__all__ = [
    "AISummary",
    "AnalysisResult",
    "DetectedTask",
    "Sentiment",
    "TaskPriority",
    "ConfigValidation",
    "SourceConfig",
    "Discussion",
    "DiscussionStatus",
    "DiscussionThread",
    "Message",
    "ParsedDiscussion",
    "StatusMarker",
    "STAGE_ORDER",
    "Job",
    "JobStage",
    "JobStatus",
    "ExternalTaskResult",
    "TaskRecord",
]
