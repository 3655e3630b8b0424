"""Job record: one processing attempt of a discussion."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


class JobStage(str, Enum):
    """Pipeline stages in execution order."""

    INGESTION = "ingestion"
    CONFIG_LOAD = "config_load"
    THREAD_BUILDING = "thread_building"
    AI_ANALYSIS = "ai_analysis"
    TASK_CREATION = "task_creation"
    NOTIFICATION = "notification"


STAGE_ORDER: list[JobStage] = list(JobStage)


class Job(BaseModel):
    """Durable execution record.

    A job's stage only moves forward. Retrying a discussion creates a new
    Job; existing rows are never rewound.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    team_id: str
    source_type: str
    status: JobStatus = JobStatus.PENDING
    stage: JobStage = JobStage.INGESTION
    discussion_id: str | None = None
    source_config_id: str | None = None
    attempts: int = 1
    error: str | None = None
    error_stack: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    metadata: dict = {}

    def advance_to(self, stage: JobStage) -> None:
        """Move to ``stage``. Raises ValueError on any backwards move."""
        if STAGE_ORDER.index(stage) < STAGE_ORDER.index(self.stage):
            raise ValueError(f"Job {self.id} cannot move from {self.stage.value} back to {stage.value}")
        self.stage = stage

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)
