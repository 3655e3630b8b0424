"""Analysis results: thread summary and detected action items."""

from enum import Enum

from pydantic import BaseModel, Field


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class TaskPriority(str, Enum):
    """Priority levels for detected tasks."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AISummary(BaseModel):
    """Summary of a discussion thread."""

    summary: str
    key_points: list[str] = []
    sentiment: Sentiment = Sentiment.NEUTRAL
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class DetectedTask(BaseModel):
    """A single action item found in a discussion."""

    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee: str | None = None
    tags: list[str] = []


class AnalysisResult(BaseModel):
    """Everything the analysis stage hands to task creation."""

    summary: AISummary
    tasks: list[DetectedTask] = []
    is_multi_task: bool = False
    cached: bool = False
    processing_time_ms: int = 0
