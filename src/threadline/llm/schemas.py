"""LLM response schema for Gemini structured output.

Contains only fields the model generates. Timing, caching, and the
multi-task flag are set by the analyzer.
"""

from pydantic import BaseModel, Field

from threadline.models.analysis import Sentiment, TaskPriority


class LLMTask(BaseModel):
    """One actionable task found in the discussion."""

    title: str = Field(description="Short imperative task title, under 80 characters")
    description: str = Field(description="What needs to be done and any context from the thread")
    priority: TaskPriority = Field(description="low/medium/high/urgent based on stated deadlines and impact")
    assignee: str | None = Field(
        default=None,
        description="Handle of the person asked to do the task. None if nobody was named.",
    )
    tags: list[str] = Field(default=[], max_length=5, description="0-5 lowercase hyphenated tags")


class LLMAnalysis(BaseModel):
    """Schema for Gemini structured output. Used as response_schema parameter."""

    summary: str = Field(description="2-3 sentence summary of the discussion")
    key_points: list[str] = Field(max_length=5, description="Up to 5 key points or decisions")
    sentiment: Sentiment = Field(description="Overall tone of the discussion")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence in the analysis, 0.0-1.0")
    tasks: list[LLMTask] = Field(description="Actionable tasks; empty if the thread asks for nothing")
