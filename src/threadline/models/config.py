"""Per-team source configuration, read-only to the pipeline."""

from uuid import uuid4

from pydantic import BaseModel, Field


class SourceConfig(BaseModel):
    """Credentials and routing for one team on one source platform.

    ``notion_field_mapping`` maps task fields (``priority``, ``assignee``,
    ``tags``, ``source_type``, ``source_url``) to Notion property names.
    Unmapped fields are left out of the page properties.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    team_id: str
    source_type: str
    name: str = ""
    api_token: str = ""
    notion_token: str = ""
    notion_database_id: str = ""
    workspace_id: str | None = None
    ai_enabled: bool = True
    active: bool = True
    settings: dict = {}
    notion_field_mapping: dict[str, str] = {}


class ConfigValidation(BaseModel):
    """Result of an offline configuration check."""

    valid: bool
    errors: list[str] = []
    warnings: list[str] = []
