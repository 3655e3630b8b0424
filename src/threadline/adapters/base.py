"""Source adapter contract and registry.

Each platform (Slack, Figma) implements the same capability set so the
processor never branches on source type. Adapters register themselves by
name and are looked up with ``get_adapter``.
"""

import logging
from abc import ABC, abstractmethod

from threadline.errors import ValidationError
from threadline.models import (
    ConfigValidation,
    DiscussionThread,
    ParsedDiscussion,
    SourceConfig,
    StatusMarker,
)

logger = logging.getLogger(__name__)


class SourceAdapter(ABC):
    """Normalize inbound payloads and read/write back to the origin platform."""

    source_type: str = ""

    @abstractmethod
    async def parse_incoming(self, payload: dict) -> ParsedDiscussion:
        """Normalize a raw webhook payload.

        Raises:
            ValidationError: On malformed or unsupported payloads.
        """

    @abstractmethod
    async def fetch_thread(
        self,
        thread_id: str,
        config: SourceConfig,
        match_text: str | None = None,
    ) -> DiscussionThread:
        """Fetch the root message and all replies, replies ordered by time.

        Raises:
            AdapterError: Non-retryable for auth/not-found, retryable for
                timeouts, rate limits, and 5xx responses.
        """

    @abstractmethod
    async def post_reply(self, thread_id: str, message: str, config: SourceConfig) -> bool:
        """Reply in the thread. Logs and returns False on failure, never raises."""

    @abstractmethod
    async def update_status(self, thread_id: str, marker: StatusMarker, config: SourceConfig) -> bool:
        """Show ``marker`` on the thread. An already-present marker counts as success."""

    @abstractmethod
    def validate_config(self, config: dict) -> ConfigValidation:
        """Check a (possibly partial) config without any network call."""

    @abstractmethod
    async def test_connection(self, config: SourceConfig) -> bool:
        """One authenticated round trip.

        Raises:
            AdapterError: ``code="invalid_credentials"`` (not retryable) or
                ``code="network_error"`` (retryable).
        """

    def _common_config_checks(self, config: dict, errors: list[str]) -> None:
        if not (config.get("notion_token") or "").strip():
            errors.append("Notion API token is required")
        if not (config.get("notion_database_id") or "").strip():
            errors.append("Notion database ID is required")
        source_type = config.get("source_type")
        if source_type and source_type != self.source_type:
            errors.append(f"Source type mismatch: expected '{self.source_type}', got '{source_type}'")


_registry: dict[str, type[SourceAdapter]] = {}
_instances: dict[str, SourceAdapter] = {}


def register_adapter(cls: type[SourceAdapter]) -> type[SourceAdapter]:
    """Class decorator adding an adapter to the registry under its ``source_type``."""
    _registry[cls.source_type] = cls
    return cls


def get_adapter(source_type: str) -> SourceAdapter:
    """Return the shared adapter instance for ``source_type``.

    Raises:
        ValidationError: If no adapter is registered under that name.
    """
    if source_type in _instances:
        return _instances[source_type]
    if source_type not in _registry:
        raise ValidationError(f"Unsupported source type: {source_type}", field="source_type")
    _instances[source_type] = _registry[source_type]()
    return _instances[source_type]


def available_sources() -> list[str]:
    return sorted(_registry)


def set_adapter(source_type: str, adapter: SourceAdapter) -> None:
    """Install a specific adapter instance. Used for testing."""
    _instances[source_type] = adapter


def reset_adapters() -> None:
    """Drop cached adapter instances. Used for testing."""
    _instances.clear()
