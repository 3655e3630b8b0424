"""Source adapters. Importing this package registers Slack and Figma."""

from threadline.adapters.base import (
    SourceAdapter,
    available_sources,
    get_adapter,
    register_adapter,
    reset_adapters,
    set_adapter,
)
from threadline.adapters.figma import FigmaAdapter
from threadline.adapters.slack import SlackAdapter

__all__ = [
    "FigmaAdapter",
    "SlackAdapter",
    "SourceAdapter",
    "available_sources",
    "get_adapter",
    "register_adapter",
    "reset_adapters",
    "set_adapter",
]
