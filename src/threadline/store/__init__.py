"""Shared state store singleton.

Follows the lazy-init pattern used by the Slack, Notion, and Gemini clients:
the backend is chosen on first use from ``REDIS_URL``.
"""

import logging

from threadline.config import get_settings
from threadline.store.base import SharedStore, WindowHit
from threadline.store.memory import InMemoryStore
from threadline.store.redis import RedisStore

logger = logging.getLogger(__name__)

_store: SharedStore | None = None


def get_store() -> SharedStore:
    """Return the process-wide shared store, creating it on first call."""
    global _store
    if _store is None:
        settings = get_settings()
        if settings.redis_url:
            _store = RedisStore.from_url(settings.redis_url)
            logger.info("Using Redis shared store")
        else:
            _store = InMemoryStore()
            if settings.environment == "production":
                logger.warning(
                    "REDIS_URL not set; rate limits and counters are per-instance only"
                )
    return _store


def set_store(store: SharedStore) -> None:
    """Install a specific store instance. Used for testing."""
    global _store
    _store = store


def reset_store() -> None:
    """Drop the cached store instance. Used for testing."""
    global _store
    _store = None


__all__ = [
    "InMemoryStore",
    "RedisStore",
    "SharedStore",
    "WindowHit",
    "get_store",
    "reset_store",
    "set_store",
]
