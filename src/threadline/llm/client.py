"""Lazily created Gemini client.

Retries are left to tenacity in the analyzer, so the HTTP layer is
configured with a timeout only.
"""

from google import genai
from google.genai import types

from threadline.config import get_settings

_client: genai.Client | None = None


def get_gemini_client() -> genai.Client:
    """Build the client on first use from ``GEMINI_API_KEY`` and reuse it afterwards."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = genai.Client(
            api_key=settings.gemini_api_key,
            http_options=types.HttpOptions(timeout=int(settings.gemini_timeout_seconds * 1000)),
        )
    return _client


def reset_client() -> None:
    """Forget the cached client. Used for testing."""
    global _client
    _client = None
