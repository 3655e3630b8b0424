"""Application configuration via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Webhook signing
    slack_signing_secret: str = ""
    mailgun_signing_key: str = ""
    signature_tolerance_seconds: int = 300

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-3-flash-preview"
    gemini_timeout_seconds: float = 60.0
    analysis_cache_ttl_seconds: int = 3600
    max_tasks_per_discussion: int = 5

    # Email extraction
    bot_name: str = "threadline"
    fuzzy_match_threshold: float = 0.8
    redirect_timeout_seconds: float = 3.0

    # Shared state (empty -> in-process store)
    redis_url: str = ""

    # Source configuration records (JSON list)
    source_configs_file: str = ""

    # Operator endpoints
    admin_secret: str = ""

    # Slack app install (OAuth)
    slack_client_id: str = ""
    slack_client_secret: str = ""
    public_base_url: str = "http://localhost:8080"
    # Hosts besides public_base_url that install may redirect back to
    oauth_redirect_hosts: list[str] = []

    # App
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8080


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings. Lazy initialization to avoid import-time errors."""
    return Settings()
