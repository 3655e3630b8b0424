"""JSON logging for Cloud Run.

Records go to stdout as JSON with GCP field names (``severity``,
``timestamp``). Anything passed via ``extra={...}`` (job_id, stage,
source_type, ...) becomes a top-level key, filterable in Logs Explorer.
"""

import logging.config

SERVICE_NAME = "threadline"

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("slack_sdk", "httpx", "httpcore", "notion_client", "google_genai")


def build_logging_config(level: str = "INFO", environment: str | None = None) -> dict:
    """dictConfig mapping with a single JSON stdout handler at ``level``."""
    static_fields = {"service": SERVICE_NAME}
    if environment:
        static_fields["environment"] = environment
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "format": "%(asctime)s %(levelname)s %(name)s %(funcName)s %(message)s",
                "rename_fields": {"levelname": "severity", "asctime": "timestamp", "name": "logger"},
                "static_fields": static_fields,
            },
        },
        "handlers": {
            "stdout": {"class": "logging.StreamHandler", "formatter": "json", "stream": "ext://sys.stdout"},
        },
        "root": {"level": level.upper(), "handlers": ["stdout"]},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    }


def configure_logging(level: str = "INFO", environment: str | None = None) -> None:
    """Apply the JSON logging config. Call once, from the app lifespan."""
    logging.config.dictConfig(build_logging_config(level, environment))
