"""Exception hierarchy for the discussion pipeline.

Every error carries a ``retryable`` flag and an HTTP ``status_code``. The
webhook routers translate the flag into 503 (redeliver later) or 422
(do not redeliver); security failures are rejected with 403 before the
pipeline ever runs.
"""


class ThreadlineError(Exception):
    """Base class for all pipeline errors."""

    retryable: bool = False
    status_code: int = 500

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message

    def to_dict(self) -> dict:
        """Response body shape used by the webhook routers."""
        return {"error": self.message, "retryable": self.retryable}


class ValidationError(ThreadlineError):
    """Malformed or unsupported input. Never retryable."""

    status_code = 422

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        self.field = field
        super().__init__(message, details)


class AdapterError(ThreadlineError):
    """Failure talking to a source platform.

    ``code`` distinguishes the failure family (``invalid_credentials``,
    ``not_found``, ``network_error``, ``api_error``) so callers such as the
    connection test endpoint can report which one occurred.
    """

    def __init__(
        self,
        message: str,
        source_type: str,
        *,
        retryable: bool = False,
        status_code: int | None = None,
        code: str = "api_error",
        details: dict | None = None,
    ):
        self.source_type = source_type
        self.retryable = retryable
        self.code = code
        self.upstream_status = status_code
        self.status_code = 503 if retryable else 422
        super().__init__(message, details)


class ProcessingError(ThreadlineError):
    """A pipeline stage failed. The stage decides whether a retry can help."""

    def __init__(
        self,
        message: str,
        stage: str,
        *,
        retryable: bool = False,
        context: dict | None = None,
    ):
        self.stage = stage
        self.retryable = retryable
        self.context = context or {}
        self.status_code = 503 if retryable else 422
        super().__init__(message, self.context)


class ExternalServiceError(ThreadlineError):
    """Wraps analysis or task-service failures. Retryable unless told otherwise."""

    def __init__(self, message: str, service: str, *, retryable: bool = True, details: dict | None = None):
        self.service = service
        self.retryable = retryable
        self.status_code = 503 if retryable else 422
        super().__init__(message, details)


class SecurityError(ThreadlineError):
    """Signature or timestamp verification failed."""

    status_code = 403
