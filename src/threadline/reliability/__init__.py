"""Reliability primitives: retry, rate limiting, and idempotency."""

from threadline.reliability.idempotency import claim_event, release_event
from threadline.reliability.rate_limit import (
    API,
    AUTH,
    PRESETS,
    READ,
    WEBHOOK,
    WRITE,
    RateLimit,
    RateLimiter,
    RateLimitResult,
    get_rate_limiter,
    rate_limited,
    reset_rate_limiter,
)
from threadline.reliability.retry import backoff_delay, retry_with_backoff, retry_with_fixed_delay

__all__ = [
    "API",
    "AUTH",
    "PRESETS",
    "READ",
    "WEBHOOK",
    "WRITE",
    "RateLimit",
    "RateLimiter",
    "RateLimitResult",
    "backoff_delay",
    "claim_event",
    "get_rate_limiter",
    "rate_limited",
    "release_event",
    "reset_rate_limiter",
    "retry_with_backoff",
    "retry_with_fixed_delay",
]
