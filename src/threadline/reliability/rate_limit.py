"""Sliding-window rate limiting over the shared store.

Each identifier gets a window of hit timestamps. Stale hits are dropped
lazily when the identifier is next checked.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import HTTPException, Request

from threadline.store import SharedStore, get_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """A named budget of ``max_requests`` per ``window_ms``."""

    name: str
    max_requests: int
    window_ms: int


WEBHOOK = RateLimit("webhook", 100, 60_000)
API = RateLimit("api", 60, 60_000)
AUTH = RateLimit("auth", 5, 15 * 60_000)
READ = RateLimit("read", 300, 60_000)
WRITE = RateLimit("write", 30, 60_000)

PRESETS: dict[str, RateLimit] = {p.name: p for p in (WEBHOOK, API, AUTH, READ, WRITE)}


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_time_ms: int

    def headers(self) -> dict[str, str]:
        """Headers attached to every rate-limited response."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Checks identifiers against a RateLimit preset."""

    def __init__(self, store: SharedStore | None = None, clock: Callable[[], int] = _now_ms):
        self._store = store
        self._clock = clock

    @property
    def store(self) -> SharedStore:
        return self._store or get_store()

    @staticmethod
    def _key(limit: RateLimit, identifier: str) -> str:
        return f"ratelimit:{limit.name}:{identifier}"

    async def check(self, identifier: str, limit: RateLimit) -> RateLimitResult:
        """Record a request for ``identifier`` and report whether it is allowed."""
        now = self._clock()
        hit = await self.store.hit_window(
            self._key(limit, identifier), now, limit.window_ms, limit.max_requests
        )
        result = RateLimitResult(
            allowed=hit.allowed,
            limit=limit.max_requests,
            remaining=max(0, limit.max_requests - hit.count),
            reset_time_ms=hit.oldest_ms + limit.window_ms,
        )
        if not hit.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"identifier": identifier, "preset": limit.name},
            )
        return result

    async def reset(self, identifier: str, limit: RateLimit) -> None:
        await self.store.reset_window(self._key(limit, identifier))


_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = RateLimiter()
    return _limiter


def reset_rate_limiter() -> None:
    """Reset the cached limiter instance. Used for testing."""
    global _limiter
    _limiter = None


def client_identifier(request: Request) -> str:
    """First X-Forwarded-For hop (Cloud Run sits behind a proxy), else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limited(limit: RateLimit):
    """Build a FastAPI dependency enforcing ``limit`` per client.

    Raises HTTPException(429) with the rate-limit headers when exhausted;
    otherwise returns the RateLimitResult so the endpoint can attach the
    headers to its own response.
    """

    async def dependency(request: Request) -> RateLimitResult:
        result = await get_rate_limiter().check(client_identifier(request), limit)
        if not result.allowed:
            raise HTTPException(
                status_code=429,
                detail="Too many requests",
                headers=result.headers(),
            )
        return result

    return dependency
