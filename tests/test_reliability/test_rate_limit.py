"""Tests for the sliding-window rate limiter and its FastAPI dependency."""

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from threadline.reliability import AUTH, PRESETS, WEBHOOK, RateLimit, RateLimiter, RateLimitResult, rate_limited
from threadline.store import InMemoryStore


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_presets():
    assert PRESETS["webhook"] == WEBHOOK
    assert (WEBHOOK.max_requests, WEBHOOK.window_ms) == (100, 60_000)
    assert (AUTH.max_requests, AUTH.window_ms) == (5, 15 * 60_000)
    assert set(PRESETS) == {"webhook", "api", "auth", "read", "write"}


async def test_allows_until_limit_then_rejects():
    clock = FakeClock()
    limiter = RateLimiter(store=InMemoryStore(), clock=clock)
    limit = RateLimit("test", 3, 1000)

    results = []
    for _ in range(4):
        results.append(await limiter.check("1.2.3.4", limit))
        clock.now += 10

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[0].reset_time_ms == 1_000_000 + 1000


async def test_window_slides_and_identifiers_are_independent():
    clock = FakeClock()
    limiter = RateLimiter(store=InMemoryStore(), clock=clock)
    limit = RateLimit("test", 1, 1000)

    assert (await limiter.check("a", limit)).allowed
    assert not (await limiter.check("a", limit)).allowed
    assert (await limiter.check("b", limit)).allowed

    clock.now += 1001
    assert (await limiter.check("a", limit)).allowed


async def test_reset_clears_identifier():
    limiter = RateLimiter(store=InMemoryStore(), clock=FakeClock())
    limit = RateLimit("test", 1, 60_000)
    await limiter.check("a", limit)
    await limiter.reset("a", limit)
    assert (await limiter.check("a", limit)).allowed


def test_result_headers():
    result = RateLimitResult(allowed=True, limit=100, remaining=42, reset_time_ms=0)
    assert result.headers() == {"X-RateLimit-Limit": "100", "X-RateLimit-Remaining": "42"}


# -- dependency tests --


def _limited_app(limit: RateLimit) -> FastAPI:
    app = FastAPI()

    @app.get("/limited")
    async def limited(result: RateLimitResult = Depends(rate_limited(limit))):
        return {"remaining": result.remaining}

    return app


def test_dependency_returns_429_with_headers():
    client = TestClient(_limited_app(RateLimit("dep", 2, 60_000)))

    assert client.get("/limited").json() == {"remaining": 1}
    assert client.get("/limited").json() == {"remaining": 0}

    response = client.get("/limited")
    assert response.status_code == 429
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "0"


def test_dependency_keys_on_forwarded_for():
    client = TestClient(_limited_app(RateLimit("dep", 1, 60_000)))

    assert client.get("/limited", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"}).status_code == 200
    assert client.get("/limited", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
    assert client.get("/limited", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200
