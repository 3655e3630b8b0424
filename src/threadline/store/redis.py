"""Redis-backed shared store for horizontally scaled deployments.

Sliding windows are sorted sets scored by hit timestamp. Each hit runs
ZREMRANGEBYSCORE/ZADD/ZCARD in one MULTI/EXEC transaction so concurrent
instances agree on the count.
"""

import logging
from uuid import uuid4

from redis import asyncio as aioredis

from threadline.store.base import SharedStore, WindowHit

logger = logging.getLogger(__name__)

_WINDOW_PREFIX = "window:"


class RedisStore(SharedStore):
    """SharedStore on top of ``redis.asyncio``."""

    def __init__(self, client: aioredis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        px = int(ttl_seconds * 1000) if ttl_seconds else None
        await self._redis.set(key, value, px=px)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: float | None = None) -> bool:
        px = int(ttl_seconds * 1000) if ttl_seconds else None
        return bool(await self._redis.set(key, value, px=px, nx=True))

    async def pop(self, key: str) -> str | None:
        return await self._redis.getdel(key)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key, _WINDOW_PREFIX + key)

    async def incr(self, key: str, amount: int = 1) -> int:
        return int(await self._redis.incrby(key, amount))

    async def incr_float(self, key: str, amount: float) -> float:
        return float(await self._redis.incrbyfloat(key, amount))

    async def keys(self, prefix: str) -> list[str]:
        return sorted([key async for key in self._redis.scan_iter(match=f"{prefix}*")])

    async def hit_window(self, key: str, now_ms: int, window_ms: int, limit: int) -> WindowHit:
        window_key = _WINDOW_PREFIX + key
        member = f"{now_ms}-{uuid4().hex[:8]}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(window_key, 0, now_ms - window_ms)
            pipe.zadd(window_key, {member: now_ms})
            pipe.zcard(window_key)
            pipe.zrange(window_key, 0, 0, withscores=True)
            pipe.pexpire(window_key, window_ms)
            _, _, count, oldest, _ = await pipe.execute()

        oldest_ms = int(oldest[0][1]) if oldest else now_ms
        if count > limit:
            await self._redis.zrem(window_key, member)
            return WindowHit(allowed=False, count=limit, oldest_ms=oldest_ms)
        return WindowHit(allowed=True, count=int(count), oldest_ms=oldest_ms)

    async def reset_window(self, key: str) -> None:
        await self._redis.delete(_WINDOW_PREFIX + key)

    async def close(self) -> None:
        await self._redis.aclose()
