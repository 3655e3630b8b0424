"""In-process shared store for single-instance deployments and tests."""

import heapq
import threading
import time
from collections.abc import Callable

from threadline.store.base import SharedStore, WindowHit


class InMemoryStore(SharedStore):
    """Dict-backed store guarded by a single lock.

    Expired keys are removed when touched, and every write also drops keys
    whose TTL has passed. Stale window entries are removed on the next hit.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._values: dict[str, tuple[str, float | None]] = {}
        self._windows: dict[str, list[int]] = {}
        # (expires_at, key); entries go stale when a key is overwritten or deleted
        self._expiry_heap: list[tuple[float, str]] = []

    def _expires_at(self, ttl_seconds: float | None) -> float | None:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def _put(self, key: str, value: str, expires_at: float | None) -> None:
        self._evict_expired()
        self._values[key] = (value, expires_at)
        if expires_at is not None:
            heapq.heappush(self._expiry_heap, (expires_at, key))

    def _evict_expired(self) -> None:
        now = self._clock()
        while self._expiry_heap and self._expiry_heap[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiry_heap)
            entry = self._values.get(key)
            if entry is not None and entry[1] == expires_at:
                del self._values[key]

    def _live(self, key: str) -> str | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._values[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        with self._lock:
            self._put(key, value, self._expires_at(ttl_seconds))

    async def set_if_absent(self, key: str, value: str, ttl_seconds: float | None = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._put(key, value, self._expires_at(ttl_seconds))
            return True

    async def pop(self, key: str) -> str | None:
        with self._lock:
            value = self._live(key)
            self._values.pop(key, None)
            return value

    async def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
            self._windows.pop(key, None)

    async def incr(self, key: str, amount: int = 1) -> int:
        with self._lock:
            current = int(self._live(key) or 0) + amount
            self._put(key, str(current), None)
            return current

    async def incr_float(self, key: str, amount: float) -> float:
        with self._lock:
            current = float(self._live(key) or 0.0) + amount
            self._put(key, repr(current), None)
            return current

    async def keys(self, prefix: str) -> list[str]:
        with self._lock:
            return sorted(k for k in list(self._values) if k.startswith(prefix) and self._live(k) is not None)

    async def hit_window(self, key: str, now_ms: int, window_ms: int, limit: int) -> WindowHit:
        with self._lock:
            cutoff = now_ms - window_ms
            hits = [t for t in self._windows.get(key, []) if t > cutoff]
            allowed = len(hits) < limit
            if allowed:
                hits.append(now_ms)
            if hits:
                self._windows[key] = hits
            else:
                self._windows.pop(key, None)
            return WindowHit(allowed=allowed, count=len(hits), oldest_ms=hits[0] if hits else now_ms)

    async def reset_window(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)
