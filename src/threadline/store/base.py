"""Shared store contract for state that must be visible across instances.

Rate-limit windows, metrics counters, OAuth state tokens, and webhook
idempotency keys all go through this interface. The in-memory backend is
correct for a single process only; multi-instance deployments must set
``REDIS_URL`` so every instance sees the same counters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class WindowHit:
    """Outcome of recording one hit in a sliding window."""

    allowed: bool
    count: int  # hits inside the window, including this one when allowed
    oldest_ms: int  # timestamp of the oldest hit still inside the window


class SharedStore(ABC):
    """Async key/value store with TTLs, counters, and sliding windows."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None: ...

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl_seconds: float | None = None) -> bool:
        """Store ``value`` only when ``key`` is missing. Returns True if stored."""

    @abstractmethod
    async def pop(self, key: str) -> str | None:
        """Atomically read and delete ``key``."""

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int: ...

    @abstractmethod
    async def incr_float(self, key: str, amount: float) -> float: ...

    @abstractmethod
    async def keys(self, prefix: str) -> list[str]: ...

    @abstractmethod
    async def hit_window(self, key: str, now_ms: int, window_ms: int, limit: int) -> WindowHit:
        """Record a hit in the sliding window at ``key`` unless it is full.

        Hits older than ``now_ms - window_ms`` are discarded first. A rejected
        hit is not recorded.
        """

    @abstractmethod
    async def reset_window(self, key: str) -> None: ...

    async def close(self) -> None:
        """Release connections. No-op for in-process stores."""
