"""Operational counters and Gemini cost accounting.

Counters live in the shared store so every instance contributes to the same
totals. Pricing constants are the single source of truth for cost
calculation.
"""

import logging
from dataclasses import dataclass

from threadline.store import SharedStore, get_store

logger = logging.getLogger(__name__)

# Gemini 3 Flash pricing
INPUT_PRICE_PER_TOKEN = 0.50 / 1_000_000  # $0.50 per 1M input tokens
OUTPUT_PRICE_PER_TOKEN = 3.00 / 1_000_000  # $3.00 per 1M output tokens

_PREFIX = "metrics:"


@dataclass
class TokenUsage:
    """Token counts and calculated cost for a single Gemini API call."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost_usd: float


def extract_usage(response: object) -> TokenUsage:
    """Extract token usage from a Gemini GenerateContentResponse.

    Missing or None counts in usage_metadata default to 0.
    """
    metadata = getattr(response, "usage_metadata", None)
    prompt_tokens = getattr(metadata, "prompt_token_count", 0) or 0
    completion_tokens = getattr(metadata, "candidates_token_count", 0) or 0
    cost_usd = (prompt_tokens * INPUT_PRICE_PER_TOKEN) + (completion_tokens * OUTPUT_PRICE_PER_TOKEN)
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
        cost_usd=cost_usd,
    )


class MetricsCollector:
    """Counters and duration totals keyed by name."""

    def __init__(self, store: SharedStore | None = None):
        self._store = store

    @property
    def store(self) -> SharedStore:
        return self._store or get_store()

    async def increment(self, name: str, amount: int = 1) -> None:
        await self.store.incr(f"{_PREFIX}count:{name}", amount)

    async def record_duration(self, name: str, duration_ms: int) -> None:
        """Accumulate a duration so the snapshot can report an average."""
        await self.store.incr(f"{_PREFIX}duration_count:{name}")
        await self.store.incr(f"{_PREFIX}duration_total:{name}", int(duration_ms))

    async def record_usage(self, usage: TokenUsage) -> None:
        await self.store.incr(f"{_PREFIX}count:gemini_calls")
        await self.store.incr(f"{_PREFIX}count:gemini_tokens", usage.total_tokens)
        await self.store.incr_float(f"{_PREFIX}cost_usd", usage.cost_usd)
        logger.info(
            "Gemini analysis complete",
            extra={
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
                "cost_usd": round(usage.cost_usd, 6),
            },
        )

    async def snapshot(self) -> dict:
        """Current counters, average durations, and accumulated Gemini cost."""
        counters: dict[str, int] = {}
        for key in await self.store.keys(f"{_PREFIX}count:"):
            counters[key.removeprefix(f"{_PREFIX}count:")] = int(await self.store.get(key) or 0)

        durations: dict[str, dict] = {}
        for key in await self.store.keys(f"{_PREFIX}duration_count:"):
            name = key.removeprefix(f"{_PREFIX}duration_count:")
            count = int(await self.store.get(key) or 0)
            total = int(await self.store.get(f"{_PREFIX}duration_total:{name}") or 0)
            durations[name] = {"count": count, "avg_ms": round(total / count, 1) if count else 0.0}

        cost = float(await self.store.get(f"{_PREFIX}cost_usd") or 0.0)
        return {"counters": counters, "durations": durations, "gemini_cost_usd": round(cost, 6)}

    async def reset(self) -> None:
        for key in await self.store.keys(_PREFIX):
            await self.store.delete(key)


_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def reset_metrics() -> None:
    """Drop the cached collector. Used for testing."""
    global _metrics
    _metrics = None
