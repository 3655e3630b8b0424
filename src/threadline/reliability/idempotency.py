"""Webhook idempotency keys.

Platforms redeliver events they consider unacknowledged. Each event id is
claimed once in the shared store; later deliveries see the claim and are
acknowledged without reprocessing.
"""

from threadline.store import get_store

_DEFAULT_TTL_SECONDS = 3600


async def claim_event(source_type: str, event_id: str, ttl_seconds: float = _DEFAULT_TTL_SECONDS) -> bool:
    """Return True the first time ``event_id`` is seen for ``source_type``."""
    if not event_id:
        return True
    return await get_store().set_if_absent(f"idempotency:{source_type}:{event_id}", "1", ttl_seconds)


async def release_event(source_type: str, event_id: str) -> None:
    """Forget a claim so a redelivery of ``event_id`` is processed again."""
    if event_id:
        await get_store().delete(f"idempotency:{source_type}:{event_id}")
