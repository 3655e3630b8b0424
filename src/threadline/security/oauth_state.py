"""Short-lived OAuth state tokens kept in the shared store.

A state token is issued when an install flow starts and consumed exactly
once on callback. Consumption is an atomic read-and-delete so two instances
can never both accept the same token.
"""

import json
import secrets
import time

from threadline.store import get_store

_PREFIX = "oauth_state:"
STATE_TTL_SECONDS = 600


async def generate_state(team_id: str, redirect_url: str | None = None, ttl_seconds: int = STATE_TTL_SECONDS) -> str:
    """Issue a new state token bound to ``team_id``."""
    token = secrets.token_urlsafe(32)
    payload = {"team_id": team_id, "redirect_url": redirect_url, "created_at": time.time()}
    await get_store().set(_PREFIX + token, json.dumps(payload), ttl_seconds)
    return token


async def consume_state(token: str) -> dict | None:
    """Return the state payload and invalidate the token. None if unknown or expired."""
    if not token:
        return None
    raw = await get_store().pop(_PREFIX + token)
    return json.loads(raw) if raw else None
