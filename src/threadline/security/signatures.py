"""Webhook signature verification for Slack and Mailgun.

Both schemes are HMAC-SHA256 over a timestamped base string. Requests whose
timestamp is more than ``tolerance_seconds`` away from now are rejected to
block replays, and digests are compared in constant time.
"""

import hashlib
import hmac
import time

from slack_sdk.signature import SignatureVerifier

from threadline.errors import SecurityError

DEFAULT_TOLERANCE_SECONDS = 300


def _check_timestamp(timestamp: str | int | None, now: float | None, tolerance_seconds: int) -> None:
    if timestamp is None or timestamp == "":
        raise SecurityError("Missing signature timestamp")
    try:
        ts = int(timestamp)
    except (TypeError, ValueError) as exc:
        raise SecurityError("Malformed signature timestamp") from exc
    current = time.time() if now is None else now
    if abs(current - ts) > tolerance_seconds:
        raise SecurityError("Signature timestamp outside the allowed window", {"age_seconds": int(current - ts)})


def verify_slack_signature(
    body: bytes | str,
    timestamp: str | None,
    signature: str | None,
    signing_secret: str,
    *,
    now: float | None = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> None:
    """Verify an ``X-Slack-Signature`` header (``v0=`` + HMAC of ``v0:{ts}:{body}``).

    Raises:
        SecurityError: On a missing secret, stale timestamp, or bad digest.
    """
    if not signing_secret:
        raise SecurityError("Slack signing secret is not configured")
    _check_timestamp(timestamp, now, tolerance_seconds)
    if not signature:
        raise SecurityError("Missing Slack signature")

    if isinstance(body, bytes):
        body = body.decode("utf-8")
    expected = SignatureVerifier(signing_secret=signing_secret).generate_signature(
        timestamp=str(timestamp), body=body
    )
    if expected is None or not hmac.compare_digest(expected, signature):
        raise SecurityError("Invalid Slack signature")


def verify_mailgun_signature(
    timestamp: str | int | None,
    token: str | None,
    signature: str | None,
    signing_key: str,
    *,
    now: float | None = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> None:
    """Verify a Mailgun webhook signature object (hex HMAC of ``timestamp + token``).

    Raises:
        SecurityError: On a missing key, stale timestamp, or bad digest.
    """
    if not signing_key:
        raise SecurityError("Mailgun signing key is not configured")
    _check_timestamp(timestamp, now, tolerance_seconds)
    if not token or not signature:
        raise SecurityError("Missing Mailgun signature fields")

    expected = hmac.new(
        signing_key.encode(),
        f"{timestamp}{token}".encode(),
        hashlib.sha256,
    ).hexdigest()
    if not hmac.compare_digest(expected, signature):
        raise SecurityError("Invalid Mailgun signature")
