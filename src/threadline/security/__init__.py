"""Request authentication: webhook signatures and OAuth state tokens."""

from threadline.security.oauth_state import consume_state, generate_state
from threadline.security.signatures import verify_mailgun_signature, verify_slack_signature

__all__ = [
    "consume_state",
    "generate_state",
    "verify_mailgun_signature",
    "verify_slack_signature",
]
