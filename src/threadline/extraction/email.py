"""Mailgun payload -> ParsedEmail.

Combines the classifier with the file-key and comment-text cascades.
"""

import logging
from datetime import datetime, timezone

import httpx
from pydantic import BaseModel

from threadline.extraction.classifier import EmailType, classify_email
from threadline.extraction.html import EmailSource, extract_links
from threadline.extraction.identifiers import DEFAULT_REDIRECT_TIMEOUT, extract_file_key
from threadline.extraction.text import extract_comment_text

logger = logging.getLogger(__name__)


class ParsedEmail(BaseModel):
    """What the extractor recovered from one notification email."""

    text: str | None = None
    file_key: str | None = None
    author: str | None = None
    links: list[str] = []
    subject: str = ""
    recipient: str = ""
    timestamp: datetime | None = None
    email_type: EmailType = EmailType.OTHER


def email_source(payload: dict) -> EmailSource:
    """Pick the fields the cascades use out of a Mailgun form payload."""
    return EmailSource(
        sender=payload.get("from") or payload.get("sender") or "",
        subject=payload.get("subject") or "",
        html=payload.get("body-html") or "",
        text=payload.get("stripped-text") or payload.get("body-plain") or "",
    )


def _timestamp(value) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc) if value else None
    except (TypeError, ValueError):
        return None


async def parse_email(
    payload: dict,
    *,
    bot_name: str = "",
    redirect_timeout: float = DEFAULT_REDIRECT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ParsedEmail:
    """Classify the email and run both extraction cascades.

    Non-comment emails are returned with ``email_type`` set and no extraction
    performed, since their links would resolve to unrelated files.
    """
    source = email_source(payload)
    classification = classify_email(source)
    parsed = ParsedEmail(
        author=source.sender or None,
        subject=source.subject,
        recipient=payload.get("recipient") or "",
        timestamp=_timestamp(payload.get("timestamp")),
        email_type=classification.email_type,
        links=extract_links(source.html),
    )
    if not classification.should_process:
        logger.info(
            "Skipping non-comment email",
            extra={"email_type": classification.email_type.value, "reason": classification.reason},
        )
        return parsed

    parsed.file_key = await extract_file_key(source, redirect_timeout=redirect_timeout, transport=transport)
    parsed.text = await extract_comment_text(source, bot_name=bot_name)
    logger.info(
        "Parsed comment email",
        extra={"file_key": parsed.file_key, "has_text": bool(parsed.text), "link_count": len(parsed.links)},
    )
    return parsed
