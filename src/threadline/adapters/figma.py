"""Figma source adapter.

Figma has no comment webhooks, so comments arrive as notification emails
relayed by Mailgun. Thread ids are ``<file_key>`` straight out of an email
(comment not yet known) or ``<file_key>:<comment_id>`` once the comment has
been located through the REST API.
"""

import logging
import re
from datetime import datetime

import httpx

from threadline.adapters.base import SourceAdapter, register_adapter
from threadline.config import get_settings
from threadline.errors import AdapterError, ValidationError
from threadline.extraction import fuzzy_find_text, parse_email
from threadline.extraction.classifier import EmailType
from threadline.extraction.identifiers import FILE_URL_PATTERN
from threadline.models import (
    ConfigValidation,
    DiscussionThread,
    Message,
    ParsedDiscussion,
    SourceConfig,
    StatusMarker,
)

logger = logging.getLogger(__name__)

FIGMA_API_BASE = "https://api.figma.com/v1"

STATUS_EMOJI: dict[StatusMarker, str] = {
    StatusMarker.PROCESSING_STARTED: ":eyes:",
    StatusMarker.QUEUED: ":hourglass:",
    StatusMarker.ANALYZING: ":robot:",
    StatusMarker.SUCCESS: ":white_check_mark:",
    StatusMarker.ERROR: ":x:",
    StatusMarker.RETRYING: ":arrows_counterclockwise:",
}

_RECIPIENT_PATTERN = re.compile(r"^([^@]+)@")
_MIN_TOKEN_LENGTH = 20


def split_thread_id(thread_id: str) -> tuple[str, str | None]:
    """``file_key[:comment_id]`` -> (file_key, comment_id or None)."""
    file_key, _, comment_id = (thread_id or "").partition(":")
    if not file_key:
        raise ValidationError(f"Invalid Figma thread id: {thread_id!r}", field="thread_id")
    return file_key, comment_id or None


def team_from_recipient(recipient: str) -> str:
    """Team slug is the local part of the inbound address (``acme@in.example.com``)."""
    match = _RECIPIENT_PATTERN.match(recipient or "")
    return match.group(1) if match else "default"


def _to_message(comment: dict) -> Message:
    return Message(
        id=comment["id"],
        author_handle=(comment.get("user") or {}).get("handle", "unknown"),
        content=comment.get("message", ""),
        timestamp=datetime.fromisoformat(comment["created_at"].replace("Z", "+00:00")),
    )


@register_adapter
class FigmaAdapter(SourceAdapter):
    source_type = "figma"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, timeout: float = 15.0):
        self._transport = transport
        self._timeout = timeout

    def _client(self, token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=FIGMA_API_BASE,
            headers={"X-Figma-Token": token},
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    def _response_error(self, response: httpx.Response, action: str) -> AdapterError:
        status = response.status_code
        try:
            body = response.json()
            detail = body.get("err") or body.get("message") or response.reason_phrase
        except ValueError:
            detail = response.reason_phrase
        message = f"Figma API error while trying to {action}: {status} {detail}"
        if status in (401, 403):
            return AdapterError(message, self.source_type, status_code=status, code="invalid_credentials")
        if status == 404:
            return AdapterError(message, self.source_type, status_code=status, code="not_found")
        retryable = status == 429 or status >= 500
        return AdapterError(message, self.source_type, retryable=retryable, status_code=status, code="api_error")

    def _network_error(self, exc: Exception, action: str) -> AdapterError:
        return AdapterError(f"Network error while trying to {action}: {exc}", self.source_type,
                            retryable=True, code="network_error")

    async def parse_incoming(self, payload: dict) -> ParsedDiscussion:
        settings = get_settings()
        parsed = await parse_email(
            payload,
            bot_name=settings.bot_name,
            redirect_timeout=settings.redirect_timeout_seconds,
            transport=self._transport,
        )
        if parsed.email_type != EmailType.COMMENT:
            raise ValidationError(f"Email is not a comment notification: {parsed.email_type.value}", field="subject")
        if not parsed.file_key:
            raise ValidationError("No Figma file key found in email", field="file_key")
        if not parsed.text or not parsed.text.strip():
            raise ValidationError("No comment text found in email", field="body")

        file_url = next((link for link in parsed.links if FILE_URL_PATTERN.search(link)), None)
        team_id = team_from_recipient(parsed.recipient)
        kwargs = {"timestamp": parsed.timestamp} if parsed.timestamp else {}
        return ParsedDiscussion(
            source_type=self.source_type,
            source_thread_id=parsed.file_key,
            source_url=file_url or f"https://www.figma.com/file/{parsed.file_key}",
            team_id=team_id,
            author_handle=parsed.author or "unknown",
            title=parsed.subject or "Figma Comment",
            content=parsed.text,
            participants=[parsed.author] if parsed.author else [],
            metadata={
                "file_key": parsed.file_key,
                "email_type": parsed.email_type.value,
                "links": parsed.links,
                "email_slug": team_id,
                "recipient_email": parsed.recipient,
            },
            **kwargs,
        )

    async def _fetch_comments(self, file_key: str, token: str) -> list[dict]:
        try:
            async with self._client(token) as client:
                response = await client.get(f"/files/{file_key}/comments")
        except httpx.HTTPError as exc:
            raise self._network_error(exc, "fetch comments") from exc
        if response.status_code != 200:
            raise self._response_error(response, "fetch comments")
        return response.json().get("comments", [])

    def _find_root(self, comments: list[dict], comment_id: str | None, match_text: str | None) -> dict | None:
        by_id = {c["id"]: c for c in comments}
        if comment_id:
            return by_id.get(comment_id)

        if match_text:
            threshold = get_settings().fuzzy_match_threshold
            messages = [c.get("message", "") for c in comments]
            best = fuzzy_find_text(match_text, messages, threshold)
            if best is not None:
                matched = comments[messages.index(best)]
                return by_id.get(matched.get("parent_id") or "", matched)
            logger.info("No Figma comment matched email text; using most recent root comment")

        roots = [c for c in comments if not c.get("parent_id")]
        return max(roots, key=lambda c: c["created_at"]) if roots else None

    async def fetch_thread(
        self,
        thread_id: str,
        config: SourceConfig,
        match_text: str | None = None,
    ) -> DiscussionThread:
        file_key, comment_id = split_thread_id(thread_id)
        comments = await self._fetch_comments(file_key, config.api_token)

        root = self._find_root(comments, comment_id, match_text)
        if root is None:
            raise AdapterError(f"Comment not found in file {file_key}", self.source_type,
                               status_code=404, code="not_found")

        replies = [_to_message(c) for c in comments if c.get("parent_id") == root["id"]]
        return DiscussionThread.build(
            f"{file_key}:{root['id']}",
            _to_message(root),
            replies,
            metadata={
                "file_key": file_key,
                "resolved": root.get("resolved_at") is not None,
                "created_at": root["created_at"],
            },
        )

    async def post_reply(self, thread_id: str, message: str, config: SourceConfig) -> bool:
        try:
            file_key, comment_id = split_thread_id(thread_id)
        except ValidationError:
            logger.warning("Cannot reply to malformed Figma thread id %s", thread_id)
            return False
        if not comment_id:
            logger.warning("No comment id in %s, cannot post reply", thread_id)
            return False
        try:
            async with self._client(config.api_token) as client:
                response = await client.post(
                    f"/files/{file_key}/comments",
                    json={"message": message, "comment_id": comment_id},
                )
        except httpx.HTTPError:
            logger.warning("Failed to post Figma reply to %s", thread_id, exc_info=True)
            return False
        if response.status_code not in (200, 201):
            logger.warning("Failed to post Figma reply: %s", self._response_error(response, "post reply"))
            return False
        return True

    async def update_status(self, thread_id: str, marker: StatusMarker, config: SourceConfig) -> bool:
        emoji = STATUS_EMOJI[marker]
        try:
            file_key, comment_id = split_thread_id(thread_id)
        except ValidationError:
            return False
        if not comment_id:
            logger.warning("No comment id in %s, cannot update status", thread_id)
            return False
        try:
            async with self._client(config.api_token) as client:
                response = await client.post(
                    f"/files/{file_key}/comments/{comment_id}/reactions",
                    json={"emoji": emoji},
                )
        except httpx.HTTPError:
            logger.warning("Reaction '%s' not added to %s", emoji, thread_id, exc_info=True)
            return False
        if response.status_code in (200, 201, 204):
            return True
        if response.status_code == 409 or "already" in response.text.lower():
            return True
        logger.warning("Reaction '%s' not added: %s", emoji, self._response_error(response, "add reaction"))
        return False

    def validate_config(self, config: dict) -> ConfigValidation:
        errors: list[str] = []
        warnings: list[str] = []

        token = (config.get("api_token") or "").strip()
        if not token:
            errors.append("Figma API token is required")
        elif len(token) < _MIN_TOKEN_LENGTH:
            warnings.append("Figma API token appears to be too short")

        self._common_config_checks(config, errors)
        return ConfigValidation(valid=not errors, errors=errors, warnings=warnings)

    async def test_connection(self, config: SourceConfig) -> bool:
        try:
            async with self._client(config.api_token) as client:
                response = await client.get("/me")
        except httpx.HTTPError as exc:
            raise self._network_error(exc, "reach Figma") from exc
        if response.status_code != 200:
            raise self._response_error(response, "authenticate")
        return True
