"""Slack source adapter.

Thread ids are ``<channel_id>:<thread_ts>``, e.g. ``C0123ABC:1700000000.000100``.
The thread_ts of a top-level message is its own ts, so the same id works for
fetching replies, posting into the thread, and reacting to the root message.
"""

import logging
from datetime import datetime, timezone

import aiohttp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from threadline.adapters.base import SourceAdapter, register_adapter
from threadline.errors import AdapterError, ValidationError
from threadline.models import (
    ConfigValidation,
    DiscussionThread,
    Message,
    ParsedDiscussion,
    SourceConfig,
    StatusMarker,
)

logger = logging.getLogger(__name__)

STATUS_EMOJI: dict[StatusMarker, str] = {
    StatusMarker.PROCESSING_STARTED: "eyes",
    StatusMarker.QUEUED: "hourglass_flowing_sand",
    StatusMarker.ANALYZING: "robot_face",
    StatusMarker.SUCCESS: "white_check_mark",
    StatusMarker.ERROR: "x",
    StatusMarker.RETRYING: "arrows_counterclockwise",
}

SUPPORTED_EVENTS = ("message", "app_mention")
_TITLE_LIMIT = 50

_CREDENTIAL_ERRORS = {"invalid_auth", "not_authed", "account_inactive", "token_revoked", "token_expired"}
_NOT_FOUND_ERRORS = {"channel_not_found", "thread_not_found", "message_not_found", "not_in_channel"}
_NETWORK_ERRORS = (aiohttp.ClientError, TimeoutError, ConnectionError)

_clients: dict[str, AsyncWebClient] = {}


def get_slack_client(token: str) -> AsyncWebClient:
    """Return a cached AsyncWebClient for ``token`` (one per workspace install)."""
    if token not in _clients:
        _clients[token] = AsyncWebClient(token=token)
    return _clients[token]


def reset_clients() -> None:
    """Drop cached clients. Used for testing."""
    _clients.clear()


def parse_thread_id(thread_id: str) -> tuple[str, str]:
    """Split ``channel:thread_ts``. Raises ValidationError on any other shape."""
    channel, sep, ts = (thread_id or "").partition(":")
    if not sep or not channel or not ts:
        raise ValidationError(f"Invalid Slack thread id: {thread_id!r}", field="thread_id")
    return channel, ts


def extract_title(text: str) -> str:
    """First line of the message, truncated to 50 characters."""
    first_line = text.split("\n")[0].strip() if text else ""
    if len(first_line) > _TITLE_LIMIT:
        return first_line[:47] + "..."
    return first_line or "Slack Message"


def _ts_to_datetime(ts: str) -> datetime:
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)


def _error_code(exc: SlackApiError) -> str:
    return exc.response.get("error", "") if exc.response else ""


def _status_code(exc: SlackApiError) -> int | None:
    status = getattr(exc.response, "status_code", None)
    return status if isinstance(status, int) else None


def _to_message(raw: dict) -> Message:
    return Message(
        id=raw["ts"],
        author_handle=raw.get("user") or raw.get("username") or raw.get("bot_id") or "unknown",
        content=raw.get("text", ""),
        timestamp=_ts_to_datetime(raw["ts"]),
    )


@register_adapter
class SlackAdapter(SourceAdapter):
    source_type = "slack"

    def _api_error(self, exc: SlackApiError, action: str) -> AdapterError:
        code = _error_code(exc)
        status = _status_code(exc)
        if code in _CREDENTIAL_ERRORS:
            return AdapterError(f"Slack rejected credentials while trying to {action}: {code}", self.source_type,
                                status_code=status, code="invalid_credentials")
        if code in _NOT_FOUND_ERRORS:
            return AdapterError(f"Slack could not {action}: {code}", self.source_type,
                                status_code=status, code="not_found")
        retryable = code == "ratelimited" or status == 429 or (status is not None and status >= 500)
        return AdapterError(f"Slack API error while trying to {action}: {code or exc}", self.source_type,
                            retryable=retryable, status_code=status, code="api_error")

    async def parse_incoming(self, payload: dict) -> ParsedDiscussion:
        if payload.get("type") == "url_verification":
            raise ValidationError("URL verification challenge is answered by the webhook, not processed")

        event = payload.get("event")
        if not isinstance(event, dict):
            raise ValidationError("No event found in Slack payload", field="event")

        event_type = event.get("type")
        if event_type not in SUPPORTED_EVENTS:
            raise ValidationError(f"Unsupported event type: {event_type}", field="event.type")
        if event.get("subtype"):
            raise ValidationError(f"Message subtype not supported: {event['subtype']}", field="event.subtype")
        if event.get("bot_id"):
            raise ValidationError("Bot messages are not processed", field="event.bot_id")

        text = event.get("text") or ""
        if not text.strip():
            raise ValidationError("No message text found in event", field="event.text")
        for field in ("channel", "user", "ts"):
            if not event.get(field):
                raise ValidationError(f"No {field} found in event", field=f"event.{field}")

        channel, ts = event["channel"], event["ts"]
        team_id = payload.get("team_id") or payload.get("teamId") or event.get("team") or "default"
        thread_ts = event.get("thread_ts") or ts
        try:
            timestamp = _ts_to_datetime(ts)
        except ValueError as exc:
            raise ValidationError(f"Malformed message ts: {ts}", field="event.ts") from exc

        return ParsedDiscussion(
            source_type=self.source_type,
            source_thread_id=f"{channel}:{thread_ts}",
            source_url=f"https://slack.com/app_redirect?team={team_id}&channel={channel}&message_ts={ts}",
            team_id=team_id,
            author_handle=event["user"],
            title=extract_title(text),
            content=text,
            participants=[event["user"]],
            timestamp=timestamp,
            metadata={
                "slack_team_id": team_id,
                "channel_id": channel,
                "message_ts": ts,
                "thread_ts": event.get("thread_ts"),
                "channel_type": event.get("channel_type"),
                "event_id": payload.get("event_id"),
            },
        )

    async def fetch_thread(
        self,
        thread_id: str,
        config: SourceConfig,
        match_text: str | None = None,
    ) -> DiscussionThread:
        channel, thread_ts = parse_thread_id(thread_id)
        client = get_slack_client(config.api_token)

        raw_messages: list[dict] = []
        cursor = None
        try:
            while True:
                response = await client.conversations_replies(
                    channel=channel, ts=thread_ts, cursor=cursor, limit=200
                )
                raw_messages.extend(response.get("messages") or [])
                cursor = (response.get("response_metadata") or {}).get("next_cursor")
                if not cursor:
                    break
        except SlackApiError as exc:
            raise self._api_error(exc, "fetch thread") from exc
        except _NETWORK_ERRORS as exc:
            raise AdapterError(f"Network error fetching Slack thread: {exc}", self.source_type,
                               retryable=True, code="network_error") from exc

        if not raw_messages:
            raise AdapterError(f"Thread not found: {thread_id}", self.source_type, status_code=404, code="not_found")

        messages = [_to_message(m) for m in raw_messages]
        root = next((m for m in messages if m.id == thread_ts), messages[0])
        replies = [m for m in messages if m.id != root.id]
        logger.info(
            "Fetched Slack thread",
            extra={"thread_id": thread_id, "reply_count": len(replies)},
        )
        return DiscussionThread.build(
            thread_id,
            root,
            replies,
            metadata={"channel_id": channel, "thread_ts": thread_ts},
        )

    async def post_reply(self, thread_id: str, message: str, config: SourceConfig) -> bool:
        try:
            channel, thread_ts = parse_thread_id(thread_id)
            client = get_slack_client(config.api_token)
            await client.chat_postMessage(channel=channel, thread_ts=thread_ts, text=message)
            return True
        except SlackApiError as exc:
            logger.warning("Failed to post Slack reply to %s: %s", thread_id, _error_code(exc), exc_info=True)
        except (ValidationError, *_NETWORK_ERRORS):
            logger.warning("Failed to post Slack reply to %s", thread_id, exc_info=True)
        return False

    async def update_status(self, thread_id: str, marker: StatusMarker, config: SourceConfig) -> bool:
        emoji = STATUS_EMOJI[marker]
        try:
            channel, thread_ts = parse_thread_id(thread_id)
            client = get_slack_client(config.api_token)
            await client.reactions_add(channel=channel, name=emoji, timestamp=thread_ts)
            return True
        except SlackApiError as exc:
            error_code = _error_code(exc)
            if error_code == "already_reacted":
                return True
            logger.warning("Reaction '%s' not added to %s (%s)", emoji, thread_id, error_code)
        except (ValidationError, *_NETWORK_ERRORS):
            logger.warning("Reaction '%s' not added to %s", emoji, thread_id, exc_info=True)
        return False

    def validate_config(self, config: dict) -> ConfigValidation:
        errors: list[str] = []
        warnings: list[str] = []

        token = (config.get("api_token") or "").strip()
        if not token:
            errors.append("Slack API token is required")
        elif not token.startswith(("xoxb-", "xoxp-")):
            warnings.append('Slack API token should start with "xoxb-" (bot token) or "xoxp-" (user token)')

        self._common_config_checks(config, errors)

        if not config.get("workspace_id") and not (config.get("settings") or {}).get("workspace_id"):
            warnings.append("Slack workspace ID not set; deep links may not open the right workspace")

        return ConfigValidation(valid=not errors, errors=errors, warnings=warnings)

    async def test_connection(self, config: SourceConfig) -> bool:
        client = get_slack_client(config.api_token)
        try:
            response = await client.auth_test()
        except SlackApiError as exc:
            raise self._api_error(exc, "authenticate") from exc
        except _NETWORK_ERRORS as exc:
            raise AdapterError(f"Network error reaching Slack: {exc}", self.source_type,
                               retryable=True, code="network_error") from exc
        return bool(response.get("ok"))
