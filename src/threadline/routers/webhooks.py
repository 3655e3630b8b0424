"""Inbound webhooks: Slack events and Mailgun-forwarded Figma emails.

Both endpoints verify the sender's signature against the raw request before
anything is parsed, then run the discussion pipeline inline. Responses:

    200 {"success": true, "data": {...}}
    422 {"error": ..., "retryable": false}   do not redeliver
    503 {"error": ..., "retryable": true}    redeliver later
    403                                      signature rejected

Rate-limit headers are attached to every response.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from threadline.config import get_settings
from threadline.errors import ThreadlineError, ValidationError
from threadline.processor import DiscussionProcessor, ProcessingResult
from threadline.reliability import WEBHOOK, RateLimitResult, claim_event, rate_limited, release_event
from threadline.routers.dependencies import get_processor
from threadline.security import verify_mailgun_signature, verify_slack_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _error_response(exc: ThreadlineError, headers: dict[str, str]) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)


def _success_response(data: dict, headers: dict[str, str]) -> JSONResponse:
    return JSONResponse({"success": True, "data": data}, headers=headers)


def _result_data(result: ProcessingResult) -> dict:
    return result.model_dump(mode="json")


async def _process_once(
    processor: DiscussionProcessor,
    source_type: str,
    payload: dict,
    headers: dict[str, str],
) -> JSONResponse:
    """Run the pipeline unless this event id was already claimed.

    A retryable failure releases the claim so the platform's redelivery is
    processed.
    """
    event_id = str(payload.get("event_id") or "")
    if not await claim_event(source_type, event_id):
        logger.info("Duplicate %s event skipped: %s", source_type, event_id)
        return _success_response({"duplicate": True}, headers)
    try:
        result = await processor.process_incoming(source_type, payload)
    except ThreadlineError as exc:
        if exc.retryable:
            await release_event(source_type, event_id)
        return _error_response(exc, headers)
    return _success_response(_result_data(result), headers)


async def read_slack_payload(request: Request) -> dict:
    """Verify the Slack signature over the raw body, then parse it.

    Reads the raw body FIRST so the signature check uses the exact bytes
    Slack signed.

    Raises:
        SecurityError: Bad or stale signature.
        ValidationError: Body is not a JSON object.
    """
    settings = get_settings()
    body = await request.body()
    verify_slack_signature(
        body,
        request.headers.get("X-Slack-Request-Timestamp"),
        request.headers.get("X-Slack-Signature"),
        settings.slack_signing_secret,
        tolerance_seconds=settings.signature_tolerance_seconds,
    )
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise ValidationError("Request body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


async def read_mailgun_payload(request: Request) -> dict:
    """Parse a Mailgun webhook (JSON or form-encoded) and verify its signature.

    The signature is either a nested ``signature`` object or flat
    ``timestamp``/``token``/``signature`` fields (routes API).

    Raises:
        SecurityError: Bad or stale signature.
        ValidationError: Body cannot be parsed.
    """
    settings = get_settings()
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError as exc:
            raise ValidationError("Request body is not valid JSON") from exc
    else:
        form = await request.form()
        payload = {key: value for key, value in form.items() if isinstance(value, str)}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")

    signature = payload.get("signature")
    if isinstance(signature, dict):
        timestamp, token, digest = signature.get("timestamp"), signature.get("token"), signature.get("signature")
    else:
        timestamp, token, digest = payload.get("timestamp"), payload.get("token"), signature
    verify_mailgun_signature(
        timestamp,
        token,
        digest,
        settings.mailgun_signing_key,
        tolerance_seconds=settings.signature_tolerance_seconds,
    )
    payload.setdefault("event_id", payload.get("Message-Id") or token)
    return payload


@router.post("/slack")
async def slack_webhook(
    request: Request,
    rate: RateLimitResult = Depends(rate_limited(WEBHOOK)),
    processor: DiscussionProcessor = Depends(get_processor),
) -> JSONResponse:
    """Receive Slack Events API callbacks.

    Redeliveries of an event id that was already processed, or is still
    being processed, are acknowledged without running the pipeline again.
    """
    headers = rate.headers()
    try:
        payload = await read_slack_payload(request)
        if payload.get("type") == "url_verification":
            return JSONResponse({"challenge": payload.get("challenge", "")}, headers=headers)

        return await _process_once(processor, "slack", payload, headers)
    except ThreadlineError as exc:
        return _error_response(exc, headers)


@router.post("/mailgun")
async def mailgun_webhook(
    request: Request,
    rate: RateLimitResult = Depends(rate_limited(WEBHOOK)),
    processor: DiscussionProcessor = Depends(get_processor),
) -> JSONResponse:
    """Receive Figma comment notification emails forwarded by Mailgun."""
    headers = rate.headers()
    try:
        payload = await read_mailgun_payload(request)
        return await _process_once(processor, "figma", payload, headers)
    except ThreadlineError as exc:
        return _error_response(exc, headers)
