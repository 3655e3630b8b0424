"""Slack app installation (OAuth v2) endpoints.

The install endpoint issues a single-use state token and redirects to Slack;
the callback consumes the token, exchanges the code for a bot token, and
stores it on the team's Slack source config. A newly created config stays
inactive until its Notion settings are filled in.
"""

import logging
from urllib.parse import urlencode, urlsplit

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from threadline.config import get_settings
from threadline.models import SourceConfig
from threadline.reliability import AUTH, rate_limited
from threadline.repository import Repository
from threadline.routers.dependencies import get_repo
from threadline.security import consume_state, generate_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth/slack", tags=["oauth"], dependencies=[Depends(rate_limited(AUTH))])

SLACK_AUTHORIZE_URL = "https://slack.com/oauth/v2/authorize"
SLACK_SCOPES = ",".join(
    [
        "channels:history",
        "channels:read",
        "chat:write",
        "reactions:write",
        "app_mentions:read",
        "im:history",
        "im:read",
        "im:write",
        "mpim:history",
        "mpim:read",
        "mpim:write",
    ]
)


def _redirect_uri() -> str:
    return f"{get_settings().public_base_url.rstrip('/')}/oauth/slack/callback"


def is_allowed_redirect(url: str) -> bool:
    """Same-site paths, or absolute http(s) URLs on public_base_url's host or an allowed host."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if not parts.scheme and not parts.netloc:
        return url.startswith("/") and not url.startswith("//") and "\\" not in url
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    settings = get_settings()
    allowed = {urlsplit(settings.public_base_url).hostname, *settings.oauth_redirect_hosts}
    return parts.hostname.lower() in {host.lower() for host in allowed if host}


@router.get("/install")
async def install(team_id: str, redirect_url: str | None = None) -> RedirectResponse:
    """Start an install for ``team_id``."""
    settings = get_settings()
    if not settings.slack_client_id:
        raise HTTPException(status_code=503, detail="Slack OAuth is not configured")
    if redirect_url and not is_allowed_redirect(redirect_url):
        raise HTTPException(status_code=400, detail="redirect_url is not an allowed destination")
    state = await generate_state(team_id, redirect_url)
    query = urlencode(
        {
            "client_id": settings.slack_client_id,
            "scope": SLACK_SCOPES,
            "state": state,
            "redirect_uri": _redirect_uri(),
        }
    )
    return RedirectResponse(f"{SLACK_AUTHORIZE_URL}?{query}", status_code=302)


@router.get("/callback", response_model=None)
async def callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    repository: Repository = Depends(get_repo),
) -> RedirectResponse | JSONResponse:
    """Finish an install: verify state, exchange the code, store the token."""
    if error:
        raise HTTPException(status_code=403, detail=f"Slack authorization denied: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")
    state_data = await consume_state(state or "")
    if state_data is None:
        raise HTTPException(status_code=403, detail="Invalid or expired state")

    settings = get_settings()
    try:
        response = await AsyncWebClient().oauth_v2_access(
            client_id=settings.slack_client_id,
            client_secret=settings.slack_client_secret,
            code=code,
            redirect_uri=_redirect_uri(),
        )
    except SlackApiError as exc:
        logger.error("Slack OAuth code exchange failed: %s", exc.response.get("error"))
        raise HTTPException(status_code=502, detail="Slack token exchange failed") from exc

    team_id = state_data["team_id"]
    workspace = response.get("team") or {}
    workspace_id = workspace.get("id")
    existing = next(
        (c for c in await repository.list_configs(team_id, "slack") if c.workspace_id == workspace_id),
        None,
    )
    if existing is not None:
        config = existing.model_copy(update={"api_token": response["access_token"]})
        logger.info("Updated Slack token for config %s", config.id)
    else:
        config = SourceConfig(
            team_id=team_id,
            source_type="slack",
            name=workspace.get("name") or "Slack Workspace",
            api_token=response["access_token"],
            workspace_id=workspace_id,
            ai_enabled=False,
            active=False,
            settings={"bot_user_id": response.get("bot_user_id"), "scopes": response.get("scope")},
        )
        logger.info("Created inactive Slack config %s for team %s", config.id, team_id)
    await repository.add_config(config)

    if state_data.get("redirect_url") and is_allowed_redirect(state_data["redirect_url"]):
        return RedirectResponse(state_data["redirect_url"], status_code=302)
    return JSONResponse({"success": True, "team_id": team_id, "workspace_id": workspace_id, "config_id": config.id})
