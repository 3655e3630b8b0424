"""Shared FastAPI dependencies for the HTTP routers."""

from fastapi import HTTPException, Request

from threadline.config import get_settings
from threadline.processor import DiscussionProcessor
from threadline.repository import Repository, get_repository


def get_repo() -> Repository:
    return get_repository()


def get_processor() -> DiscussionProcessor:
    """Processor bound to the process-wide repository."""
    return DiscussionProcessor(get_repository())


async def verify_admin(request: Request) -> None:
    """Verify the admin secret header for operator endpoints.

    Compares the X-Admin-Secret header against the configured secret.
    Raises HTTPException 403 if the header is missing, empty, or mismatched.
    """
    settings = get_settings()
    secret = request.headers.get("X-Admin-Secret", "")
    if not settings.admin_secret or secret != settings.admin_secret:
        raise HTTPException(status_code=403, detail="Invalid admin secret")
