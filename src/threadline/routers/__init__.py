"""HTTP routers: inbound webhooks, operator endpoints, and Slack install."""

from threadline.routers.admin import router as admin_router
from threadline.routers.oauth import router as oauth_router
from threadline.routers.webhooks import router as webhooks_router

__all__ = ["admin_router", "oauth_router", "webhooks_router"]
