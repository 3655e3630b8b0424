"""FastAPI application with lifespan and health endpoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from threadline import __version__
from threadline.config import get_settings
from threadline.errors import ThreadlineError
from threadline.logging_config import configure_logging
from threadline.repository import get_repository, seed_configs
from threadline.routers import admin_router, oauth_router, webhooks_router
from threadline.store import get_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging, seed source configs on startup; close the shared store on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.environment)
    app.state.settings = settings
    if settings.source_configs_file:
        await seed_configs(get_repository(), settings.source_configs_file)
    yield
    await get_store().close()


app = FastAPI(
    title="Threadline",
    lifespan=lifespan,
)
app.include_router(webhooks_router)
app.include_router(admin_router)
app.include_router(oauth_router)


@app.exception_handler(ThreadlineError)
async def threadline_error_handler(request: Request, exc: ThreadlineError) -> JSONResponse:
    """Render pipeline errors as ``{error, retryable}`` with their status code."""
    logger.warning("Request to %s failed: %s", request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.get("/health")
async def health():
    """Health check endpoint for Cloud Run and local development."""
    return {
        "status": "ok",
        "service": "threadline",
        "version": __version__,
    }
