"""Operator endpoints: retries, job history, config checks, and metrics.

All routes require the X-Admin-Secret header.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from threadline.adapters import get_adapter
from threadline.errors import AdapterError, ThreadlineError
from threadline.metrics import get_metrics
from threadline.models import SourceConfig
from threadline.processor import DiscussionProcessor
from threadline.reliability import API, rate_limited
from threadline.repository import Repository
from threadline.routers.dependencies import get_processor, get_repo, verify_admin

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["admin"],
    dependencies=[Depends(verify_admin), Depends(rate_limited(API))],
)


@router.post("/discussions/{discussion_id}/retry")
async def retry_discussion(
    discussion_id: str,
    reuse_thread: bool = True,
    processor: DiscussionProcessor = Depends(get_processor),
    repository: Repository = Depends(get_repo),
) -> JSONResponse:
    """Re-run a failed discussion under a new job."""
    if await repository.get_discussion(discussion_id) is None:
        raise HTTPException(status_code=404, detail="Discussion not found")
    try:
        result = await processor.retry_discussion(discussion_id, reuse_thread=reuse_thread)
    except ThreadlineError as exc:
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)
    return JSONResponse({"success": True, "data": result.model_dump(mode="json")})


@router.get("/discussions/{discussion_id}/jobs")
async def list_jobs(discussion_id: str, repository: Repository = Depends(get_repo)) -> dict:
    """Every processing attempt for a discussion, oldest first."""
    if await repository.get_discussion(discussion_id) is None:
        raise HTTPException(status_code=404, detail="Discussion not found")
    jobs = await repository.list_jobs(discussion_id)
    return {"jobs": [job.model_dump(mode="json") for job in jobs]}


@router.post("/sources/{source_type}/validate")
async def validate_source_config(source_type: str, config: dict) -> JSONResponse:
    """Offline config check: no network calls."""
    try:
        adapter = get_adapter(source_type)
    except ThreadlineError as exc:
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)
    return JSONResponse(adapter.validate_config(config).model_dump())


@router.post("/sources/{source_type}/test-connection")
async def test_source_connection(source_type: str, config: SourceConfig) -> JSONResponse:
    """One authenticated round trip against the platform."""
    try:
        adapter = get_adapter(source_type)
    except ThreadlineError as exc:
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)
    if config.source_type != source_type:
        raise HTTPException(status_code=422, detail="source_type does not match the path")

    try:
        connected = await adapter.test_connection(config)
    except AdapterError as exc:
        logger.info("Connection test failed for %s: %s", source_type, exc.code)
        return JSONResponse(
            {"success": False, "code": exc.code, "error": exc.message, "retryable": exc.retryable}
        )
    return JSONResponse({"success": connected, "source_type": source_type})


@router.get("/metrics")
async def metrics() -> dict:
    return await get_metrics().snapshot()
