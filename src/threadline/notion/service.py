"""Task creation service: detected tasks -> Notion pages.

Creation is all-or-nothing. Each page is created with backoff retry; if any
page still fails, pages already created for the discussion are archived
(best effort) and ExternalServiceError is raised so no local task rows are
written.
"""

import asyncio
import logging

import httpx
from notion_client import AsyncClient
from notion_client import errors as notion_errors

from threadline.errors import ExternalServiceError
from threadline.models import (
    AISummary,
    DetectedTask,
    Discussion,
    DiscussionThread,
    ExternalTaskResult,
    SourceConfig,
)
from threadline.notion.blocks import build_task_blocks
from threadline.notion.client import get_data_source_id, get_notion_client
from threadline.notion.properties import build_properties
from threadline.reliability import retry_with_backoff

logger = logging.getLogger(__name__)

_BLOCK_BATCH_SIZE = 100
_CREATE_INTERVAL_SECONDS = 0.2
_RETRY_BASE_DELAY = 1.0


def is_retryable_notion_error(error: BaseException) -> bool:
    """Timeouts, transport failures, rate limits (429), and 5xx responses are transient."""
    if isinstance(error, (notion_errors.RequestTimeoutError, httpx.TransportError)):
        return True
    if isinstance(error, notion_errors.HTTPResponseError):
        return error.status == 429 or error.status >= 500
    return False


async def _create_page(
    client: AsyncClient,
    data_source_id: str,
    task: DetectedTask,
    discussion: Discussion,
    config: SourceConfig,
    summary: AISummary | None,
    thread: DiscussionThread | None,
) -> ExternalTaskResult:
    blocks = build_task_blocks(task, discussion, summary, thread)
    first_batch = blocks[:_BLOCK_BATCH_SIZE]
    overflow = blocks[_BLOCK_BATCH_SIZE:]

    created_page = await client.pages.create(
        parent={"type": "data_source_id", "data_source_id": data_source_id},
        properties=build_properties(task, discussion, config),
        children=first_batch,
    )
    page_id = created_page["id"]

    for i in range(0, len(overflow), _BLOCK_BATCH_SIZE):
        await client.blocks.children.append(block_id=page_id, children=overflow[i : i + _BLOCK_BATCH_SIZE])

    return ExternalTaskResult(id=page_id, url=created_page["url"])


async def _archive_pages(client: AsyncClient, pages: list[ExternalTaskResult]) -> None:
    for page in pages:
        try:
            await client.pages.update(page_id=page.id, archived=True)
        except Exception:
            logger.warning("Failed to archive orphaned Notion page %s", page.id, exc_info=True)


async def create_tasks(
    tasks: list[DetectedTask],
    discussion: Discussion,
    config: SourceConfig,
    summary: AISummary | None = None,
    thread: DiscussionThread | None = None,
) -> list[ExternalTaskResult]:
    """Create one Notion page per task, in order.

    Returns:
        One ExternalTaskResult per task, in task order.

    Raises:
        ExternalServiceError: When a page cannot be created after retries.
            Pages created earlier in the call are archived first.
    """
    if not tasks:
        return []

    client = get_notion_client(config.notion_token)
    created: list[ExternalTaskResult] = []
    try:
        data_source_id = await get_data_source_id(client, config.notion_database_id)
        for index, task in enumerate(tasks):
            if index:
                await asyncio.sleep(_CREATE_INTERVAL_SECONDS)
            result = await retry_with_backoff(
                lambda task=task: _create_page(client, data_source_id, task, discussion, config, summary, thread),
                base_delay=_RETRY_BASE_DELAY,
                should_retry=is_retryable_notion_error,
            )
            created.append(result)
            logger.info("Created Notion page: %s (%s)", task.title, result.id)
    except (notion_errors.RequestTimeoutError, notion_errors.HTTPResponseError, httpx.HTTPError, RuntimeError) as exc:
        logger.error(
            "Notion task creation failed after %d of %d pages",
            len(created),
            len(tasks),
            extra={"discussion_id": discussion.id},
        )
        await _archive_pages(client, created)
        raise ExternalServiceError(
            f"Notion task creation failed: {exc}",
            service="notion",
            retryable=is_retryable_notion_error(exc),
        ) from exc

    return created
