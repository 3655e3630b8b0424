"""Thread analysis: DiscussionThread -> AnalysisResult via Gemini.

Calls Gemini with structured output and tenacity retry, caches results per
thread content for ``analysis_cache_ttl_seconds``, and wraps API failures in
ExternalServiceError so the processor can decide whether a redelivery helps.
"""

import hashlib
import logging
import time

from cachetools import TTLCache
from google import genai
from google.genai import types
from google.genai.errors import APIError, ClientError, ServerError
from pydantic import ValidationError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from threadline.config import get_settings
from threadline.errors import ExternalServiceError
from threadline.llm.client import get_gemini_client
from threadline.llm.prompts import build_system_prompt, build_thread_content
from threadline.llm.schemas import LLMAnalysis
from threadline.metrics import extract_usage, get_metrics
from threadline.models import AISummary, AnalysisResult, DetectedTask, DiscussionThread

logger = logging.getLogger(__name__)

_cache: TTLCache | None = None


def _get_cache() -> TTLCache:
    global _cache
    if _cache is None:
        _cache = TTLCache(maxsize=512, ttl=get_settings().analysis_cache_ttl_seconds)
    return _cache


def clear_analysis_cache() -> None:
    """Drop all cached analyses. Used for testing."""
    global _cache
    _cache = None


def cache_key(thread: DiscussionThread, custom_prompt: str | None = None) -> str:
    """Key on thread id plus every message body, so an edited thread misses the cache."""
    digest = hashlib.sha256()
    for part in [thread.id, custom_prompt or "", *(m.content for m in thread.messages)]:
        digest.update(part.encode())
        digest.update(b"\x1f")
    return f"thread_{digest.hexdigest()[:32]}"


def _is_retryable(error: BaseException) -> bool:
    """Server errors (5xx) and rate limits (429) are transient; other client errors are not."""
    if isinstance(error, ServerError):
        return True
    if isinstance(error, ClientError) and error.code == 429:
        return True
    return False


@retry(
    retry=retry_if_exception(_is_retryable),
    wait=wait_exponential_jitter(initial=1, max=30, jitter=2),
    stop=stop_after_attempt(4),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _call_gemini(client: genai.Client, model: str, system_prompt: str, user_content: str) -> object:
    """Call Gemini with structured output, retrying on transient errors."""
    return await client.aio.models.generate_content(
        model=model,
        contents=user_content,
        config=types.GenerateContentConfig(
            system_instruction=system_prompt,
            response_mime_type="application/json",
            response_schema=LLMAnalysis,
            temperature=0.2,
        ),
    )


def build_result(llm: LLMAnalysis, max_tasks: int, elapsed_ms: int) -> AnalysisResult:
    """Map the model output to domain models, capping the task list."""
    tasks = [
        DetectedTask(
            title=t.title,
            description=t.description,
            priority=t.priority,
            assignee=t.assignee,
            tags=t.tags,
        )
        for t in llm.tasks[:max_tasks]
    ]
    return AnalysisResult(
        summary=AISummary(
            summary=llm.summary,
            key_points=llm.key_points,
            sentiment=llm.sentiment,
            confidence=llm.confidence,
        ),
        tasks=tasks,
        is_multi_task=len(tasks) > 1,
        processing_time_ms=elapsed_ms,
    )


async def analyze_thread(
    thread: DiscussionThread,
    *,
    source_type: str | None = None,
    custom_prompt: str | None = None,
    max_tasks: int | None = None,
    use_cache: bool = True,
) -> AnalysisResult:
    """Summarize a thread and detect its tasks.

    Returns a cached result (``cached=True``) when the same thread content was
    analyzed within the cache TTL.

    Raises:
        ExternalServiceError: On Gemini failures. ``retryable`` is True for
            5xx, rate limits, and unparsable output.
    """
    settings = get_settings()
    max_tasks = max_tasks or settings.max_tasks_per_discussion
    key = cache_key(thread, custom_prompt)
    cache = _get_cache()

    if use_cache and key in cache:
        logger.info("Analysis cache hit", extra={"thread_id": thread.id})
        return cache[key].model_copy(update={"cached": True})

    started = time.monotonic()
    try:
        response = await _call_gemini(
            get_gemini_client(),
            settings.gemini_model,
            build_system_prompt(source_type, max_tasks, custom_prompt),
            build_thread_content(thread),
        )
    except APIError as exc:
        logger.error("Gemini API error analyzing thread %s", thread.id, exc_info=True)
        raise ExternalServiceError(
            f"Gemini analysis failed: {exc}",
            service="gemini",
            retryable=_is_retryable(exc),
        ) from exc
    except ValidationError as exc:
        logger.error("Gemini response failed schema validation for thread %s", thread.id, exc_info=True)
        raise ExternalServiceError("Gemini returned an invalid analysis", service="gemini") from exc

    llm_result = response.parsed
    if not isinstance(llm_result, LLMAnalysis):
        raise ExternalServiceError("Gemini returned no structured analysis", service="gemini")

    await get_metrics().record_usage(extract_usage(response))
    result = build_result(llm_result, max_tasks, int((time.monotonic() - started) * 1000))
    cache[key] = result
    logger.info(
        "Analyzed thread",
        extra={"thread_id": thread.id, "task_count": len(result.tasks), "processing_time_ms": result.processing_time_ms},
    )
    return result
