"""Analyzer tests with mocked Gemini client."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai.errors import ClientError, ServerError

from threadline.errors import ExternalServiceError
from threadline.llm.analyzer import _is_retryable, analyze_thread, build_result, cache_key
from threadline.llm.schemas import LLMAnalysis, LLMTask
from threadline.metrics import get_metrics
from threadline.models import DiscussionThread, Message, Sentiment, TaskPriority

T0 = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


def _make_thread(*replies: str, thread_id: str = "C1:1700000000.000100") -> DiscussionThread:
    """Return a thread whose root asks for a dashboard update."""
    root = Message(id="m0", author_handle="alice", content="Can we update the dashboard by Friday?", timestamp=T0)
    reply_messages = [
        Message(id=f"m{i}", author_handle="bob", content=text, timestamp=T0 + timedelta(minutes=i))
        for i, text in enumerate(replies, start=1)
    ]
    return DiscussionThread.build(thread_id, root, reply_messages)


def _make_llm_analysis(task_count: int = 1) -> LLMAnalysis:
    return LLMAnalysis(
        summary="Alice asked for the dashboard to be updated before Friday.",
        key_points=["Dashboard update requested", "Deadline is Friday"],
        sentiment=Sentiment.NEUTRAL,
        confidence=0.9,
        tasks=[
            LLMTask(
                title=f"Update the dashboard {i}" if i else "Update the dashboard",
                description="Refresh the dashboard before Friday",
                priority=TaskPriority.HIGH,
                assignee="bob",
                tags=["dashboard"],
            )
            for i in range(task_count)
        ],
    )


def _make_response(parsed, prompt_tokens: int = 1000, completion_tokens: int = 200) -> MagicMock:
    response = MagicMock()
    response.parsed = parsed
    response.usage_metadata.prompt_token_count = prompt_tokens
    response.usage_metadata.candidates_token_count = completion_tokens
    return response


@pytest.fixture(autouse=True)
def _no_real_client():
    with patch("threadline.llm.analyzer.get_gemini_client", return_value=MagicMock()):
        yield


# --- analyze_thread tests ---


async def test_analyze_thread_returns_result():
    """One requested change maps to one HIGH-priority task and a summary."""
    with patch(
        "threadline.llm.analyzer._call_gemini",
        new_callable=AsyncMock,
        return_value=_make_response(_make_llm_analysis()),
    ):
        result = await analyze_thread(_make_thread(), source_type="slack")

    assert result.summary.summary.startswith("Alice asked")
    assert result.summary.key_points == ["Dashboard update requested", "Deadline is Friday"]
    assert result.summary.confidence == 0.9
    assert len(result.tasks) == 1
    assert result.tasks[0].title == "Update the dashboard"
    assert result.tasks[0].priority == TaskPriority.HIGH
    assert result.tasks[0].assignee == "bob"
    assert result.is_multi_task is False
    assert result.cached is False


async def test_analyze_thread_passes_prompt_and_content():
    mock_call = AsyncMock(return_value=_make_response(_make_llm_analysis()))
    with patch("threadline.llm.analyzer._call_gemini", mock_call):
        await analyze_thread(
            _make_thread("Sure, I'll take it"),
            source_type="figma",
            custom_prompt="Tag everything with design.",
            max_tasks=3,
        )

    _, model, system_prompt, user_content = mock_call.await_args.args
    assert model
    assert "from figma" in system_prompt
    assert "Maximum 3 tasks" in system_prompt
    assert "Tag everything with design." in system_prompt
    assert "Can we update the dashboard by Friday?" in user_content
    assert "Sure, I'll take it" in user_content


async def test_analyze_thread_caps_task_count():
    with patch(
        "threadline.llm.analyzer._call_gemini",
        new_callable=AsyncMock,
        return_value=_make_response(_make_llm_analysis(task_count=4)),
    ):
        result = await analyze_thread(_make_thread(), max_tasks=2)

    assert len(result.tasks) == 2
    assert result.is_multi_task is True


async def test_analyze_thread_cache_hit_skips_gemini():
    mock_call = AsyncMock(return_value=_make_response(_make_llm_analysis()))
    with patch("threadline.llm.analyzer._call_gemini", mock_call):
        first = await analyze_thread(_make_thread())
        second = await analyze_thread(_make_thread())

    assert mock_call.await_count == 1
    assert first.cached is False
    assert second.cached is True
    assert second.tasks == first.tasks


async def test_analyze_thread_edited_thread_misses_cache():
    mock_call = AsyncMock(return_value=_make_response(_make_llm_analysis()))
    with patch("threadline.llm.analyzer._call_gemini", mock_call):
        await analyze_thread(_make_thread("First reply"))
        await analyze_thread(_make_thread("First reply", "A new reply"))

    assert mock_call.await_count == 2


async def test_analyze_thread_use_cache_false():
    mock_call = AsyncMock(return_value=_make_response(_make_llm_analysis()))
    with patch("threadline.llm.analyzer._call_gemini", mock_call):
        await analyze_thread(_make_thread())
        result = await analyze_thread(_make_thread(), use_cache=False)

    assert mock_call.await_count == 2
    assert result.cached is False


async def test_analyze_thread_records_usage():
    with patch(
        "threadline.llm.analyzer._call_gemini",
        new_callable=AsyncMock,
        return_value=_make_response(_make_llm_analysis(), prompt_tokens=1_000_000, completion_tokens=100_000),
    ):
        await analyze_thread(_make_thread())

    snapshot = await get_metrics().snapshot()
    assert snapshot["counters"]["gemini_calls"] == 1
    assert snapshot["counters"]["gemini_tokens"] == 1_100_000
    assert abs(snapshot["gemini_cost_usd"] - 0.80) < 1e-9


# --- error mapping tests ---


async def test_server_error_is_retryable_external_error():
    with patch(
        "threadline.llm.analyzer._call_gemini",
        new_callable=AsyncMock,
        side_effect=ServerError(503, "unavailable"),
    ):
        with pytest.raises(ExternalServiceError) as exc_info:
            await analyze_thread(_make_thread())

    assert exc_info.value.service == "gemini"
    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 503


async def test_bad_request_is_not_retryable():
    with patch(
        "threadline.llm.analyzer._call_gemini",
        new_callable=AsyncMock,
        side_effect=ClientError(400, "bad request"),
    ):
        with pytest.raises(ExternalServiceError) as exc_info:
            await analyze_thread(_make_thread())

    assert exc_info.value.retryable is False


async def test_missing_structured_output_is_retryable():
    with patch(
        "threadline.llm.analyzer._call_gemini",
        new_callable=AsyncMock,
        return_value=_make_response(None),
    ):
        with pytest.raises(ExternalServiceError) as exc_info:
            await analyze_thread(_make_thread())

    assert exc_info.value.retryable is True


async def test_failed_analysis_is_not_cached():
    mock_call = AsyncMock(side_effect=[ServerError(500, "boom"), _make_response(_make_llm_analysis())])
    with patch("threadline.llm.analyzer._call_gemini", mock_call):
        with pytest.raises(ExternalServiceError):
            await analyze_thread(_make_thread())
        result = await analyze_thread(_make_thread())

    assert result.cached is False
    assert mock_call.await_count == 2


# --- helper tests ---


def test_build_result_empty_tasks():
    llm = _make_llm_analysis(task_count=0)
    result = build_result(llm, max_tasks=5, elapsed_ms=12)
    assert result.tasks == []
    assert result.is_multi_task is False
    assert result.processing_time_ms == 12


def test_cache_key_depends_on_prompt_and_content():
    thread = _make_thread()
    assert cache_key(thread) == cache_key(_make_thread())
    assert cache_key(thread).startswith("thread_")
    assert cache_key(thread) != cache_key(thread, custom_prompt="be brief")
    assert cache_key(thread) != cache_key(_make_thread(thread_id="C2:1"))


def test_is_retryable_server_error():
    """ServerError returns True."""
    assert _is_retryable(ServerError(500, "internal server error")) is True


def test_is_retryable_rate_limit():
    """ClientError(429) returns True."""
    assert _is_retryable(ClientError(429, "rate limit exceeded")) is True


def test_is_retryable_bad_request():
    """ClientError(400) returns False."""
    assert _is_retryable(ClientError(400, "bad request")) is False


def test_is_retryable_other_exception():
    assert _is_retryable(ValueError("nope")) is False
