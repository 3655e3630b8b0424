"""Discussion processing pipeline.

Runs a parsed discussion through the stages in strict forward order:

    ingestion -> config_load -> thread_building -> ai_analysis
        -> task_creation -> notification -> completed | failed

Every run is tracked by a Job. A failed Job is never rewound; retrying a
discussion creates a new Job. Stage failures are recorded on the Job with a
``retryable`` flag, then re-raised so the webhook router can answer 503
(redeliver later) or 422 (do not redeliver).

Status markers and the confirmation reply are best effort: a failure there
is logged and never fails the run.
"""

import logging
import time
import traceback
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from pydantic import BaseModel

from threadline.adapters import SourceAdapter, get_adapter
from threadline.errors import ProcessingError, ThreadlineError, ValidationError
from threadline.llm import analyze_thread
from threadline.metrics import get_metrics
from threadline.models import (
    AISummary,
    DetectedTask,
    Discussion,
    DiscussionStatus,
    DiscussionThread,
    ExternalTaskResult,
    Job,
    JobStage,
    JobStatus,
    ParsedDiscussion,
    SourceConfig,
    StatusMarker,
    TaskRecord,
)
from threadline.notion import create_tasks
from threadline.repository import Repository

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("source_type", "source_thread_id", "source_url", "team_id", "author_handle", "title", "content")


class ProcessingResult(BaseModel):
    """Outcome of a successful run, returned to the webhook caller."""

    job_id: str
    discussion_id: str
    status: JobStatus
    task_ids: list[str] = []
    task_urls: list[str] = []
    is_multi_task: bool = False
    processing_time_ms: int = 0


def build_confirmation_message(tasks: list[ExternalTaskResult]) -> str:
    """Reply posted in the origin thread once tasks exist."""
    if not tasks:
        return "✅ Discussion processed (no tasks created)"
    if len(tasks) == 1:
        return f"✅ Task created in Notion\n\U0001f517 {tasks[0].url}"
    task_list = "\n".join(f"{i + 1}. {t.url}" for i, t in enumerate(tasks))
    return f"✅ Created {len(tasks)} tasks in Notion:\n{task_list}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DiscussionProcessor:
    """Orchestrates one discussion through all stages.

    The analyzer, task creator, and adapter lookup are injectable so the
    pipeline can run against fakes.
    """

    def __init__(
        self,
        repository: Repository,
        *,
        analyzer: Callable[..., Awaitable] = analyze_thread,
        task_creator: Callable[..., Awaitable[list[ExternalTaskResult]]] = create_tasks,
        adapter_lookup: Callable[[str], SourceAdapter] = get_adapter,
    ):
        self.repository = repository
        self._analyzer = analyzer
        self._task_creator = task_creator
        self._adapter_lookup = adapter_lookup

    async def process_incoming(self, source_type: str, payload: dict) -> ProcessingResult:
        """Parse a raw webhook payload, then process it.

        The Job is created before parsing so rejected payloads still leave a
        failed ingestion record behind.
        """
        team_id = str(payload.get("team_id") or payload.get("teamId") or "unknown")
        job = Job(team_id=team_id, source_type=source_type)
        await self._save_job(job)

        started = time.monotonic()
        try:
            adapter = self._adapter_lookup(source_type)
            parsed = await adapter.parse_incoming(payload)
        except Exception as exc:
            error = await self._fail(job, exc, started)
            if error is exc:
                raise
            raise error from exc
        return await self.process(parsed, job=job)

    async def process(
        self,
        parsed: ParsedDiscussion,
        *,
        thread: DiscussionThread | None = None,
        job: Job | None = None,
        discussion: Discussion | None = None,
    ) -> ProcessingResult:
        """Run every stage for ``parsed``.

        Args:
            parsed: Normalized adapter output.
            thread: Previously fetched thread to reuse instead of fetching.
            job: Job to record progress on. A new one is created when omitted.
            discussion: Existing discussion to update (retries).

        Raises:
            ThreadlineError: The stage failure, after it was recorded on the Job.
        """
        started = time.monotonic()
        job = job or Job(team_id=parsed.team_id, source_type=parsed.source_type)
        job.team_id = parsed.team_id
        job.status = JobStatus.PROCESSING
        await self._save_job(job)

        adapter: SourceAdapter | None = None
        config: SourceConfig | None = None
        status_thread_id = parsed.source_thread_id

        try:
            # ingestion
            self._validate(parsed)
            adapter = self._adapter_lookup(parsed.source_type)

            # config_load
            job.advance_to(JobStage.CONFIG_LOAD)
            config = await self.repository.find_active_config(parsed.team_id, parsed.source_type)
            if config is None:
                raise ProcessingError(
                    f"No active {parsed.source_type} config for team {parsed.team_id}",
                    JobStage.CONFIG_LOAD.value,
                    context={"team_id": parsed.team_id, "source_type": parsed.source_type},
                )
            job.source_config_id = config.id
            discussion = discussion or Discussion.from_parsed(parsed)
            discussion.source_config_id = config.id
            discussion.sync_job_id = job.id
            discussion.status = DiscussionStatus.PROCESSING
            await self.repository.save_discussion(discussion)
            job.discussion_id = discussion.id
            await self._save_job(job)
            await self._mark(adapter, status_thread_id, StatusMarker.PROCESSING_STARTED, config)

            # thread_building
            job.advance_to(JobStage.THREAD_BUILDING)
            await self._save_job(job)
            if thread is None:
                thread = await adapter.fetch_thread(parsed.source_thread_id, config, match_text=parsed.content)
            status_thread_id = thread.id
            discussion.thread_data = thread
            await self.repository.save_discussion(discussion)

            # ai_analysis
            job.advance_to(JobStage.AI_ANALYSIS)
            await self._save_job(job)
            await self._mark(adapter, status_thread_id, StatusMarker.ANALYZING, config)
            summary, tasks = await self._analyze(thread, parsed, config)
            discussion.ai_summary = summary
            discussion.ai_action_items = tasks
            discussion.status = DiscussionStatus.ANALYZED
            await self.repository.save_discussion(discussion)

            # task_creation
            job.advance_to(JobStage.TASK_CREATION)
            await self._save_job(job)
            created = await self._task_creator(tasks, discussion, config, summary, thread)
            is_multi_task = len(created) > 1
            records = [
                TaskRecord(
                    discussion_id=discussion.id,
                    job_id=job.id,
                    external_id=result.id,
                    external_url=result.url,
                    title=task.title,
                    task_index=index,
                    is_multi_task=is_multi_task,
                )
                for index, (task, result) in enumerate(zip(tasks, created))
            ]
            await self.repository.insert_tasks(records)
            discussion.created_task_ids = [r.id for r in created]
            discussion.status = DiscussionStatus.COMPLETED
            discussion.completed_at = _now()
            await self.repository.save_discussion(discussion)

            # notification
            job.advance_to(JobStage.NOTIFICATION)
            await self._save_job(job)
            await self._reply(adapter, status_thread_id, build_confirmation_message(created), config)
            await self._mark(adapter, status_thread_id, StatusMarker.SUCCESS, config)

        except Exception as exc:
            error = await self._fail(job, exc, started)
            if discussion is not None:
                discussion.status = DiscussionStatus.FAILED
                await self._save_discussion(discussion)
            if adapter is not None and config is not None:
                await self._mark(adapter, status_thread_id, StatusMarker.ERROR, config)
            if error is exc:
                raise
            raise error from exc

        elapsed_ms = int((time.monotonic() - started) * 1000)
        job.status = JobStatus.COMPLETED
        job.completed_at = _now()
        job.metadata = {**job.metadata, "processing_time_ms": elapsed_ms, "task_ids": [r.id for r in created]}
        await self._save_job(job)
        await self._record(True, elapsed_ms)
        logger.info(
            "Processed discussion",
            extra={
                "job_id": job.id,
                "discussion_id": discussion.id,
                "source_type": parsed.source_type,
                "task_count": len(created),
                "processing_time_ms": elapsed_ms,
            },
        )
        return ProcessingResult(
            job_id=job.id,
            discussion_id=discussion.id,
            status=job.status,
            task_ids=[r.id for r in created],
            task_urls=[r.url for r in created],
            is_multi_task=is_multi_task,
            processing_time_ms=elapsed_ms,
        )

    async def retry_discussion(self, discussion_id: str, *, reuse_thread: bool = True) -> ProcessingResult:
        """Re-run a failed discussion under a new Job.

        Earlier Jobs are left untouched. The stored thread is reused unless
        ``reuse_thread`` is False.

        Raises:
            ValidationError: Unknown discussion, or one that already completed.
        """
        discussion = await self.repository.get_discussion(discussion_id)
        if discussion is None:
            raise ValidationError(f"Discussion {discussion_id} not found", field="discussion_id")
        if discussion.status == DiscussionStatus.COMPLETED:
            raise ValidationError(f"Discussion {discussion_id} already completed", field="discussion_id")

        previous = await self.repository.list_jobs(discussion_id)
        job = Job(
            team_id=discussion.team_id,
            source_type=discussion.source_type,
            status=JobStatus.RETRYING,
            discussion_id=discussion.id,
            metadata={"retry_of": previous[-1].id} if previous else {},
        )
        await self._save_job(job)
        logger.info("Retrying discussion", extra={"discussion_id": discussion_id, "job_id": job.id})

        thread = discussion.thread_data if reuse_thread else None
        config = await self.repository.find_active_config(discussion.team_id, discussion.source_type)
        if config is not None:
            try:
                adapter = self._adapter_lookup(discussion.source_type)
            except ValidationError:
                adapter = None
            if adapter is not None:
                marker_thread = thread.id if thread else discussion.source_thread_id
                await self._mark(adapter, marker_thread, StatusMarker.RETRYING, config)

        return await self.process(discussion.to_parsed(), thread=thread, job=job, discussion=discussion)

    async def _analyze(
        self,
        thread: DiscussionThread,
        parsed: ParsedDiscussion,
        config: SourceConfig,
    ) -> tuple[AISummary | None, list[DetectedTask]]:
        if not config.ai_enabled:
            logger.info("AI analysis disabled for config %s, creating a single task", config.id)
            return None, [DetectedTask(title=parsed.title, description=parsed.content)]
        analysis = await self._analyzer(
            thread,
            source_type=parsed.source_type,
            custom_prompt=config.settings.get("custom_prompt"),
            max_tasks=config.settings.get("max_tasks"),
        )
        return analysis.summary, analysis.tasks

    def _validate(self, parsed: ParsedDiscussion) -> None:
        missing = [name for name in _REQUIRED_FIELDS if not getattr(parsed, name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    async def _fail(self, job: Job, exc: Exception, started: float) -> ThreadlineError:
        """Record ``exc`` on the job and return the error to raise."""
        if isinstance(exc, ThreadlineError):
            error = exc
        else:
            error = ProcessingError(
                f"Unexpected error during {job.stage.value}: {exc}",
                job.stage.value,
                retryable=True,
            )
        job.status = JobStatus.FAILED
        job.error = error.message
        job.error_stack = traceback.format_exc()
        job.completed_at = _now()
        job.metadata = {
            **job.metadata,
            "retryable": error.retryable,
            "processing_time_ms": int((time.monotonic() - started) * 1000),
        }
        await self._save_job(job)
        await self._record(False, job.metadata["processing_time_ms"])
        logger.error(
            "Processing failed at %s: %s",
            job.stage.value,
            error.message,
            extra={"job_id": job.id, "stage": job.stage.value, "retryable": error.retryable},
        )
        return error

    async def _mark(self, adapter: SourceAdapter, thread_id: str, marker: StatusMarker, config: SourceConfig) -> None:
        try:
            await adapter.update_status(thread_id, marker, config)
        except Exception:
            logger.warning("Failed to set %s marker on %s", marker.value, thread_id, exc_info=True)

    async def _reply(self, adapter: SourceAdapter, thread_id: str, message: str, config: SourceConfig) -> None:
        try:
            await adapter.post_reply(thread_id, message, config)
        except Exception:
            logger.warning("Failed to post confirmation reply on %s", thread_id, exc_info=True)

    async def _save_job(self, job: Job) -> None:
        try:
            await self.repository.save_job(job)
        except Exception:
            logger.error("Failed to persist job %s", job.id, exc_info=True)

    async def _save_discussion(self, discussion: Discussion) -> None:
        try:
            await self.repository.save_discussion(discussion)
        except Exception:
            logger.error("Failed to persist discussion %s", discussion.id, exc_info=True)

    async def _record(self, success: bool, elapsed_ms: int) -> None:
        try:
            metrics = get_metrics()
            await metrics.increment("discussions_processed" if success else "discussions_failed")
            await metrics.record_duration("process_discussion", elapsed_ms)
        except Exception:
            logger.warning("Failed to record processing metrics", exc_info=True)
