"""Persistence for source configs, discussions, jobs, and task records.

``Repository`` is the async contract the processor depends on. The
in-memory implementation backs single-instance deployments and tests;
source configs are seeded from ``SOURCE_CONFIGS_FILE`` at startup.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from threadline.config import get_settings
from threadline.models import Discussion, Job, SourceConfig, TaskRecord

logger = logging.getLogger(__name__)


class Repository(ABC):
    """Storage contract. Jobs are append-only per discussion."""

    @abstractmethod
    async def save_job(self, job: Job) -> None: ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Job | None: ...

    @abstractmethod
    async def list_jobs(self, discussion_id: str) -> list[Job]:
        """All jobs for a discussion, oldest first."""

    @abstractmethod
    async def save_discussion(self, discussion: Discussion) -> None: ...

    @abstractmethod
    async def get_discussion(self, discussion_id: str) -> Discussion | None: ...

    @abstractmethod
    async def find_active_config(self, team_id: str, source_type: str) -> SourceConfig | None:
        """Active config whose team_id matches, else one whose workspace_id does.

        Slack events carry the workspace id, which installs record as
        ``workspace_id`` under the internal team.
        """

    @abstractmethod
    async def list_configs(self, team_id: str, source_type: str) -> list[SourceConfig]:
        """All configs for a team and source, active or not."""

    @abstractmethod
    async def add_config(self, config: SourceConfig) -> None: ...

    @abstractmethod
    async def insert_tasks(self, records: list[TaskRecord]) -> None:
        """Insert all records or none of them."""

    @abstractmethod
    async def list_tasks(self, discussion_id: str) -> list[TaskRecord]: ...


class InMemoryRepository(Repository):
    """Process-local repository. Stored models are copied on the way in and out."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}
        self._discussions: dict[str, Discussion] = {}
        self._configs: dict[str, SourceConfig] = {}
        self._tasks: list[TaskRecord] = []

    async def save_job(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.id] = job.model_copy(deep=True)

    async def get_job(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    async def list_jobs(self, discussion_id: str) -> list[Job]:
        with self._lock:
            jobs = [j.model_copy(deep=True) for j in self._jobs.values() if j.discussion_id == discussion_id]
        return sorted(jobs, key=lambda j: j.started_at)

    async def save_discussion(self, discussion: Discussion) -> None:
        with self._lock:
            self._discussions[discussion.id] = discussion.model_copy(deep=True)

    async def get_discussion(self, discussion_id: str) -> Discussion | None:
        with self._lock:
            discussion = self._discussions.get(discussion_id)
            return discussion.model_copy(deep=True) if discussion else None

    async def find_active_config(self, team_id: str, source_type: str) -> SourceConfig | None:
        with self._lock:
            active = [c for c in self._configs.values() if c.source_type == source_type and c.active]
            match = next((c for c in active if c.team_id == team_id), None) or next(
                (c for c in active if c.workspace_id and c.workspace_id == team_id), None
            )
            return match.model_copy(deep=True) if match else None

    async def list_configs(self, team_id: str, source_type: str) -> list[SourceConfig]:
        with self._lock:
            return [
                c.model_copy(deep=True)
                for c in self._configs.values()
                if c.team_id == team_id and c.source_type == source_type
            ]

    async def add_config(self, config: SourceConfig) -> None:
        with self._lock:
            self._configs[config.id] = config.model_copy(deep=True)

    async def insert_tasks(self, records: list[TaskRecord]) -> None:
        ids = {r.id for r in records}
        with self._lock:
            if len(ids) != len(records) or any(t.id in ids for t in self._tasks):
                raise ValueError("Duplicate task record id")
            self._tasks.extend(r.model_copy(deep=True) for r in records)

    async def list_tasks(self, discussion_id: str) -> list[TaskRecord]:
        with self._lock:
            tasks = [t.model_copy(deep=True) for t in self._tasks if t.discussion_id == discussion_id]
        return sorted(tasks, key=lambda t: t.task_index)


def load_configs_from_file(path: str | Path) -> list[SourceConfig]:
    """Read a JSON list of SourceConfig records.

    Raises:
        OSError: If the file cannot be read.
        pydantic.ValidationError: If a record is malformed.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of source configs")
    return [SourceConfig.model_validate(item) for item in raw]


async def seed_configs(repository: Repository, path: str | Path) -> int:
    """Load configs from ``path`` into ``repository``. Returns the number loaded."""
    configs = load_configs_from_file(path)
    for config in configs:
        await repository.add_config(config)
    logger.info("Loaded %d source configs from %s", len(configs), path)
    return len(configs)


_repository: Repository | None = None


def get_repository() -> Repository:
    """Return the process-wide repository, creating it on first call."""
    global _repository
    if _repository is None:
        _repository = InMemoryRepository()
        if get_settings().environment == "production":
            logger.warning("Using in-memory repository; jobs and discussions are lost on restart")
    return _repository


def set_repository(repository: Repository) -> None:
    """Install a specific repository instance. Used for testing."""
    global _repository
    _repository = repository


def reset_repository() -> None:
    """Drop the cached repository. Used for testing."""
    global _repository
    _repository = None
