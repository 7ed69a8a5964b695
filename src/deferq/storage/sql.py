"""SQL storage backend built on the async SQLAlchemy repositories."""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from deferq.config import Settings
from deferq.db.engine import create_engine, create_session_factory, get_session
from deferq.db.models import Base, SyncCheckpointModel, TaskAttemptModel, TaskModel
from deferq.db.repositories import (
    SyncCheckpointRepository,
    TaskAttemptRepository,
    TaskRepository,
)
from deferq.errors import InvalidInput, TaskNotFound
from deferq.models.task import (
    ListTasksParams,
    PruneTasksParams,
    SyncCheckpoint,
    Task,
    TaskAttemptResult,
    TaskDraft,
    ensure_utc,
)

logger = logging.getLogger(__name__)

# updated_at is always set by the repository
_IMMUTABLE_FIELDS = ("id", "created_at", "updated_at")

# Domain field name -> mapped attribute name
_FIELD_TO_ATTR = {
    "status": "status",
    "retry_count": "retry_count",
    "max_retries": "max_retries",
    "last_attempt_at": "last_attempt_at",
    "next_attempt_at": "next_attempt_at",
    "scheduled_at": "scheduled_at",
    "payload": "payload",
    "metadata": "metadata_",
    "next_task_id": "next_task_id",
}


def _optional_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def model_to_task(model: TaskModel) -> Task:
    """Convert a database model to a Task dataclass."""
    return Task(
        id=model.id,
        payload=model.payload,
        scheduled_at=ensure_utc(model.scheduled_at),
        status=model.status,
        retry_count=model.retry_count,
        max_retries=model.max_retries,
        last_attempt_at=_optional_utc(model.last_attempt_at),
        next_attempt_at=_optional_utc(model.next_attempt_at),
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        metadata=model.metadata_,
        next_task_id=model.next_task_id,
    )


def model_to_attempt(model: TaskAttemptModel) -> TaskAttemptResult:
    return TaskAttemptResult(
        task_id=model.task_id,
        attempted_at=ensure_utc(model.attempted_at),
        status_code=model.status_code,
        duration_ms=model.duration_ms,
        response=model.response,
        error=model.error,
    )


def model_to_checkpoint(model: SyncCheckpointModel) -> SyncCheckpoint:
    return SyncCheckpoint(
        timestamp=ensure_utc(model.timestamp),
        total_tasks=model.total_tasks,
    )


class SqlAlchemyStorage:
    """Storage adapter for any database SQLAlchemy's asyncio extension supports.

    Each operation runs in its own session and transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        checkpoint_key: str = "default",
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._checkpoint_key = checkpoint_key
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlAlchemyStorage":
        """Build an engine and session factory from settings."""
        engine = create_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=settings.db_echo,
            statement_timeout=settings.db_statement_timeout,
            command_timeout=settings.db_command_timeout,
            schema=settings.db_schema,
        )
        logger.info(
            f"Database connection configured: {settings.database_url.split('@')[-1]}"
        )
        return cls(
            create_session_factory(engine),
            checkpoint_key=settings.checkpoint_key,
            engine=engine,
        )

    async def create_schema(self) -> None:
        """Create the scheduler tables if they do not exist."""
        if self._engine is None:
            raise RuntimeError("create_schema() needs the storage to own its engine")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database connection closed")

    # ── storage contract ────────────────────────────────────────

    async def create_task(self, draft: TaskDraft) -> Task:
        created = await self.create_tasks([draft])
        return created[0]

    async def create_tasks(self, drafts: Sequence[TaskDraft]) -> list[Task]:
        async with get_session(self._session_factory) as session:
            models = await TaskRepository(session).create_many(drafts)
            tasks = [model_to_task(m) for m in models]
        logger.debug(f"Created {len(tasks)} tasks")
        return tasks

    async def get_task(self, task_id: str) -> Task | None:
        async with get_session(self._session_factory) as session:
            model = await TaskRepository(session).get(task_id)
            return model_to_task(model) if model else None

    async def list_tasks(self, params: ListTasksParams) -> list[Task]:
        async with get_session(self._session_factory) as session:
            models = await TaskRepository(session).list_window(
                params.from_,
                to=params.to,
                status=params.status,
                limit=params.limit,
                offset=params.offset,
            )
            return [model_to_task(m) for m in models]

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        for key in _IMMUTABLE_FIELDS:
            fields.pop(key, None)
        unknown = set(fields) - set(_FIELD_TO_ATTR)
        if unknown:
            raise InvalidInput(f"Unknown task fields: {sorted(unknown)}")
        values = {_FIELD_TO_ATTR[key]: value for key, value in fields.items()}

        async with get_session(self._session_factory) as session:
            model = await TaskRepository(session).update(task_id, **values)
            if model is None:
                raise TaskNotFound(task_id)
            return model_to_task(model)

    async def claim_tasks(self, tasks: Sequence[Task]) -> list[Task]:
        async with get_session(self._session_factory) as session:
            models = await TaskRepository(session).claim([t.id for t in tasks])
            claimed = [model_to_task(m) for m in models]
        if len(claimed) < len(tasks):
            logger.debug(
                f"Claimed {len(claimed)} of {len(tasks)} tasks, "
                "the rest were taken by another poller"
            )
        return claimed

    async def record_task_attempt(self, task_id: str, result: TaskAttemptResult) -> None:
        async with get_session(self._session_factory) as session:
            await TaskAttemptRepository(session).record(task_id, result)

    async def set_last_sync(self, timestamp: datetime, *, total_tasks: int = 0) -> None:
        async with get_session(self._session_factory) as session:
            repo = SyncCheckpointRepository(session, self._checkpoint_key)
            await repo.append(timestamp, total_tasks)

    async def get_last_sync(self) -> SyncCheckpoint:
        async with get_session(self._session_factory) as session:
            repo = SyncCheckpointRepository(session, self._checkpoint_key)
            model = await repo.get_latest()
            return model_to_checkpoint(model) if model else SyncCheckpoint()

    async def prune_tasks(self, params: PruneTasksParams) -> int:
        async with get_session(self._session_factory) as session:
            count = await TaskRepository(session).delete_older_than(
                params.status, params.older_than
            )
        logger.info(f"Pruned {count} {params.status.value} tasks")
        return count

    # ── extras ──────────────────────────────────────────────────

    async def list_task_attempts(self, task_id: str) -> list[TaskAttemptResult]:
        """Attempt records for a task in the order they were written."""
        async with get_session(self._session_factory) as session:
            models = await TaskAttemptRepository(session).list_for_task(task_id)
            return [model_to_attempt(m) for m in models]

    async def list_sync_history(self, limit: int = 100) -> list[SyncCheckpoint]:
        """Checkpoints, newest first."""
        async with get_session(self._session_factory) as session:
            repo = SyncCheckpointRepository(session, self._checkpoint_key)
            models = await repo.list_history(limit)
            return [model_to_checkpoint(m) for m in models]
