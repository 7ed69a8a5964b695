"""In-memory storage backend.

Keeps everything in process-local dicts guarded by a single asyncio.Lock.
Suitable for tests and for single-process deployments that do not need
durability.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from deferq.errors import InvalidInput, PersistenceFailure, TaskNotFound
from deferq.models.task import (
    ListTasksParams,
    PruneTasksParams,
    SyncCheckpoint,
    Task,
    TaskAttemptResult,
    TaskDraft,
    TaskStatus,
    ensure_utc,
    utcnow,
)

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {"id", "created_at", "updated_at"}
_TASK_FIELDS = {f.name for f in dataclasses.fields(Task)}


class InMemoryStorage:
    """Storage adapter backed by process memory."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._attempts: list[TaskAttemptResult] = []
        self._checkpoints: list[SyncCheckpoint] = []
        self._lock = asyncio.Lock()

    async def create_task(self, draft: TaskDraft) -> Task:
        created = await self.create_tasks([draft])
        return created[0]

    async def create_tasks(self, drafts: Sequence[TaskDraft]) -> list[Task]:
        now = utcnow()
        tasks = [Task.from_draft(draft, now) for draft in drafts]
        async with self._lock:
            ids = [task.id for task in tasks]
            if len(set(ids)) != len(ids) or any(i in self._tasks for i in ids):
                raise PersistenceFailure(f"Duplicate task id in batch of {len(ids)}")
            for task in tasks:
                self._tasks[task.id] = task
        logger.debug(f"Created {len(tasks)} tasks")
        return [dataclasses.replace(task) for task in tasks]

    async def get_task(self, task_id: str) -> Task | None:
        async with self._lock:
            task = self._tasks.get(task_id)
            return dataclasses.replace(task) if task else None

    async def list_tasks(self, params: ListTasksParams) -> list[Task]:
        from_ = ensure_utc(params.from_)
        to = ensure_utc(params.to) if params.to is not None else None
        async with self._lock:
            matches = [
                task
                for task in self._tasks.values()
                if (params.status is None or task.status == params.status)
                and task.due_at >= from_
                and (to is None or task.due_at < to)
            ]
        # Newest schedule first, id as a stable tie-break
        matches.sort(key=lambda t: t.id)
        matches.sort(key=lambda t: t.scheduled_at, reverse=True)
        offset = params.offset or 0
        end = offset + params.limit if params.limit is not None else None
        return [dataclasses.replace(task) for task in matches[offset:end]]

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        unknown = set(fields) - _TASK_FIELDS
        if unknown:
            raise InvalidInput(f"Unknown task fields: {sorted(unknown)}")
        values = {k: v for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
        async with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFound(task_id)
            for key, value in values.items():
                setattr(task, key, value)
            task.updated_at = utcnow()
            return dataclasses.replace(task)

    async def claim_tasks(self, tasks: Sequence[Task]) -> list[Task]:
        claimed: list[Task] = []
        now = utcnow()
        async with self._lock:
            for candidate in tasks:
                task = self._tasks.get(candidate.id)
                if task is None or task.status != TaskStatus.PENDING:
                    continue
                task.status = TaskStatus.IN_PROGRESS
                task.updated_at = now
                claimed.append(dataclasses.replace(task))
        return claimed

    async def record_task_attempt(self, task_id: str, result: TaskAttemptResult) -> None:
        async with self._lock:
            if task_id not in self._tasks:
                raise TaskNotFound(task_id)
            self._attempts.append(result)

    async def set_last_sync(self, timestamp: datetime, *, total_tasks: int = 0) -> None:
        async with self._lock:
            self._checkpoints.append(
                SyncCheckpoint(timestamp=ensure_utc(timestamp), total_tasks=total_tasks)
            )

    async def get_last_sync(self) -> SyncCheckpoint:
        async with self._lock:
            if not self._checkpoints:
                return SyncCheckpoint()
            return self._checkpoints[-1]

    async def prune_tasks(self, params: PruneTasksParams) -> int:
        older_than = ensure_utc(params.older_than)
        async with self._lock:
            doomed = [
                task.id
                for task in self._tasks.values()
                if task.status == params.status and task.updated_at < older_than
            ]
            for task_id in doomed:
                del self._tasks[task_id]
            doomed_ids = set(doomed)
            self._attempts = [a for a in self._attempts if a.task_id not in doomed_ids]
        logger.info(f"Pruned {len(doomed)} {params.status.value} tasks")
        return len(doomed)

    async def list_task_attempts(self, task_id: str) -> list[TaskAttemptResult]:
        """Attempt records for a task in the order they were written."""
        async with self._lock:
            return [a for a in self._attempts if a.task_id == task_id]

    async def list_sync_history(self, limit: int = 100) -> list[SyncCheckpoint]:
        """Checkpoints, newest first."""
        async with self._lock:
            return list(reversed(self._checkpoints))[:limit]
