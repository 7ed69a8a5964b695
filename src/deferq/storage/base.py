"""Storage adapter protocol, the persistence boundary the scheduler depends on."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from deferq.models.task import (
    ListTasksParams,
    PruneTasksParams,
    SyncCheckpoint,
    Task,
    TaskAttemptResult,
    TaskDraft,
)


@runtime_checkable
class StorageAdapter(Protocol):
    """Interface every storage backend (SQL, document store, in-memory) implements."""

    async def create_task(self, draft: TaskDraft) -> Task:
        """Persist one draft as a pending task with retry_count 0."""
        ...

    async def create_tasks(self, drafts: Sequence[TaskDraft]) -> list[Task]:
        """Persist drafts as pending tasks. All-or-nothing."""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID, or None if unknown."""
        ...

    async def list_tasks(self, params: ListTasksParams) -> list[Task]:
        """List tasks whose due time falls in the window, newest schedule first."""
        ...

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        """Apply a partial update and bump updated_at. Raises TaskNotFound."""
        ...

    async def claim_tasks(self, tasks: Sequence[Task]) -> list[Task]:
        """Atomically move still-pending tasks to in_progress.

        Returns only the tasks this caller actually claimed; tasks taken by a
        concurrent poller are left out without error.
        """
        ...

    async def record_task_attempt(self, task_id: str, result: TaskAttemptResult) -> None:
        """Append an attempt record. Records are never updated or deleted."""
        ...

    async def set_last_sync(self, timestamp: datetime, *, total_tasks: int = 0) -> None:
        """Write the sync checkpoint."""
        ...

    async def get_last_sync(self) -> SyncCheckpoint:
        """Read the sync checkpoint; epoch and zero tasks when none exists."""
        ...

    async def prune_tasks(self, params: PruneTasksParams) -> int:
        """Bulk delete old tasks in a status. Returns the number deleted."""
        ...
