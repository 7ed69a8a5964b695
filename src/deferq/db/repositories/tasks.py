"""Task repository for database operations."""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import CursorResult, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from deferq.db.models import TaskAttemptModel, TaskModel
from deferq.models.task import TaskDraft, TaskStatus, ensure_utc


class TaskRepository:
    """Repository for task database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_many(self, drafts: Sequence[TaskDraft]) -> list[TaskModel]:
        """Insert pending tasks for the given drafts.

        Args:
            drafts: Task drafts, ids are kept when set

        Returns:
            The created TaskModel instances in draft order
        """
        now = datetime.now(timezone.utc)
        models = []
        for draft in drafts:
            model = TaskModel(
                payload=draft.payload,
                scheduled_at=ensure_utc(draft.scheduled_at),
                status=TaskStatus.PENDING,
                retry_count=0,
                max_retries=draft.max_retries,
                metadata_=draft.metadata,
                next_task_id=draft.next_task_id,
                created_at=now,
                updated_at=now,
            )
            if draft.id:
                model.id = draft.id
            models.append(model)

        self.session.add_all(models)
        await self.session.flush()
        return models

    async def get(self, task_id: str) -> TaskModel | None:
        """Get a task by ID.

        Args:
            task_id: The task ID to fetch

        Returns:
            TaskModel if found, None otherwise
        """
        result = await self.session.execute(
            select(TaskModel).where(TaskModel.id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_window(
        self,
        from_: datetime,
        to: datetime | None = None,
        status: TaskStatus | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[TaskModel]:
        """Get tasks whose due time falls in ``[from_, to)``.

        The due time is next_attempt_at when set, otherwise scheduled_at.

        Args:
            from_: Inclusive lower bound
            to: Exclusive upper bound, None for unbounded
            status: Optional status filter
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            List of TaskModel instances, newest schedule first
        """
        due_at = func.coalesce(TaskModel.next_attempt_at, TaskModel.scheduled_at)
        query = select(TaskModel).where(due_at >= ensure_utc(from_))
        if to is not None:
            query = query.where(due_at < ensure_utc(to))
        if status is not None:
            query = query.where(TaskModel.status == status)
        query = query.order_by(TaskModel.scheduled_at.desc(), TaskModel.id.asc())
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, task_id: str, **values: Any) -> TaskModel | None:
        """Apply a partial update to a task.

        None values are written as-is so fields such as next_attempt_at can be
        cleared.

        Args:
            task_id: The task ID to update
            **values: Column values to set

        Returns:
            Updated TaskModel, None if the task does not exist
        """
        values["updated_at"] = datetime.now(timezone.utc)
        # Keyed by mapped attribute so metadata_ resolves to its "metadata" column
        columns = {
            getattr(TaskModel, key): (
                ensure_utc(value) if isinstance(value, datetime) else value
            )
            for key, value in values.items()
        }

        result = await self.session.execute(
            update(TaskModel)
            .where(TaskModel.id == task_id)
            .values(columns)
            .returning(TaskModel)
        )
        return result.scalar_one_or_none()

    async def claim(self, task_ids: Sequence[str]) -> list[TaskModel]:
        """Move still-pending tasks to in_progress.

        The status condition is part of the UPDATE, so a row already claimed by
        another poller is not matched and not returned.

        Args:
            task_ids: Candidate task IDs

        Returns:
            The claimed TaskModel instances, in candidate order
        """
        if not task_ids:
            return []

        now = datetime.now(timezone.utc)
        dialect = self.session.get_bind().dialect

        if dialect.update_returning:
            result = await self.session.execute(
                update(TaskModel)
                .where(TaskModel.id.in_(task_ids))
                .where(TaskModel.status == TaskStatus.PENDING)
                .values(status=TaskStatus.IN_PROGRESS, updated_at=now)
                .returning(TaskModel)
            )
            claimed = list(result.scalars().all())
        else:
            claimed_ids = []
            for task_id in task_ids:
                result = await self.session.execute(
                    update(TaskModel)
                    .where(TaskModel.id == task_id)
                    .where(TaskModel.status == TaskStatus.PENDING)
                    .values(status=TaskStatus.IN_PROGRESS, updated_at=now)
                )
                if (cast(CursorResult[Any], result).rowcount or 0) == 1:
                    claimed_ids.append(task_id)
            if not claimed_ids:
                return []
            result = await self.session.execute(
                select(TaskModel)
                .where(TaskModel.id.in_(claimed_ids))
                .execution_options(populate_existing=True)
            )
            claimed = list(result.scalars().all())

        position = {task_id: i for i, task_id in enumerate(task_ids)}
        return sorted(claimed, key=lambda m: position[m.id])

    async def delete_older_than(self, status: TaskStatus, older_than: datetime) -> int:
        """Delete tasks in a status last updated before a cutoff.

        Their attempt records are deleted with them.

        Args:
            status: Status to prune
            older_than: Cutoff on updated_at

        Returns:
            Number of tasks deleted
        """
        doomed = (
            select(TaskModel.id)
            .where(TaskModel.status == status)
            .where(TaskModel.updated_at < ensure_utc(older_than))
        )
        await self.session.execute(
            delete(TaskAttemptModel).where(TaskAttemptModel.task_id.in_(doomed))
        )
        result = await self.session.execute(
            delete(TaskModel)
            .where(TaskModel.status == status)
            .where(TaskModel.updated_at < ensure_utc(older_than))
        )
        return cast(CursorResult[Any], result).rowcount or 0
