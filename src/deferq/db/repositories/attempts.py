"""Task attempt repository for database operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from deferq.db.models import TaskAttemptModel
from deferq.models.task import TaskAttemptResult, ensure_utc


class TaskAttemptRepository:
    """Repository for the append-only attempt history."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, task_id: str, result: TaskAttemptResult) -> TaskAttemptModel:
        """Append an attempt record for a task.

        Args:
            task_id: The task the attempt belongs to
            result: The attempt outcome

        Returns:
            The created TaskAttemptModel
        """
        model = TaskAttemptModel(
            task_id=task_id,
            attempted_at=ensure_utc(result.attempted_at),
            status_code=result.status_code,
            response=result.response,
            error=result.error,
            duration_ms=result.duration_ms,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_for_task(self, task_id: str) -> list[TaskAttemptModel]:
        """Get every attempt for a task in write order."""
        result = await self.session.execute(
            select(TaskAttemptModel)
            .where(TaskAttemptModel.task_id == task_id)
            .order_by(TaskAttemptModel.attempt_id.asc())
        )
        return list(result.scalars().all())
