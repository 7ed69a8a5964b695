"""Sync checkpoint repository for database operations."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from deferq.db.models import SyncCheckpointModel
from deferq.models.task import ensure_utc


class SyncCheckpointRepository:
    """Repository for sync checkpoints.

    Every write appends a row, so the table doubles as the sync history.
    """

    def __init__(self, session: AsyncSession, checkpoint_key: str = "default"):
        self.session = session
        self.checkpoint_key = checkpoint_key

    async def append(self, timestamp: datetime, total_tasks: int) -> SyncCheckpointModel:
        """Write a new checkpoint row.

        Args:
            timestamp: Upper bound of the processed window
            total_tasks: Tasks processed in the sync that wrote this checkpoint

        Returns:
            The created SyncCheckpointModel
        """
        model = SyncCheckpointModel(
            checkpoint_key=self.checkpoint_key,
            timestamp=ensure_utc(timestamp),
            total_tasks=total_tasks,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_latest(self) -> SyncCheckpointModel | None:
        """Get the most recently written checkpoint, None if there is none."""
        result = await self.session.execute(
            select(SyncCheckpointModel)
            .where(SyncCheckpointModel.checkpoint_key == self.checkpoint_key)
            .order_by(SyncCheckpointModel.checkpoint_id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_history(self, limit: int = 100) -> list[SyncCheckpointModel]:
        """Get checkpoints, newest first."""
        result = await self.session.execute(
            select(SyncCheckpointModel)
            .where(SyncCheckpointModel.checkpoint_key == self.checkpoint_key)
            .order_by(SyncCheckpointModel.checkpoint_id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
