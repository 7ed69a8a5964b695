"""Workflow builder: chains task drafts client-side and persists them in one call."""

import logging
from datetime import datetime
from typing import Any

from deferq.errors import InvalidInput, PersistenceFailure
from deferq.models.task import Task, TaskDraft, ensure_utc
from deferq.storage.base import StorageAdapter

logger = logging.getLogger(__name__)


class Workflow:
    """An ordered batch of task drafts.

    Each added draft is linked from its predecessor through ``next_task_id``.
    The link is advisory: nothing enforces execution order between drafts.
    """

    def __init__(self, storage: StorageAdapter, default_max_retries: int = 3) -> None:
        self._storage = storage
        self._default_max_retries = default_max_retries
        self._drafts: list[TaskDraft] = []

    def __len__(self) -> int:
        return len(self._drafts)

    @property
    def drafts(self) -> list[TaskDraft]:
        return list(self._drafts)

    def add(
        self,
        payload: Any,
        scheduled_at: datetime,
        max_retries: int | None = None,
        metadata: Any = None,
    ) -> "Workflow":
        """Append a draft. Raises InvalidInput before touching storage."""
        if payload is None:
            raise InvalidInput("payload is required")
        if scheduled_at is None:
            raise InvalidInput("scheduled_at is required")
        if not isinstance(scheduled_at, datetime):
            raise InvalidInput("scheduled_at must be a datetime")
        if max_retries is None:
            max_retries = self._default_max_retries
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise InvalidInput("max_retries must be a non-negative integer")

        draft = TaskDraft(
            payload=payload,
            scheduled_at=ensure_utc(scheduled_at),
            max_retries=max_retries,
            metadata=metadata,
        )
        if self._drafts:
            self._drafts[-1].next_task_id = draft.id

        self._drafts.append(draft)
        return self

    async def schedule(self) -> list[Task]:
        """Persist every draft with a single bulk create.

        Returns:
            The persisted tasks; empty without a storage call when nothing was added

        Raises:
            PersistenceFailure: The bulk create failed; the drafts are kept
        """
        if not self._drafts:
            return []

        drafts = list(self._drafts)
        try:
            tasks = await self._storage.create_tasks(drafts)
        except Exception as e:
            raise PersistenceFailure(
                f"Failed to schedule {len(drafts)} tasks: {e}", cause=e
            ) from e

        self._drafts.clear()
        logger.info(f"Scheduled {len(tasks)} tasks")
        return tasks
