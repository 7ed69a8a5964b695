"""Scheduler service: enqueues workflows and drains due tasks."""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import Any, TypeVar

from deferq.config import Settings
from deferq.errors import InvalidTransition, PersistenceFailure
from deferq.models.task import (
    ListTasksParams,
    Task,
    TaskAttemptResult,
    TaskStatus,
    ensure_transition,
    utcnow,
)
from deferq.retry import RetryPolicy
from deferq.selector import filter_due_tasks
from deferq.services.execution import TaskExecutor, log_payload_executor, run_executor
from deferq.services.workflow import Workflow
from deferq.storage.base import StorageAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Scheduler:
    """Delayed-task scheduler on top of a pluggable storage adapter.

    ``add``/``schedule`` persist work; ``sync`` polls storage, claims due tasks,
    runs them through the executor and records the outcome. At most one
    ``sync`` runs at a time per instance; several instances may share one
    backend, in which case the backend's atomic claim keeps a task from
    running twice.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        executor: TaskExecutor | None = None,
        settings: Settings | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._storage = storage
        self._executor = executor or log_payload_executor
        self._settings = settings or Settings()
        self._retry_policy = retry_policy or RetryPolicy.from_settings(self._settings)
        self._workflow = Workflow(
            storage, default_max_retries=self._settings.default_max_retries
        )
        self._is_processing = False
        self._poll_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def is_running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # ── enqueue ─────────────────────────────────────────────────

    def add(
        self,
        payload: Any,
        scheduled_at: datetime,
        max_retries: int | None = None,
        metadata: Any = None,
    ) -> "Scheduler":
        """Append a task draft to the pending workflow. Chainable."""
        self._workflow.add(payload, scheduled_at, max_retries=max_retries, metadata=metadata)
        return self

    async def schedule(self) -> list[Task]:
        """Persist the pending workflow in one bulk call."""
        return await self._workflow.schedule()

    # ── sync ────────────────────────────────────────────────────

    async def sync(self) -> list[Task]:
        """Claim and execute every due task in the current sync window.

        Returns:
            All tasks this call claimed and executed, in claim order. Empty when
            another sync on this instance is already running.

        Raises:
            PersistenceFailure: Reading or writing the checkpoint, listing or
                claiming failed. Task execution failures are never raised.
        """
        if self._is_processing:
            logger.warning("Sync already in progress, skipping")
            return []

        self._is_processing = True
        executed: list[Task] = []
        try:
            checkpoint = await self._persist(
                "read sync checkpoint", self._storage.get_last_sync()
            )
            window_start = checkpoint.timestamp
            window_end = utcnow()

            successful = 0
            failed = 0

            while True:
                params = ListTasksParams(
                    from_=window_start,
                    to=window_end,
                    status=TaskStatus.PENDING,
                    limit=self._settings.batch_size,
                )
                pending = await self._persist(
                    "list pending tasks", self._storage.list_tasks(params)
                )
                if not pending:
                    break

                due = filter_due_tasks(pending, utcnow())
                if not due:
                    break

                claimed = await self._persist(
                    f"claim {len(due)} tasks", self._storage.claim_tasks(due)
                )
                logger.info(f"Claimed {len(claimed)} of {len(due)} due tasks")
                if not claimed:
                    # Another poller won the race for the whole batch
                    break

                claimed = self._as_in_progress(claimed)
                executed.extend(claimed)

                batch_ok, batch_failed = await self._execute_batch(claimed)
                successful += batch_ok
                failed += batch_failed

                await self._persist(
                    "write sync checkpoint",
                    self._storage.set_last_sync(
                        window_end, total_tasks=successful + failed
                    ),
                )
        finally:
            self._is_processing = False

        if executed:
            logger.info(
                f"Sync finished: {len(executed)} tasks executed, "
                f"{successful} succeeded, {failed} failed"
            )
        return executed

    async def _persist(self, action: str, operation: Awaitable[T]) -> T:
        """Await a storage call, wrapping its errors in PersistenceFailure."""
        try:
            return await operation
        except PersistenceFailure:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Failed to {action}: {e}", cause=e) from e

    def _as_in_progress(self, claimed: list[Task]) -> list[Task]:
        """Treat every claimed task as in_progress, whatever snapshot the adapter returned.

        Tasks the claim could not have legally moved to in_progress are dropped
        before their executor runs.
        """
        tasks = []
        for task in claimed:
            if task.status is not TaskStatus.IN_PROGRESS:
                try:
                    ensure_transition(task.status, TaskStatus.IN_PROGRESS)
                except InvalidTransition as e:
                    logger.error(f"Skipping claimed task {task.id}: {e}")
                    continue
                task = dataclasses.replace(task, status=TaskStatus.IN_PROGRESS)
            tasks.append(task)
        return tasks

    async def _execute_batch(self, tasks: list[Task]) -> tuple[int, int]:
        """Run claimed tasks one after another; returns (successful, failed)."""
        successful = 0
        failed = 0
        for task in tasks:
            if await self._execute_task(task):
                successful += 1
            else:
                failed += 1
        return successful, failed

    async def _execute_task(self, task: Task) -> bool:
        result = await run_executor(self._executor, task, self._settings.execution_timeout)
        try:
            if result.succeeded:
                await self._handle_success(task, result)
            else:
                await self._handle_failure(task, result)
        except Exception:
            logger.exception(f"Failed to record outcome of task {task.id}")
            return False
        return result.succeeded

    async def _handle_success(self, task: Task, result: TaskAttemptResult) -> None:
        ensure_transition(task.status, TaskStatus.COMPLETED)
        await self._storage.update_task(
            task.id,
            status=TaskStatus.COMPLETED,
            last_attempt_at=utcnow(),
            next_attempt_at=None,
        )
        await self._storage.record_task_attempt(task.id, result)
        logger.info(f"Task {task.id} -> completed")

    async def _handle_failure(self, task: Task, result: TaskAttemptResult) -> None:
        now = utcnow()
        attempted = dataclasses.replace(task, retry_count=task.retry_count + 1)
        retry_count = attempted.retry_count

        if attempted.retries_exhausted:
            status = TaskStatus.FAILED
            next_attempt_at = None
        else:
            status = TaskStatus.PENDING
            next_attempt_at = self._retry_policy.next_attempt_at(now, retry_count)

        ensure_transition(task.status, status)
        await self._storage.update_task(
            task.id,
            status=status,
            retry_count=retry_count,
            last_attempt_at=now,
            next_attempt_at=next_attempt_at,
        )
        await self._storage.record_task_attempt(task.id, result)

        if status.is_terminal:
            logger.error(
                f"Task {task.id} -> failed after {retry_count} attempts: {result.error}"
            )
        else:
            logger.warning(
                f"Task {task.id} attempt {retry_count} failed ({result.status_code}), "
                f"retrying at {next_attempt_at.isoformat()}"
            )

    # ── background polling ──────────────────────────────────────

    async def start(self) -> None:
        """Start calling sync() every ``poll_interval`` seconds in the background."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._poll_task = asyncio.create_task(self._sync_loop())
        logger.info("Scheduler started")

    async def stop(self) -> None:
        """Stop the background loop, letting an in-flight sync finish."""
        if self._poll_task is None:
            return
        self._stop_event.set()
        await self._poll_task
        self._poll_task = None
        logger.info("Scheduler stopped")

    async def _sync_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.sync()
            except Exception as e:
                logger.exception(f"Scheduler error: {e}")
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._settings.poll_interval
                )
            except TimeoutError:
                pass
