"""Task model and lifecycle state machine."""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from deferq.errors import InvalidTransition

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_task_id() -> str:
    return str(uuid.uuid4())


class TaskStatus(str, enum.Enum):
    """Task status enum."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


# in_progress is only reachable through the storage claim.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.PENDING, TaskStatus.FAILED}
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise InvalidTransition if ``current -> target`` is not allowed."""
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move task from {current.value} to {target.value}"
        )


@dataclass
class TaskDraft:
    """A task accumulated client-side before it is persisted."""

    payload: Any
    scheduled_at: datetime
    max_retries: int = 3
    metadata: Any = None
    next_task_id: str | None = None
    id: str = field(default_factory=new_task_id)


@dataclass
class Task:
    """A persisted unit of scheduled work."""

    id: str
    payload: Any
    scheduled_at: datetime
    status: TaskStatus = TaskStatus.PENDING
    retry_count: int = 0
    max_retries: int = 3
    last_attempt_at: datetime | None = None
    next_attempt_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    metadata: Any = None
    next_task_id: str | None = None

    @property
    def due_at(self) -> datetime:
        """When the task next becomes eligible; a retry time wins over the schedule."""
        if self.next_attempt_at is not None:
            return self.next_attempt_at
        return self.scheduled_at

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count > self.max_retries

    @classmethod
    def from_draft(cls, draft: TaskDraft, now: datetime | None = None) -> "Task":
        """Build the pending task a backend stores for ``draft``."""
        now = now or utcnow()
        return cls(
            id=draft.id or new_task_id(),
            payload=draft.payload,
            scheduled_at=ensure_utc(draft.scheduled_at),
            status=TaskStatus.PENDING,
            retry_count=0,
            max_retries=draft.max_retries,
            created_at=now,
            updated_at=now,
            metadata=draft.metadata,
            next_task_id=draft.next_task_id,
        )


@dataclass(frozen=True)
class TaskAttemptResult:
    """Outcome of one execution attempt. Append-only."""

    task_id: str
    attempted_at: datetime
    status_code: int
    duration_ms: int
    response: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class SyncCheckpoint:
    """Marker of the last processed sync window."""

    timestamp: datetime = EPOCH
    total_tasks: int = 0


@dataclass(frozen=True)
class ListTasksParams:
    """Time-windowed, status-filtered, paginated task query.

    The window applies to each task's ``due_at``; ``from_`` is inclusive and
    ``to`` exclusive.
    """

    from_: datetime
    to: datetime | None = None
    status: TaskStatus | None = None
    limit: int | None = None
    offset: int | None = None


@dataclass(frozen=True)
class PruneTasksParams:
    """Delete tasks in ``status`` last updated before ``older_than``."""

    status: TaskStatus
    older_than: datetime
