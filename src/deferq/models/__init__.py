from .task import (
    ALLOWED_TRANSITIONS,
    EPOCH,
    ListTasksParams,
    PruneTasksParams,
    SyncCheckpoint,
    Task,
    TaskAttemptResult,
    TaskDraft,
    TaskStatus,
    can_transition,
    ensure_transition,
    ensure_utc,
    new_task_id,
    utcnow,
)

__all__ = [
    # Domain models
    "Task",
    "TaskDraft",
    "TaskStatus",
    "TaskAttemptResult",
    "SyncCheckpoint",
    # Query parameters
    "ListTasksParams",
    "PruneTasksParams",
    # Lifecycle helpers
    "ALLOWED_TRANSITIONS",
    "EPOCH",
    "can_transition",
    "ensure_transition",
    "ensure_utc",
    "new_task_id",
    "utcnow",
]
