"""deferq: database-agnostic delayed-task scheduler."""

from deferq.config import Settings
from deferq.errors import (
    DeferqError,
    ExecutionError,
    ExecutionTimeout,
    InvalidInput,
    InvalidTransition,
    PersistenceFailure,
    TaskNotFound,
)
from deferq.models import (
    ListTasksParams,
    PruneTasksParams,
    SyncCheckpoint,
    Task,
    TaskAttemptResult,
    TaskDraft,
    TaskStatus,
)
from deferq.retry import BackoffStrategy, RetryPolicy, next_delay
from deferq.selector import filter_due_tasks, is_due
from deferq.services import ExecutionResult, Scheduler, TaskExecutor, Workflow
from deferq.storage import InMemoryStorage, SqlAlchemyStorage, StorageAdapter

__all__ = [
    # Engine
    "Scheduler",
    "Workflow",
    "ExecutionResult",
    "TaskExecutor",
    "Settings",
    # Storage
    "StorageAdapter",
    "InMemoryStorage",
    "SqlAlchemyStorage",
    # Domain models
    "Task",
    "TaskDraft",
    "TaskStatus",
    "TaskAttemptResult",
    "SyncCheckpoint",
    "ListTasksParams",
    "PruneTasksParams",
    # Policies
    "BackoffStrategy",
    "RetryPolicy",
    "next_delay",
    "filter_due_tasks",
    "is_due",
    # Errors
    "DeferqError",
    "InvalidInput",
    "PersistenceFailure",
    "TaskNotFound",
    "ExecutionError",
    "ExecutionTimeout",
    "InvalidTransition",
]
