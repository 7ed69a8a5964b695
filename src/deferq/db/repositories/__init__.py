"""Repository classes for database operations."""

from deferq.db.repositories.attempts import TaskAttemptRepository
from deferq.db.repositories.checkpoints import SyncCheckpointRepository
from deferq.db.repositories.tasks import TaskRepository

__all__ = [
    "TaskRepository",
    "TaskAttemptRepository",
    "SyncCheckpointRepository",
]
