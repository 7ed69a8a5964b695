"""Database module for the deferq scheduler."""

from deferq.db.engine import create_engine, create_session_factory, get_session
from deferq.db.models import (
    Base,
    SyncCheckpointModel,
    TaskAttemptModel,
    TaskModel,
)

__all__ = [
    "create_engine",
    "create_session_factory",
    "get_session",
    "Base",
    "TaskModel",
    "TaskAttemptModel",
    "SyncCheckpointModel",
]
