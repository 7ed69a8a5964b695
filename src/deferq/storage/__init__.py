"""Storage backends for the scheduler."""

from deferq.storage.base import StorageAdapter
from deferq.storage.memory import InMemoryStorage
from deferq.storage.sql import SqlAlchemyStorage

__all__ = [
    "StorageAdapter",
    "InMemoryStorage",
    "SqlAlchemyStorage",
]
