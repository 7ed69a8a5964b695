"""Pytest configuration and fixtures for deferq tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from deferq.config import Settings
from deferq.db.engine import create_engine
from deferq.db.models import Base
from deferq.models.task import SyncCheckpoint, Task, TaskStatus
from deferq.storage import InMemoryStorage, SqlAlchemyStorage


def build_task(**overrides) -> Task:
    """Build a due task; keyword arguments override any field."""
    now = datetime.now(timezone.utc)
    values = {
        "id": "task-123",
        "payload": {"foo": "bar"},
        "scheduled_at": now - timedelta(seconds=5),
        "status": TaskStatus.PENDING,
        "retry_count": 0,
        "max_retries": 3,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return Task(**values)


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    # StaticPool keeps the single in-memory database shared by every session
    engine = create_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session_factory(db_engine):
    """Create a session factory for testing."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings():
    """Settings with short retry delays."""
    return Settings(
        base_retry_delay=1000,
        max_retry_delay=60_000,
        batch_size=100,
        execution_timeout=1000,
        poll_interval=0.01,
    )


@pytest.fixture
def memory_storage():
    """Create a fresh InMemoryStorage."""
    return InMemoryStorage()


@pytest.fixture
async def sql_storage(session_factory, db_engine):
    """Create a SqlAlchemyStorage on the in-memory database."""
    return SqlAlchemyStorage(session_factory, engine=db_engine)


@pytest.fixture(params=["memory", "sql"])
async def storage(request, memory_storage, session_factory, db_engine):
    """Run a test against every storage backend."""
    if request.param == "memory":
        return memory_storage
    return SqlAlchemyStorage(session_factory, engine=db_engine)


@pytest.fixture
def mock_storage():
    """Create a mock storage adapter with an empty checkpoint."""
    storage = AsyncMock()
    storage.get_last_sync.return_value = SyncCheckpoint()
    storage.list_tasks.return_value = []
    storage.claim_tasks.return_value = []
    storage.create_tasks.return_value = []
    return storage


@pytest.fixture
def make_task():
    """Factory for due pending tasks; keyword arguments override any field."""
    return build_task
