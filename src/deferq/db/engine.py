"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def create_engine(
    database_url: str,
    pool_size: int = 20,
    max_overflow: int = 30,
    echo: bool = False,
    statement_timeout: int = 30000,
    command_timeout: int = 30,
    schema: str | None = None,
    **kwargs: Any,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: Async connection URL (postgresql+asyncpg://..., sqlite+aiosqlite://...)
        pool_size: Number of connections to keep in the pool (ignored for SQLite)
        max_overflow: Maximum overflow connections beyond pool_size (ignored for SQLite)
        echo: Whether to log SQL statements
        statement_timeout: PostgreSQL statement timeout in milliseconds
        command_timeout: asyncpg command timeout in seconds
        schema: Database schema holding the deferq tables, None for the default
        **kwargs: Extra arguments passed to create_async_engine

    Returns:
        Configured AsyncEngine instance
    """
    url = make_url(database_url)
    backend = url.get_backend_name()

    engine_args: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if backend == "postgresql":
        engine_args.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=30,  # Timeout waiting for connection from pool
        )
        if url.get_driver_name() == "asyncpg":
            engine_args["connect_args"] = {
                "command_timeout": command_timeout,
                "server_settings": {
                    "statement_timeout": str(statement_timeout),
                },
            }
    if schema:
        # Table definitions carry no schema; relocate them at execution time
        engine_args["execution_options"] = {"schema_translate_map": {None: schema}}
    engine_args.update(kwargs)

    engine = create_async_engine(url, **engine_args)

    if backend == "sqlite":
        # Needed for ON DELETE CASCADE on attempt records
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: The async engine to use

    Returns:
        Session factory that produces AsyncSession instances
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session as an async context manager.

    Commits on normal exit and rolls back if the block raises.

    Example:
        async with get_session(session_factory) as session:
            result = await session.execute(select(TaskModel))
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
