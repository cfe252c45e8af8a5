"""Async SQLAlchemy engine and session factory."""
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    Make SQLite behave like a transactional store.

    The pysqlite driver (and aiosqlite on top of it) defers BEGIN and never
    enforces foreign keys, which breaks SAVEPOINT handling and referential
    integrity. Take over transaction control and turn foreign keys on.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        # IMMEDIATE takes the write lock up front so concurrent writers wait
        # on the busy timeout instead of failing on lock upgrade.
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def lock_wait_connect_args(database_url: str, lock_timeout: float | None) -> dict[str, Any]:
    """
    Driver arguments bounding how long a statement waits for a lock.

    SQLite waits on its busy timeout (seconds); PostgreSQL over asyncpg gets a
    session ``lock_timeout`` (milliseconds). Past it the statement fails and the
    unit of work rolls back.
    """
    if lock_timeout is None:
        return {}
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return {"timeout": lock_timeout}
    if url.get_driver_name() == "asyncpg":
        return {"server_settings": {"lock_timeout": str(int(lock_timeout * 1000))}}
    return {}


def build_engine(
    database_url: str,
    lock_timeout: float | None = None,
    **kwargs: Any,
) -> AsyncEngine:
    """Create an async engine, applying SQLite fixups when needed."""
    url = make_url(database_url)
    connect_args = lock_wait_connect_args(database_url, lock_timeout)
    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(url, echo=False, connect_args=connect_args, **kwargs)
        _enable_sqlite_transactions(engine)
        return engine
    return create_async_engine(
        url, echo=False, pool_pre_ping=True, connect_args=connect_args, **kwargs,
    )


settings = get_settings()

engine = build_engine(
    settings.database_url,
    lock_timeout=settings.sync_lock_timeout,
    **(
        {}
        if settings.is_sqlite
        else {"pool_size": settings.db_pool_size, "max_overflow": settings.db_max_overflow}
    ),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory for components that manage their own transactions."""
    return async_session_factory


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield an async database session.

    Uses unit-of-work pattern: services use flush() for refreshing objects,
    commit happens once here at request end. This ensures atomic transactions
    per request - if anything fails, all changes are rolled back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
