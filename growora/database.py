"""
Database connection and session management.
Uses SQLAlchemy 2.0 async pattern.
"""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from growora.config import get_settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with options suited to the database backend."""
    if database_url.startswith("sqlite"):
        # SQLite with NullPool: every session gets its own connection, avoiding
        # "cannot commit transaction - SQL statements in progress" from StaticPool.
        sqlite_engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )

        @event.listens_for(sqlite_engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL mode + foreign keys on every new SQLite connection."""
            # The driver's implicit BEGIN breaks SAVEPOINT; BEGIN is emitted below instead
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        @event.listens_for(sqlite_engine.sync_engine, "begin")
        def _do_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return sqlite_engine

    # PostgreSQL settings with connection pooling
    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


# SQLITE_BUSY primary result code; SQLITE_BUSY_SNAPSHOT shares it in the low byte
SQLITE_BUSY = 5
# serialization_failure, deadlock_detected, lock_not_available
POSTGRES_CONFLICT_STATES = frozenset({"40001", "40P01", "55P03"})


def is_write_conflict(exc: DBAPIError) -> bool:
    """True when the driver rejected a write because another transaction got there first."""
    orig = exc.orig
    code = getattr(orig, "sqlite_errorcode", None)
    if code is not None:
        return code & 0xFF == SQLITE_BUSY
    state = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if state is not None:
        return state in POSTGRES_CONFLICT_STATES
    return "database is locked" in str(orig)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the engine services."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


settings = get_settings()
engine = build_engine(settings.database_url, echo=settings.debug)
async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for one unit of work."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: AsyncEngine = engine) -> None:
    """Initialize database tables."""
    # Import Base from kernel models to ensure all models are registered
    from growora.kernel.models import Base

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
