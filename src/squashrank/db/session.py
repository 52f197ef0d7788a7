# src/squashrank/db/session.py

"""Database engine and session management."""

import logging
import os
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)

# SQLite file next to the app unless DATABASE_URL points elsewhere
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./squashrank.db")

# Seconds a SQLite writer waits for another writer's lock
SQLITE_BUSY_TIMEOUT = 30


def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> None:
    """SQLite ignores foreign keys unless asked on every new connection."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str = DATABASE_URL) -> AsyncEngine:
    """Create the async engine for ``url``.

    SQLite gets a busy timeout and foreign key enforcement; any other
    backend gets a sized, pre-pinged connection pool.
    """
    echo = os.getenv("DB_ECHO", "false").lower() == "true"

    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(
            url, echo=echo, connect_args={"timeout": SQLITE_BUSY_TIMEOUT}
        )
        enable_sqlite_foreign_keys(sqlite_engine)
        return sqlite_engine

    return create_async_engine(
        url,
        pool_size=int(os.getenv("DB_POOL_SIZE", "20")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
        pool_pre_ping=True,
        pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "3600")),
        echo=echo,
    )


engine = build_engine()

# Loaded objects stay readable after commit; notifications use them later.
AsyncSessionLocal = async_sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request.

    Anything left uncommitted when the request fails is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error("Database session error, rolling back: %s", e)
            await session.rollback()
            raise
