"""Database Access — read-only sessions for the application store.

Invariants:
    - The gateway only looks up apps and channels: sessions are never committed
    - Every SQLAlchemyError raised during a lookup surfaces as DatabaseError (503),
      never as a raw driver error or a validation failure
    - Stale pooled connections are pinged before reuse

Design Decisions:
    - Translation lives in database_errors(), wrapped around each lookup, so the
      store maps failures the same way whatever session it was handed
    - db_manager is created in the FastAPI lifespan and disposed on shutdown
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from gateway.core.errors import DatabaseError

logger = logging.getLogger(__name__)


def as_database_error(error: SQLAlchemyError, operation: str) -> DatabaseError:
    """Classify a SQLAlchemy failure (OperationalError before its DBAPIError base)."""
    if isinstance(error, OperationalError):
        reason = "application store unreachable"
    elif isinstance(error, DBAPIError):
        reason = "driver rejected the lookup"
    else:
        reason = "lookup failed"
    logger.error("App store %s: %s", reason, error, extra={"operation": operation})
    return DatabaseError(reason, operation)


@asynccontextmanager
async def database_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        raise as_database_error(e, operation) from e


class DatabaseSessionManager:
    """Engine and read-only session factory for the application store."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        # Closing without commit discards the implicit read transaction.
        async with self._session_factory() as session:
            yield session

    async def health_check(self) -> bool:
        """SELECT 1 against the store (readiness probe)."""
        try:
            async with self.session() as db, database_errors("health_check"):
                await db.execute(text("SELECT 1"))
        except (DatabaseError, OSError):
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> None:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for application store sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
