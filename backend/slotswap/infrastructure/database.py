"""Database Session Manager — engine, session factory and read sessions for the API.

Invariants:
    - One engine per process, built in the lifespan by init_db()
    - Request sessions (get_db) only read: they back the query façade and audits, and
      are rolled back on exit; every write goes through a TransactionCoordinator scope
    - SQLAlchemy exceptions raised while a read session is open surface as DatabaseError

Design Decisions:
    - The coordinator gets the session_factory, not the manager: it opens and finishes
      its own sessions per unit of work
    - SQLite (local runs, tests) skips the server pool settings; asyncpg gets pre-ping
      and recycling
    - SQLite connections switch foreign keys on, so a write naming an unknown user fails
      there the same way it does on PostgreSQL
    - expire_on_commit=False: swap results are rendered after commit without lazy loads
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from slotswap.core.errors import DatabaseError

logger = logging.getLogger(__name__)

# Most specific first: IntegrityError and OperationalError are DBAPIErrors
_ERROR_MAP: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def engine_options(
    database_url: str, pool_size: int, max_overflow: int,
) -> dict:
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def enforce_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _foreign_keys_on(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def to_database_error(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, message, operation in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Owns the async engine and hands out sessions."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url, **engine_options(database_url, pool_size, max_overflow),
        )
        if database_url.startswith("sqlite"):
            enforce_sqlite_foreign_keys(self.engine)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Read session: rolled back and closed on exit, store errors mapped."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"DB error in read session: {e}")
            raise to_database_error(e) from e
        finally:
            await session.rollback()
            await session.close()

    async def health_check(self) -> bool:
        """SELECT 1 round trip (readiness probe)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except (DatabaseError, OSError) as e:
            logger.error(f"DB health check failed: {e}")
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


# Set by init_db() during startup
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: a read session for the current request."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
