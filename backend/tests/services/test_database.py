"""Database Session Manager — engine options, error mapping, readiness.

Invariants:
    - SQLite gets no server pool settings
    - Store exceptions map to DatabaseError with the matching operation
    - health_check answers False instead of raising
    - SQLite connections enforce foreign keys
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from slotswap.core.errors import DatabaseError
from slotswap.infrastructure.database import (
    DatabaseSessionManager, engine_options, to_database_error,
)


def test_sqlite_has_no_pool_options():
    assert engine_options("sqlite+aiosqlite:///:memory:", 20, 10) == {}


def test_postgres_pool_options():
    options = engine_options("postgresql+asyncpg://h/db", 5, 2)
    assert options["pool_size"] == 5
    assert options["max_overflow"] == 2
    assert options["pool_pre_ping"] is True


@pytest.mark.parametrize(("exc", "operation"), [
    (IntegrityError("INSERT", {}, Exception("dup")), "commit"),
    (OperationalError("SELECT", {}, Exception("gone")), "execute"),
    (SQLAlchemyError("other"), "unknown"),
])
def test_error_mapping(exc, operation):
    error = to_database_error(exc)
    assert isinstance(error, DatabaseError)
    assert error.operation == operation


async def test_health_check_on_live_database():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    try:
        assert await manager.health_check() is True
    finally:
        await manager.dispose()


async def test_health_check_on_unreachable_database(tmp_path):
    missing = tmp_path / "no-such-dir" / "db.sqlite"
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{missing}")
    try:
        assert await manager.health_check() is False
    finally:
        await manager.dispose()


async def test_read_session_maps_store_errors():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    try:
        with pytest.raises(DatabaseError):
            async with manager.session():
                raise OperationalError("SELECT", {}, Exception("gone"))
    finally:
        await manager.dispose()


async def test_sqlite_connections_enforce_foreign_keys():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    try:
        async with manager.session() as db:
            assert (await db.execute(text("PRAGMA foreign_keys"))).scalar() == 1
    finally:
        await manager.dispose()
