"""Service test fixtures — async DB, coordinator in both modes, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - `coordinator` is parametrized: every test using it runs once with AtomicScope
      and once with NoopScope (write-through)
    - State is read back through fresh sessions (`fetch`), never through the session
      that wrote it, so identity-map caching cannot hide a missing commit
    - get_db dependency overridden to use the test DB; db_manager patched for /health/ready
    - `file_engine` is a file-backed SQLite with foreign keys on: one connection per session,
      so concurrently issued operations contend for the real write lock

Design Decisions:
    - SQLite in-memory for everything sequential: fast, no external dependency
    - SQLite ignores SELECT ... FOR UPDATE, so only the guarded writes keep racing
      operations apart there; row locking itself is exercised only against PostgreSQL
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from slotswap.core.domain_types import SlotStatus
from slotswap.db.base import Base
from slotswap.infrastructure.database import (
    DatabaseSessionManager, enforce_sqlite_foreign_keys, get_db,
)
from slotswap.infrastructure.transactions import (
    TransactionCapability, TransactionCoordinator,
)
from slotswap.models import Slot, SwapRequest, User
from slotswap.services.swap_state_machine import SwapStateMachine
import slotswap.infrastructure.database as db_module
from slotswap.main import app

BASE_TIME = datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def file_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'slotswap.db'}")
    enforce_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return async_sessionmaker(
        file_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
def dml_log(test_engine):
    """INSERT/UPDATE/DELETE statements sent to the test DB, as "VERB table"."""
    issued = []

    def record(conn, cursor, statement, parameters, context, executemany):
        words = statement.split()
        if words[0] == "UPDATE":
            issued.append(f"UPDATE {words[1]}")
        elif words[0] in ("INSERT", "DELETE"):
            issued.append(f"{words[0]} {words[2]}")

    event.listen(test_engine.sync_engine, "before_cursor_execute", record)
    yield issued
    event.remove(test_engine.sync_engine, "before_cursor_execute", record)


@pytest.fixture(params=["atomic", "noop"])
def coordinator(request, test_session_factory):
    capability = TransactionCapability.fixed(request.param == "atomic")
    return TransactionCoordinator(test_session_factory, capability)


@pytest.fixture
def machine(coordinator):
    return SwapStateMachine(coordinator)


@pytest.fixture
async def users(test_session_factory):
    """Three owners: alice, bob, carol."""
    people = {
        "alice": User(name="Alice", email="alice@example.com"),
        "bob": User(name="Bob", email="bob@example.com"),
        "carol": User(name="Carol", email="carol@example.com"),
    }
    async with test_session_factory() as session:
        session.add_all(people.values())
        await session.commit()
    return SimpleNamespace(**{key: user.id for key, user in people.items()})


@pytest.fixture
def make_slot(test_session_factory):
    """Insert a slot directly (bypassing services) and return its id."""
    counter = {"n": 0}

    async def _make(owner_id, status=SlotStatus.OFFERABLE, title=None, lock_ref=None):
        counter["n"] += 1
        start = BASE_TIME + timedelta(hours=2 * counter["n"])
        slot = Slot(
            owner_id=owner_id,
            title=title or f"Slot {counter['n']}",
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=status.value,
            lock_ref=lock_ref,
        )
        async with test_session_factory() as session:
            session.add(slot)
            await session.commit()
        return slot.id

    return _make


@pytest.fixture
def fetch(test_session_factory):
    """Read committed state through fresh sessions."""

    async def slot(slot_id):
        async with test_session_factory() as session:
            return await session.get(Slot, slot_id)

    async def request(request_id):
        async with test_session_factory() as session:
            return await session.get(SwapRequest, request_id)

    async def all_slots():
        async with test_session_factory() as session:
            return list((await session.execute(select(Slot))).scalars().all())

    async def all_requests():
        async with test_session_factory() as session:
            return list(
                (await session.execute(select(SwapRequest))).scalars().all(),
            )

    async def update_slot(slot_id, **fields):
        async with test_session_factory() as session:
            row = await session.get(Slot, slot_id)
            for key, value in fields.items():
                setattr(row, key, value)
            await session.commit()

    async def delete_slot(slot_id):
        async with test_session_factory() as session:
            row = await session.get(Slot, slot_id)
            await session.delete(row)
            await session.commit()

    return SimpleNamespace(
        slot=slot, request=request, all_slots=all_slots,
        all_requests=all_requests, update_slot=update_slot,
        delete_slot=delete_slot,
    )


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency and coordinator overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    # Patch db_manager for the readiness probe, which uses it directly
    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    app.state.coordinator = TransactionCoordinator(
        test_session_factory, TransactionCapability.fixed(True),
    )

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
    del app.state.coordinator
