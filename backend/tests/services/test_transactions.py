"""Transaction Coordinator — capability probe and scope semantics.

Invariants:
    - The probe runs once, answers False on AUTOCOMMIT, timeout or connection failure
    - refresh() re-probes
    - AtomicScope.abort() undoes flushed writes; NoopScope.abort() cannot, and says so
    - commit()/abort() are idempotent and always close the scope
    - unit_of_work() aborts on any exception; store errors surface as DatabaseError

Design Decisions:
    - Fake engines for the AUTOCOMMIT/timeout/failure probe paths; the happy path
      probes the real in-memory SQLite engine
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from slotswap.core.domain_types import TransactionMode
from slotswap.core.errors import DatabaseError
from slotswap.core.swap_rules import expect_as_read
from slotswap.infrastructure.transactions import (
    AtomicScope, NoopScope, TransactionCapability, TransactionCoordinator,
)
from slotswap.services.slot_store import SqlSlotStore


# -- Fake engine ---------------------------------------------------------------

class _FakeEngine:
    """Just enough of AsyncEngine.connect() for the probe."""

    def __init__(self, isolation_level=None, delay=0.0, fail=False):
        self.connects = 0
        self._level = isolation_level
        self._delay = delay
        self._fail = fail

    @asynccontextmanager
    async def connect(self):
        self.connects += 1
        if self._fail:
            raise OSError("connection refused")
        if self._delay:
            await asyncio.sleep(self._delay)
        level = self._level
        sync_conn = SimpleNamespace(
            get_execution_options=lambda: {"isolation_level": level},
            dialect=SimpleNamespace(isolation_level=None),
        )
        yield SimpleNamespace(sync_connection=sync_conn)


# -- Capability ----------------------------------------------------------------

async def test_fixed_capability_needs_no_engine():
    assert await TransactionCapability.fixed(True).atomic_supported() is True
    assert await TransactionCapability.fixed(False).atomic_supported() is False


def test_auto_mode_requires_engine():
    with pytest.raises(ValueError):
        TransactionCapability(None, TransactionMode.AUTO)


async def test_probe_detects_sqlite_transactions(test_engine):
    capability = TransactionCapability(test_engine)
    assert not capability.probed
    assert await capability.atomic_supported() is True
    assert capability.probed


async def test_autocommit_connection_means_no_atomicity():
    engine = _FakeEngine(isolation_level="AUTOCOMMIT")
    capability = TransactionCapability(engine)
    assert await capability.atomic_supported() is False


async def test_probe_timeout_means_no_atomicity():
    engine = _FakeEngine(delay=1.0)
    capability = TransactionCapability(engine, probe_timeout_seconds=0.05)
    assert await capability.atomic_supported() is False


async def test_probe_failure_means_no_atomicity():
    capability = TransactionCapability(_FakeEngine(fail=True))
    assert await capability.atomic_supported() is False


async def test_probe_result_is_cached():
    engine = _FakeEngine(isolation_level="AUTOCOMMIT")
    capability = TransactionCapability(engine)
    await capability.atomic_supported()
    await capability.atomic_supported()
    assert engine.connects == 1


async def test_refresh_reprobes():
    engine = _FakeEngine(isolation_level="AUTOCOMMIT")
    capability = TransactionCapability(engine)
    await capability.atomic_supported()
    assert await capability.refresh() is False
    assert engine.connects == 2


async def test_concurrent_first_use_probes_once():
    engine = _FakeEngine(isolation_level="AUTOCOMMIT", delay=0.01)
    capability = TransactionCapability(engine)
    await asyncio.gather(*(capability.atomic_supported() for _ in range(5)))
    assert engine.connects == 1


# -- Scopes --------------------------------------------------------------------

def _coordinator(factory, atomic):
    return TransactionCoordinator(factory, TransactionCapability.fixed(atomic))


async def _rename(scope, slot_id, title):
    store = SqlSlotStore()
    slot = await store.find_by_id(slot_id, scope, for_update=True)
    assert await store.save_if(slot, scope, expect_as_read(slot), {"title": title})


async def test_begin_scope_follows_capability(test_session_factory):
    atomic = await _coordinator(test_session_factory, True).begin_scope()
    noop = await _coordinator(test_session_factory, False).begin_scope()
    assert isinstance(atomic, AtomicScope) and atomic.atomic
    assert isinstance(noop, NoopScope) and not noop.atomic
    await atomic.abort()
    await noop.abort()


async def test_atomic_commit_makes_writes_visible(
    test_session_factory, users, make_slot, fetch,
):
    slot_id = await make_slot(users.alice, title="Standup")
    async with _coordinator(test_session_factory, True).unit_of_work() as scope:
        await _rename(scope, slot_id, "Retro")
    assert scope.finished
    assert (await fetch.slot(slot_id)).title == "Retro"


async def test_atomic_abort_discards_flushed_writes(
    test_session_factory, users, make_slot, fetch,
):
    slot_id = await make_slot(users.alice, title="Standup")
    coordinator = _coordinator(test_session_factory, True)
    scope = await coordinator.begin_scope()
    await _rename(scope, slot_id, "Retro")
    assert scope.writes == 1

    await coordinator.abort(scope)

    assert (await fetch.slot(slot_id)).title == "Standup"


async def test_noop_abort_leaves_applied_writes_and_warns(
    test_session_factory, users, make_slot, fetch, caplog,
):
    """Write-through scopes cannot undo; the abort names what was left applied."""
    caplog.set_level(logging.WARNING, logger="slotswap.infrastructure.transactions")
    slot_id = await make_slot(users.alice, title="Standup")
    coordinator = _coordinator(test_session_factory, False)
    scope = await coordinator.begin_scope()
    await _rename(scope, slot_id, "Retro")

    await coordinator.abort(scope)

    assert (await fetch.slot(slot_id)).title == "Retro"
    assert any("cannot be rolled back" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize("atomic", [True, False])
async def test_commit_and_abort_are_idempotent(test_session_factory, atomic):
    coordinator = _coordinator(test_session_factory, atomic)
    scope = await coordinator.begin_scope()
    await coordinator.commit(scope)
    await coordinator.commit(scope)
    await coordinator.abort(scope)
    assert scope.finished

    other = await coordinator.begin_scope()
    await coordinator.abort(other)
    await coordinator.abort(other)
    await coordinator.commit(other)
    assert other.finished


@pytest.mark.parametrize("atomic", [True, False])
async def test_persist_after_finish_is_refused(test_session_factory, atomic):
    scope = await _coordinator(test_session_factory, atomic).begin_scope()
    await scope.commit()
    with pytest.raises(RuntimeError):
        await scope.persist()


async def test_unit_of_work_aborts_and_reraises(
    test_session_factory, users, make_slot, fetch,
):
    slot_id = await make_slot(users.alice, title="Standup")
    with pytest.raises(LookupError):
        async with _coordinator(test_session_factory, True).unit_of_work() as scope:
            await _rename(scope, slot_id, "Retro")
            raise LookupError("precondition failed late")
    assert scope.finished
    assert (await fetch.slot(slot_id)).title == "Standup"


@pytest.mark.parametrize("atomic", [True, False])
async def test_store_error_surfaces_as_database_error(test_session_factory, atomic):
    with pytest.raises(DatabaseError) as exc:
        async with _coordinator(test_session_factory, atomic).unit_of_work() as scope:
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
    assert exc.value.http_status == 503
    assert scope.finished
