"""Slot Service — owner-driven create/list/update/delete, both scope kinds.

Invariants:
    - Slots start occupied or offerable, never locked
    - A slot locked by a pending swap can only be renamed, and cannot be deleted
    - Only the owner may edit or delete
    - Slots are only created for registered users, checked before the write
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select

from slotswap.core.domain_types import SlotStatus
from slotswap.core.errors import (
    InvalidStateError, ResourceNotFoundError, SlotValidationError,
    UnauthorizedActionError, UnknownUserError,
)
from slotswap.infrastructure.transactions import (
    TransactionCapability, TransactionCoordinator,
)
from slotswap.models import Slot
from slotswap.services.slot_service import SlotService
from slotswap.services.slot_store import SqlSlotStore
from slotswap.services.swap_state_machine import SwapStateMachine

BASE_TIME = datetime(2026, 12, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(coordinator):
    return SlotService(coordinator)


@pytest.fixture
async def locked_slot(coordinator, users, make_slot):
    """Alice's slot, locked by a pending swap with Bob."""
    mine = await make_slot(users.alice)
    theirs = await make_slot(users.bob)
    await SwapStateMachine(coordinator).create_request(users.alice, mine, theirs)
    return mine


async def test_create_defaults_to_occupied(service, users, fetch):
    created = await service.create_slot(
        users.alice, "Team sync", BASE_TIME, BASE_TIME + timedelta(hours=1),
    )
    assert created.status == "occupied"
    assert created.owner.name == "Alice"
    row = await fetch.slot(created.id)
    assert (row.title, row.status, row.lock_ref) == ("Team sync", "occupied", None)


async def test_create_rejects_inverted_range(service, users, fetch):
    with pytest.raises(SlotValidationError):
        await service.create_slot(users.alice, "Backwards", BASE_TIME, BASE_TIME)
    assert await fetch.all_slots() == []


async def test_create_rejects_locked_status(service, users):
    with pytest.raises(SlotValidationError):
        await service.create_slot(
            users.alice, "Sneaky", BASE_TIME, BASE_TIME + timedelta(hours=1),
            status="locked",
        )


async def test_list_returns_only_my_slots(service, users, make_slot, test_session_factory):
    mine = await make_slot(users.alice)
    await make_slot(users.bob)
    async with test_session_factory() as db:
        listed = await service.list_slots(db, users.alice)
    assert [s.id for s in listed] == [mine]


async def test_update_makes_slot_offerable(service, users, make_slot, fetch):
    slot_id = await make_slot(users.alice, status=SlotStatus.OCCUPIED)
    updated = await service.update_slot(slot_id, users.alice, {"status": "offerable"})
    assert updated.status == "offerable"
    assert (await fetch.slot(slot_id)).status == "offerable"


async def test_update_checks_range_against_stored_start(service, users, make_slot, fetch):
    slot_id = await make_slot(users.alice)
    with pytest.raises(SlotValidationError):
        await service.update_slot(
            slot_id, users.alice, {"end_time": datetime(2026, 1, 1, tzinfo=timezone.utc)},
        )


async def test_update_by_non_owner(service, users, make_slot):
    slot_id = await make_slot(users.alice)
    with pytest.raises(UnauthorizedActionError):
        await service.update_slot(slot_id, users.bob, {"title": "Mine now"})


async def test_update_unknown_slot(service, users):
    with pytest.raises(ResourceNotFoundError):
        await service.update_slot(uuid4(), users.alice, {"title": "Ghost"})


async def test_locked_slot_can_be_renamed(service, users, locked_slot, fetch):
    await service.update_slot(locked_slot, users.alice, {"title": "Renamed"})
    row = await fetch.slot(locked_slot)
    assert (row.title, row.status) == ("Renamed", "locked")


async def test_locked_slot_keeps_its_status(service, users, locked_slot, fetch):
    with pytest.raises(InvalidStateError):
        await service.update_slot(locked_slot, users.alice, {"status": "occupied"})
    assert (await fetch.slot(locked_slot)).status == "locked"


async def test_locked_slot_cannot_be_deleted(service, users, locked_slot, fetch):
    with pytest.raises(InvalidStateError):
        await service.delete_slot(locked_slot, users.alice)
    assert await fetch.slot(locked_slot) is not None


async def test_delete_slot(service, users, make_slot, fetch):
    slot_id = await make_slot(users.alice)
    result = await service.delete_slot(slot_id, users.alice)
    assert result == {"message": "Slot deleted successfully"}
    assert await fetch.slot(slot_id) is None


async def test_delete_by_non_owner(service, users, make_slot, fetch):
    slot_id = await make_slot(users.alice)
    with pytest.raises(UnauthorizedActionError):
        await service.delete_slot(slot_id, users.bob)
    assert await fetch.slot(slot_id) is not None


@pytest.mark.parametrize("atomic", [True, False])
async def test_create_for_unregistered_user_is_refused(file_session_factory, atomic):
    """Foreign keys are enforced here; the refusal must come before the insert."""
    service = SlotService(TransactionCoordinator(
        file_session_factory, TransactionCapability.fixed(atomic),
    ))
    stranger = uuid4()

    with pytest.raises(UnknownUserError) as exc:
        await service.create_slot(
            stranger, "Nobody's slot", BASE_TIME, BASE_TIME + timedelta(hours=1),
        )

    assert exc.value.http_status == 401
    assert exc.value.context.user_id == str(stranger)
    async with file_session_factory() as session:
        assert (await session.execute(select(Slot))).scalars().all() == []


class _LockAfterReadStore(SqlSlotStore):
    """A swap locks the slot between the service's read and its write."""

    def __init__(self, fetch, lock_ref):
        self._fetch = fetch
        self._lock_ref = lock_ref

    async def find_by_id(self, slot_id, scope, *, for_update=False):
        slot = await super().find_by_id(slot_id, scope, for_update=for_update)
        await self._fetch.update_slot(
            slot_id, status=SlotStatus.LOCKED.value, lock_ref=self._lock_ref,
        )
        return slot


@pytest.mark.parametrize("operation", ["update", "delete"])
async def test_edit_loses_to_a_lock_taken_after_the_read(
    coordinator, users, make_slot, fetch, operation,
):
    slot_id = await make_slot(users.alice)
    lock_ref = uuid4()
    service = SlotService(
        coordinator, slots=_LockAfterReadStore(fetch, lock_ref),
    )

    with pytest.raises(InvalidStateError):
        if operation == "update":
            await service.update_slot(
                slot_id, users.alice, {"status": SlotStatus.OCCUPIED.value},
            )
        else:
            await service.delete_slot(slot_id, users.alice)

    row = await fetch.slot(slot_id)
    assert (row.status, row.lock_ref) == ("locked", lock_ref)
