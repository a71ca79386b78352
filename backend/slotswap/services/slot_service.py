"""Slot Service — owner-driven slot management around the swap engine.

Invariants:
    - Owners create slots as occupied or offerable; only the swap engine locks them
    - Slots are only created for users the owner directory knows (401 UNKNOWN_USER otherwise)
    - Updates and deletes run in a coordinator scope, re-check the slot read in that scope,
      and write guarded by that read: a slot locked in between is left alone (409)
    - A locked slot can be renamed, nothing else; it cannot be deleted

Design Decisions:
    - Same unit-of-work path as the swap engine, so an edit that races a create_request
      either sees the lock or loses the guard, never overwrites it
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.core.domain_types import SlotId, SlotStatus, UserId
from slotswap.core.errors import (
    ErrorContext, InvalidStateError, ResourceNotFoundError,
)
from slotswap.core.repository_protocols import OwnerDirectory, SlotRepository
from slotswap.core.slot_rules import (
    check_deletable, check_editable, check_known_user, check_owner_settable,
    check_slot_owner, check_time_range,
)
from slotswap.core.swap_rules import expect_as_read
from slotswap.infrastructure.transactions import TransactionCoordinator
from slotswap.models.slot import Slot
from slotswap.schemas.slot import SlotResponse
from slotswap.services.owner_directory import SqlOwnerDirectory
from slotswap.services.slot_store import SqlSlotStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "start_time", "end_time", "status")


def _changed_concurrently(slot_id: SlotId, operation: str) -> InvalidStateError:
    return InvalidStateError(
        "Slot changed while this request was being processed",
        ErrorContext(slot_id=str(slot_id), operation=operation),
    )


class SlotService:
    """Create, list, edit and delete the caller's own slots."""

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        slots: SlotRepository | None = None,
        owners: OwnerDirectory | None = None,
    ):
        self._coordinator = coordinator
        self._slots = slots or SqlSlotStore()
        self._owners = owners or SqlOwnerDirectory()

    async def create_slot(
        self,
        owner_id: UserId,
        title: str,
        start_time: datetime,
        end_time: datetime,
        status: str = SlotStatus.OCCUPIED.value,
    ) -> SlotResponse:
        check_time_range(start_time, end_time)
        check_owner_settable(status)
        now = datetime.now(timezone.utc)
        slot = Slot(
            id=uuid.uuid4(),
            owner_id=owner_id,
            title=title,
            start_time=start_time,
            end_time=end_time,
            status=status,
            lock_ref=None,
            created_at=now,
            updated_at=now,
        )
        async with self._coordinator.unit_of_work() as scope:
            owners = await self._owners.lookup(scope.session, {owner_id})
            check_known_user(owners, owner_id, "create_slot")
            await self._slots.save(slot, scope)
        logger.info(
            "Slot created",
            extra={"slot_id": slot.id, "user_id": owner_id, "operation": "create_slot"},
        )
        return SlotResponse.from_slot(slot, owners)

    async def list_slots(
        self, db: AsyncSession, owner_id: UserId,
    ) -> list[SlotResponse]:
        slots = await self._slots.find_by_owner(db, owner_id)
        owners = await self._owners.lookup(db, {owner_id})
        return [SlotResponse.from_slot(s, owners) for s in slots]

    async def update_slot(
        self, slot_id: SlotId, user_id: UserId, changes: dict,
    ) -> SlotResponse:
        async with self._coordinator.unit_of_work() as scope:
            slot = await self._load_owned(scope, slot_id, user_id, "update_slot")
            check_editable(slot, changes)
            if changes.get("status") is not None:
                check_owner_settable(changes["status"])
            check_time_range(
                changes.get("start_time") or slot.start_time,
                changes.get("end_time") or slot.end_time,
            )
            values = {
                field: changes[field] for field in EDITABLE_FIELDS
                if changes.get(field) is not None
            }
            values["updated_at"] = datetime.now(timezone.utc)
            if not await self._slots.save_if(
                slot, scope, expect_as_read(slot), values,
            ):
                raise _changed_concurrently(slot_id, "update_slot")
            owners = await self._owners.lookup(scope.session, {slot.owner_id})
        logger.info(
            "Slot updated",
            extra={"slot_id": slot_id, "user_id": user_id, "operation": "update_slot"},
        )
        return SlotResponse.from_slot(slot, owners)

    async def delete_slot(self, slot_id: SlotId, user_id: UserId) -> dict:
        async with self._coordinator.unit_of_work() as scope:
            slot = await self._load_owned(scope, slot_id, user_id, "delete_slot")
            check_deletable(slot)
            if not await self._slots.delete_if(slot_id, scope, expect_as_read(slot)):
                raise _changed_concurrently(slot_id, "delete_slot")
        logger.info(
            "Slot deleted",
            extra={"slot_id": slot_id, "user_id": user_id, "operation": "delete_slot"},
        )
        return {"message": "Slot deleted successfully"}

    async def _load_owned(
        self, scope, slot_id: SlotId, user_id: UserId, operation: str,
    ) -> Slot:
        slot = await self._slots.find_by_id(slot_id, scope, for_update=True)
        if slot is None:
            raise ResourceNotFoundError(
                "Slot", str(slot_id),
                ErrorContext(
                    user_id=str(user_id), slot_id=str(slot_id), operation=operation,
                ),
            )
        check_slot_owner(slot, user_id, operation)
        return slot
