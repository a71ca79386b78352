"""Slot Store — SQLAlchemy persistence for slot records.

Invariants:
    - find_by_id/save/save_if/delete_if run inside the caller's scope
    - for_update takes a row lock only when the scope is atomic (SELECT ... FOR UPDATE)
    - save_if/delete_if are compare-and-set: one guarded statement, True iff exactly
      one row still matched the expectation
    - Read projections take a plain session and never write

Design Decisions:
    - save() is for inserts; existing rows change only through save_if, which issues
      the UPDATE itself and mirrors the new values onto the loaded object
    - Every write persists via the scope: a flush under AtomicScope, an immediate
      commit under NoopScope
"""

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.core.domain_types import SlotId, SlotStatus, UserId
from slotswap.core.swap_rules import SlotExpectation
from slotswap.db.base import sync_instance
from slotswap.infrastructure.transactions import SessionScope
from slotswap.models.slot import Slot


def _matches(slot_id: SlotId, expected: SlotExpectation) -> list:
    lock_ref = (
        Slot.lock_ref.is_(None) if expected.lock_ref is None
        else Slot.lock_ref == expected.lock_ref
    )
    return [Slot.id == slot_id, Slot.status == expected.status, lock_ref]


class SqlSlotStore:
    """Slot persistence backed by the slots table."""

    async def find_by_id(
        self, slot_id: SlotId, scope: SessionScope, *, for_update: bool = False,
    ) -> Slot | None:
        query = select(Slot).where(Slot.id == slot_id)
        if for_update and scope.lock_rows:
            query = query.with_for_update()
        result = await scope.session.execute(query)
        return result.scalar_one_or_none()

    async def save(self, slot: Slot, scope: SessionScope) -> Slot:
        scope.session.add(slot)
        await scope.persist()
        return slot

    async def save_if(
        self,
        slot: Slot,
        scope: SessionScope,
        expected: SlotExpectation,
        changes: dict,
    ) -> bool:
        result = await scope.session.execute(
            update(Slot)
            .where(*_matches(slot.id, expected))
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await scope.persist()
        sync_instance(slot, changes)
        return True

    async def delete_if(
        self, slot_id: SlotId, scope: SessionScope, expected: SlotExpectation,
    ) -> bool:
        result = await scope.session.execute(
            delete(Slot)
            .where(*_matches(slot_id, expected))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await scope.persist()
        return True

    async def find_offerable_excluding_owner(
        self, db: AsyncSession, user_id: UserId,
    ) -> list[Slot]:
        result = await db.execute(
            select(Slot)
            .where(Slot.owner_id != user_id)
            .where(Slot.status == SlotStatus.OFFERABLE.value)
            .order_by(Slot.start_time.asc())
        )
        return list(result.scalars().all())

    async def find_by_owner(
        self, db: AsyncSession, owner_id: UserId,
    ) -> list[Slot]:
        result = await db.execute(
            select(Slot)
            .where(Slot.owner_id == owner_id)
            .order_by(Slot.start_time.asc())
        )
        return list(result.scalars().all())

    async def find_many(
        self, db: AsyncSession, slot_ids: set[SlotId],
    ) -> dict[SlotId, Slot]:
        if not slot_ids:
            return {}
        result = await db.execute(select(Slot).where(Slot.id.in_(slot_ids)))
        return {slot.id: slot for slot in result.scalars().all()}

    async def find_all(self, db: AsyncSession) -> list[Slot]:
        result = await db.execute(select(Slot))
        return list(result.scalars().all())
