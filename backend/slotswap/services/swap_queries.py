"""Swap Queries — read-only projections for the marketplace, inbox and outbox.

Invariants:
    - Never writes; runs on a plain session, outside any coordinator scope
    - Available slots: offerable, owned by someone else, earliest first
    - Incoming/outgoing: pending only, newest first
"""

from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.core.domain_types import UserId
from slotswap.core.repository_protocols import (
    OwnerDirectory, SlotRepository, SwapRequestRepository,
)
from slotswap.schemas.slot import SlotResponse
from slotswap.schemas.swap import (
    SwapRequestDetail, build_swap_request_detail, collect_owner_ids,
)
from slotswap.services.owner_directory import SqlOwnerDirectory
from slotswap.services.slot_store import SqlSlotStore
from slotswap.services.swap_request_store import SqlSwapRequestStore


class SwapQueries:
    """Query façade over the slot and swap-request stores."""

    def __init__(
        self,
        slots: SlotRepository | None = None,
        requests: SwapRequestRepository | None = None,
        owners: OwnerDirectory | None = None,
    ):
        self._slots = slots or SqlSlotStore()
        self._requests = requests or SqlSwapRequestStore()
        self._owners = owners or SqlOwnerDirectory()

    async def get_available_slots(
        self, db: AsyncSession, user_id: UserId,
    ) -> list[SlotResponse]:
        slots = await self._slots.find_offerable_excluding_owner(db, user_id)
        owners = await self._owners.lookup(db, {s.owner_id for s in slots})
        return [SlotResponse.from_slot(s, owners) for s in slots]

    async def get_incoming_requests(
        self, db: AsyncSession, user_id: UserId,
    ) -> list[SwapRequestDetail]:
        requests = await self._requests.find_pending_by_target_owner(db, user_id)
        return await self._render_all(db, requests)

    async def get_outgoing_requests(
        self, db: AsyncSession, user_id: UserId,
    ) -> list[SwapRequestDetail]:
        requests = await self._requests.find_pending_by_requester(db, user_id)
        return await self._render_all(db, requests)

    async def _render_all(
        self, db: AsyncSession, requests: list,
    ) -> list[SwapRequestDetail]:
        slot_ids = set()
        for request in requests:
            slot_ids.update({request.requester_slot_id, request.target_slot_id})
        slots = await self._slots.find_many(db, slot_ids)
        owners = await self._owners.lookup(
            db, collect_owner_ids(requests, slots),
        )
        return [build_swap_request_detail(r, slots, owners) for r in requests]
