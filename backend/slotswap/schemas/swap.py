"""Swap Schemas — request bodies and the populated swap-request rendering.

Invariants:
    - SwapRequestDetail always carries both slot ids; the nested slot is null when the
      slot no longer exists (deleted after the request reached a terminal status)
    - Owner summaries are display-only

Design Decisions:
    - Field names my_slot_id/their_slot_id mirror what the client sends from its own point of view
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from slotswap.schemas.slot import OwnerSummary, SlotResponse


class SwapRequestCreate(BaseModel):
    my_slot_id: UUID
    their_slot_id: UUID


class SwapRequestDetail(BaseModel):
    id: UUID
    status: str
    requester_id: UUID
    requester: OwnerSummary | None = None
    requester_slot_id: UUID
    requester_slot: SlotResponse | None = None
    target_owner_id: UUID
    target_owner: OwnerSummary | None = None
    target_slot_id: UUID
    target_slot: SlotResponse | None = None
    created_at: datetime
    updated_at: datetime


def build_swap_request_detail(
    request, slots: dict, owners: dict,
) -> SwapRequestDetail:
    """Render a swap request with its slots and both parties populated."""
    requester_slot = slots.get(request.requester_slot_id)
    target_slot = slots.get(request.target_slot_id)
    return SwapRequestDetail(
        id=request.id,
        status=request.status,
        requester_id=request.requester_id,
        requester=OwnerSummary.from_owner(owners.get(request.requester_id)),
        requester_slot_id=request.requester_slot_id,
        requester_slot=(
            SlotResponse.from_slot(requester_slot, owners)
            if requester_slot is not None else None
        ),
        target_owner_id=request.target_owner_id,
        target_owner=OwnerSummary.from_owner(owners.get(request.target_owner_id)),
        target_slot_id=request.target_slot_id,
        target_slot=(
            SlotResponse.from_slot(target_slot, owners)
            if target_slot is not None else None
        ),
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def collect_owner_ids(requests, slots: dict) -> set:
    """Every user id a batch of rendered requests will need."""
    ids = set()
    for request in requests:
        ids.update({request.requester_id, request.target_owner_id})
    ids.update(slot.owner_id for slot in slots.values())
    return ids
