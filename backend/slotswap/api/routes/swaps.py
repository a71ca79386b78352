"""Swap Routes — marketplace, inbox/outbox, and the swap transitions.

Invariants:
    - Every route acts as the X-User-Id caller
    - Transitions delegate to SwapStateMachine; reads delegate to SwapQueries
    - Domain errors propagate to the global handler (404/403/400/409 envelopes)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.api.dependencies import (
    get_current_user_id, get_swap_queries, get_swap_state_machine,
)
from slotswap.core.domain_types import SlotId, SwapRequestId, UserId
from slotswap.infrastructure.database import get_db
from slotswap.schemas.swap import SwapRequestCreate
from slotswap.services.swap_queries import SwapQueries
from slotswap.services.swap_state_machine import SwapStateMachine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/swaps", tags=["swaps"])


@router.get("/available-slots")
async def get_available_slots(
    user_id: UserId = Depends(get_current_user_id),
    queries: SwapQueries = Depends(get_swap_queries),
    db: AsyncSession = Depends(get_db),
):
    """Offerable slots owned by other users, earliest first."""
    slots = await queries.get_available_slots(db, user_id)
    return {
        "count": len(slots),
        "data": [s.model_dump(mode="json") for s in slots],
    }


@router.post("/request", status_code=status.HTTP_201_CREATED)
async def create_swap_request(
    body: SwapRequestCreate,
    user_id: UserId = Depends(get_current_user_id),
    machine: SwapStateMachine = Depends(get_swap_state_machine),
):
    """Offer one of my slots for one of theirs; both slots are locked."""
    detail = await machine.create_request(
        user_id, SlotId(body.my_slot_id), SlotId(body.their_slot_id),
    )
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Swap request created successfully",
    }


@router.get("/incoming")
async def get_incoming_requests(
    user_id: UserId = Depends(get_current_user_id),
    queries: SwapQueries = Depends(get_swap_queries),
    db: AsyncSession = Depends(get_db),
):
    requests = await queries.get_incoming_requests(db, user_id)
    return {
        "count": len(requests),
        "data": [r.model_dump(mode="json") for r in requests],
    }


@router.get("/outgoing")
async def get_outgoing_requests(
    user_id: UserId = Depends(get_current_user_id),
    queries: SwapQueries = Depends(get_swap_queries),
    db: AsyncSession = Depends(get_db),
):
    requests = await queries.get_outgoing_requests(db, user_id)
    return {
        "count": len(requests),
        "data": [r.model_dump(mode="json") for r in requests],
    }


@router.post("/{request_id}/accept")
async def accept_swap_request(
    request_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    machine: SwapStateMachine = Depends(get_swap_state_machine),
):
    detail = await machine.accept_swap_request(SwapRequestId(request_id), user_id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Swap accepted successfully! Slots have been exchanged.",
    }


@router.post("/{request_id}/reject")
async def reject_swap_request(
    request_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    machine: SwapStateMachine = Depends(get_swap_state_machine),
):
    detail = await machine.reject_swap_request(SwapRequestId(request_id), user_id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Swap request rejected",
    }


@router.delete("/{request_id}")
async def cancel_swap_request(
    request_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    machine: SwapStateMachine = Depends(get_swap_state_machine),
):
    return await machine.cancel_swap_request(SwapRequestId(request_id), user_id)
