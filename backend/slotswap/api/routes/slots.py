"""Slot Routes — the caller's own slots (create, list, edit, delete).

Invariants:
    - Body validated by Pydantic before reaching the handler (title, time range, status)
    - Locked slots cannot be deleted or re-timed (409 from SlotService)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.api.dependencies import get_current_user_id, get_slot_service
from slotswap.core.domain_types import SlotId, UserId
from slotswap.infrastructure.database import get_db
from slotswap.schemas.slot import SlotCreate, SlotUpdate
from slotswap.services.slot_service import SlotService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/slots", tags=["slots"])


@router.get("")
async def list_slots(
    user_id: UserId = Depends(get_current_user_id),
    service: SlotService = Depends(get_slot_service),
    db: AsyncSession = Depends(get_db),
):
    slots = await service.list_slots(db, user_id)
    return {
        "count": len(slots),
        "data": [s.model_dump(mode="json") for s in slots],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_slot(
    body: SlotCreate,
    user_id: UserId = Depends(get_current_user_id),
    service: SlotService = Depends(get_slot_service),
):
    slot = await service.create_slot(
        user_id, body.title, body.start_time, body.end_time, body.status,
    )
    return {"data": slot.model_dump(mode="json")}


@router.patch("/{slot_id}")
async def update_slot(
    slot_id: UUID,
    body: SlotUpdate,
    user_id: UserId = Depends(get_current_user_id),
    service: SlotService = Depends(get_slot_service),
):
    slot = await service.update_slot(
        SlotId(slot_id), user_id, body.model_dump(exclude_unset=True),
    )
    return {"data": slot.model_dump(mode="json")}


@router.delete("/{slot_id}")
async def delete_slot(
    slot_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    service: SlotService = Depends(get_slot_service),
):
    return await service.delete_slot(SlotId(slot_id), user_id)
