"""Slot Schemas — Pydantic models with field-level validation for the slot endpoints.

Invariants:
    - SlotCreate.title: 1-200 chars, stripped, non-empty
    - end_time > start_time whenever both are present
    - status accepted from clients is occupied | offerable (locked is engine-only)

Design Decisions:
    - Literal type for status over the enum: Pydantic rejects "locked" at the boundary
    - SlotService re-checks the time range, since PATCH may send only one end of it
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from slotswap.core.domain_types import OwnerInfo


class OwnerSummary(BaseModel):
    """Public identity of a slot owner."""
    id: UUID
    name: str
    email: str

    @classmethod
    def from_owner(cls, owner: OwnerInfo | None) -> "OwnerSummary | None":
        if owner is None:
            return None
        return cls(id=owner.id, name=owner.name, email=owner.email)


class SlotCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    start_time: datetime
    end_time: datetime
    status: Literal["occupied", "offerable"] = "occupied"

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title cannot be empty or whitespace")
        return v

    @model_validator(mode="after")
    def check_time_range(self) -> "SlotCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SlotUpdate(BaseModel):
    """Partial update — omitted fields stay unchanged."""
    title: str | None = Field(None, min_length=1, max_length=200)
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: Literal["occupied", "offerable"] | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("title cannot be empty or whitespace")
        return v


class SlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    status: str
    lock_ref: UUID | None = None
    owner: OwnerSummary | None = None

    @classmethod
    def from_slot(
        cls, slot, owners: dict | None = None,
    ) -> "SlotResponse":
        owner = (owners or {}).get(slot.owner_id)
        return cls(
            id=slot.id,
            owner_id=slot.owner_id,
            title=slot.title,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=slot.status,
            lock_ref=slot.lock_ref,
            owner=OwnerSummary.from_owner(owner),
        )
