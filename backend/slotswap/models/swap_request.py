"""SwapRequest ORM — a proposed exchange between a requester's slot and a target owner's slot.

Invariants:
    - status transitions: pending -> accepted | rejected; deleted only by cancel while pending
    - requester_slot_id and target_slot_id belong to two distinct owners at creation
    - accepted/rejected requests never hold a slot lock

Design Decisions:
    - target_owner_id denormalized at creation: incoming-request queries and the accept/reject
      authorization check need no join
    - Slot references carry no foreign key: a slot may be deleted after the request
      reached a terminal status
    - (target_owner_id, status) and (requester_id, status) indexes serve the inbox/outbox queries
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from slotswap.core.domain_types import SwapRequestStatus
from slotswap.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SwapRequest(Base):
    __tablename__ = "swap_requests"
    __table_args__ = (
        Index("ix_swap_requests_target_status", "target_owner_id", "status"),
        Index("ix_swap_requests_requester_status", "requester_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4,
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False,
    )
    requester_slot_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False, index=True,
    )
    target_owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False,
    )
    target_slot_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False, index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SwapRequestStatus.PENDING.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
