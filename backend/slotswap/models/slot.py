"""Slot ORM — a user-owned calendar time range with a swap-eligibility status.

Invariants:
    - status in {occupied, offerable, locked}; default occupied
    - status == locked iff lock_ref is set (lock_ref = id of the pending SwapRequest)
    - end_time > start_time (checked by SlotService before persisting)
    - never deleted while locked

Design Decisions:
    - lock_ref has no foreign key: the swap request it names may be deleted (cancel)
      in a separate write when the store runs without atomic transactions
    - (owner_id, start_time) index serves the owner's calendar listing
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from slotswap.core.domain_types import SlotStatus
from slotswap.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (
        Index("ix_slots_owner_start", "owner_id", "start_time"),
        CheckConstraint("end_time > start_time", name="time_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SlotStatus.OCCUPIED.value,
        index=True,
    )
    lock_ref: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
