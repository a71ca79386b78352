"""Slot Rules — checks for owner-driven slot edits outside the swap engine.

Invariants:
    - Slots are created only for registered users
    - Only the owner may edit or delete a slot
    - A LOCKED slot keeps its status and time range until its swap request settles
    - A LOCKED slot is never deleted
    - LOCKED is never set by an owner; only the swap engine locks slots
    - end_time > start_time
"""

from datetime import datetime, timezone

from slotswap.core.domain_types import (
    OWNER_SETTABLE_STATUSES, OwnerInfo, SlotStatus, UserId,
)
from slotswap.core.errors import (
    ErrorContext, InvalidStateError, SlotValidationError, UnauthorizedActionError,
    UnknownUserError,
)
from slotswap.core.repository_protocols import SlotLike

LOCKED_FIELDS = frozenset({"status", "start_time", "end_time"})


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_time_range(start_time: datetime, end_time: datetime) -> None:
    if _as_utc(end_time) <= _as_utc(start_time):
        raise SlotValidationError(
            "End time must be after start time", "end_time",
        )


def check_owner_settable(status: str) -> None:
    if status not in {s.value for s in OWNER_SETTABLE_STATUSES}:
        raise SlotValidationError(
            f"Status '{status}' cannot be set directly", "status",
        )


def check_slot_owner(slot: SlotLike, user_id: UserId, operation: str) -> None:
    if slot.owner_id != user_id:
        raise UnauthorizedActionError(
            "Not authorized to modify this slot",
            ErrorContext(
                user_id=str(user_id), slot_id=str(slot.id), operation=operation,
            ),
        )


def check_editable(slot: SlotLike, changes: dict) -> None:
    """Locked slots may only be renamed."""
    touched = LOCKED_FIELDS & {k for k, v in changes.items() if v is not None}
    if slot.status == SlotStatus.LOCKED and touched:
        raise InvalidStateError(
            "Cannot change a slot while a swap is pending. "
            "Cancel or complete the swap first.",
            ErrorContext(slot_id=str(slot.id), operation="update_slot"),
        )


def check_deletable(slot: SlotLike) -> None:
    if slot.status == SlotStatus.LOCKED:
        raise InvalidStateError(
            "Cannot delete a slot while a swap is pending. Cancel the swap first.",
            ErrorContext(slot_id=str(slot.id), operation="delete_slot"),
        )


def check_known_user(
    owners: dict[UserId, OwnerInfo], user_id: UserId, operation: str,
) -> None:
    if user_id not in owners:
        raise UnknownUserError(
            str(user_id), ErrorContext(user_id=str(user_id), operation=operation),
        )
