"""Swap Rules — precondition checks, write guards and state transitions for the slot-swap engine.

Invariants:
    - Every check raises a SlotSwapError subclass; checks never mutate
    - Transitions are pure: they return column changes for one row and touch nothing
    - Every slot write carries a SlotExpectation; the store applies it as a compare-and-set,
      so a row that moved on since it was read is never overwritten
    - A slot is LOCKED iff lock_ref is set to the pending request holding it
    - Terminal transitions (accept, release) clear lock_ref in the same step that changes status

Design Decisions:
    - Checks split from transitions: the shell validates everything it read in a scope
      before issuing the first write (read -> validate -> write, never interleaved)
    - The guard, not the row lock, is the mutex: SELECT ... FOR UPDATE is a no-op on
      SQLite and under NoopScope, a guarded UPDATE is not
    - Slot pairs ordered by id: both the fetch and the write order are canonical, so two
      opposite-direction swaps on the same pair acquire row locks in the same order
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

from slotswap.core.domain_types import (
    SlotId, SlotStatus, SwapRequestStatus, UserId,
)
from slotswap.core.errors import (
    ErrorContext, InvalidStateError, ResourceNotFoundError, SelfSwapError,
    UnauthorizedActionError,
)
from slotswap.core.repository_protocols import SlotLike, SwapRequestLike


def order_slot_ids(first: SlotId, second: SlotId) -> list[SlotId]:
    """Canonical acquisition order for a slot pair (ascending id, duplicates collapsed)."""
    return sorted({first, second}, key=str)


def order_slots(slots: list[SlotLike | None]) -> list[SlotLike]:
    """Present slots in canonical write order, skipping missing ones and duplicates."""
    seen: dict[str, SlotLike] = {}
    for slot in slots:
        if slot is not None:
            seen[str(slot.id)] = slot
    return [seen[key] for key in sorted(seen)]


# ─── Checks ──────────────────────────────────────────────────────

def check_create_preconditions(
    requester_id: UserId,
    requester_slot_id: SlotId,
    target_slot_id: SlotId,
    requester_slot: SlotLike | None,
    target_slot: SlotLike | None,
) -> None:
    """Validate a new swap request against the slots read in the current scope.

    Order: existence, ownership, distinct owners, both slots offerable.
    """
    ctx = ErrorContext(user_id=str(requester_id), operation="create_request")
    if requester_slot is None:
        ctx.slot_id = str(requester_slot_id)
        raise ResourceNotFoundError("Slot", str(requester_slot_id), ctx)
    if target_slot is None:
        ctx.slot_id = str(target_slot_id)
        raise ResourceNotFoundError("Slot", str(target_slot_id), ctx)

    if requester_slot.owner_id != requester_id:
        ctx.slot_id = str(requester_slot_id)
        raise UnauthorizedActionError("You do not own the offered slot", ctx)

    if (
        requester_slot_id == target_slot_id
        or requester_slot.owner_id == target_slot.owner_id
    ):
        ctx.slot_id = str(target_slot_id)
        raise SelfSwapError(ctx)

    if requester_slot.status != SlotStatus.OFFERABLE:
        ctx.slot_id = str(requester_slot_id)
        raise InvalidStateError(
            _unavailable_message("Your slot", requester_slot), ctx,
        )
    if target_slot.status != SlotStatus.OFFERABLE:
        ctx.slot_id = str(target_slot_id)
        raise InvalidStateError(
            _unavailable_message("Target slot", target_slot), ctx,
        )


def _unavailable_message(label: str, slot: SlotLike) -> str:
    if slot.status == SlotStatus.LOCKED:
        return f"{label} is already locked by another swap request"
    return f"{label} is not available for swapping"


def check_request_actor(
    request: SwapRequestLike,
    user_id: UserId,
    role: Literal["target", "requester"],
    operation: str,
) -> None:
    """Only the target owner may accept/reject; only the requester may cancel."""
    expected = request.target_owner_id if role == "target" else request.requester_id
    if expected != user_id:
        ctx = ErrorContext(
            user_id=str(user_id), swap_request_id=str(request.id),
            operation=operation,
        )
        if role == "target":
            raise UnauthorizedActionError(
                "You are not the recipient of this swap request", ctx,
            )
        raise UnauthorizedActionError(
            "You did not create this swap request", ctx,
        )


def check_request_pending(request: SwapRequestLike, operation: str) -> None:
    if request.status != SwapRequestStatus.PENDING:
        raise InvalidStateError(
            f"Swap request is already {request.status}",
            ErrorContext(swap_request_id=str(request.id), operation=operation),
        )


def check_slots_locked_for(
    request: SwapRequestLike,
    requester_slot: SlotLike | None,
    target_slot: SlotLike | None,
) -> None:
    """Both slots must still exist and be locked by this very request."""
    for label, slot_id, slot in (
        ("Requester slot", request.requester_slot_id, requester_slot),
        ("Target slot", request.target_slot_id, target_slot),
    ):
        ctx = ErrorContext(
            slot_id=str(slot_id), swap_request_id=str(request.id),
            operation="accept_swap_request",
        )
        if slot is None:
            raise ResourceNotFoundError("Slot", str(slot_id), ctx)
        if slot.status != SlotStatus.LOCKED:
            raise InvalidStateError(
                f"{label} is no longer locked for this swap", ctx,
            )
        if slot.lock_ref != request.id:
            raise InvalidStateError(
                f"{label} is locked for another swap", ctx,
            )


def is_locked_by(slot: SlotLike | None, request: SwapRequestLike) -> bool:
    return (
        slot is not None
        and slot.status == SlotStatus.LOCKED
        and slot.lock_ref == request.id
    )


# ─── Guards ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class SlotExpectation:
    """Row state a guarded slot write requires; the write is skipped if the row moved on."""
    status: str
    lock_ref: UUID | None


def expect_offerable() -> SlotExpectation:
    return SlotExpectation(SlotStatus.OFFERABLE.value, None)


def expect_locked_by(request: SwapRequestLike) -> SlotExpectation:
    return SlotExpectation(SlotStatus.LOCKED.value, request.id)


def expect_as_read(slot: SlotLike) -> SlotExpectation:
    """The slot must still be in the status/lock state it was read in."""
    return SlotExpectation(slot.status, slot.lock_ref)


# ─── Transitions ─────────────────────────────────────────────────
# Each returns the column changes for one row; the stores apply them.

def lock_changes(request: SwapRequestLike, now: datetime) -> dict:
    return {
        "status": SlotStatus.LOCKED.value,
        "lock_ref": request.id,
        "updated_at": now,
    }


def release_changes(now: datetime) -> dict:
    """Return a locked slot to the market (offerable, no lock)."""
    return {
        "status": SlotStatus.OFFERABLE.value,
        "lock_ref": None,
        "updated_at": now,
    }


def exchange_changes(
    requester_slot: SlotLike, target_slot: SlotLike, now: datetime,
) -> dict[SlotId, dict]:
    """The accept step: each slot goes to the other owner and settles as occupied."""
    new_owners = {
        requester_slot.id: target_slot.owner_id,
        target_slot.id: requester_slot.owner_id,
    }
    return {
        slot_id: {
            "owner_id": owner_id,
            "status": SlotStatus.OCCUPIED.value,
            "lock_ref": None,
            "updated_at": now,
        }
        for slot_id, owner_id in new_owners.items()
    }


def status_changes(status: SwapRequestStatus, now: datetime) -> dict:
    return {"status": status.value, "updated_at": now}
