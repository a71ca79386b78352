"""Lock Audit — checks the at-rest slot/lock invariants over a snapshot of both stores.

Invariants checked:
    - slot LOCKED iff lock_ref set, and lock_ref names a PENDING request containing the slot
    - at most one PENDING request references any slot
    - a request's two slots belong to distinct owners (checked while still pending)
    - ACCEPTED/REJECTED requests hold no slot lock

Design Decisions:
    - Returns violations instead of raising: the readiness probe reports them and tests
      assert the list is empty after every operation
    - Only meaningful at rest (outside an in-flight scope)
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from slotswap.core.domain_types import SlotStatus, SwapRequestStatus
from slotswap.core.repository_protocols import SlotLike, SwapRequestLike


@dataclass(frozen=True)
class LockViolation:
    rule: str
    entity_id: str
    detail: str

    def to_dict(self) -> dict:
        return {"rule": self.rule, "entity_id": self.entity_id, "detail": self.detail}


def find_lock_violations(
    slots: Iterable[SlotLike], requests: Iterable[SwapRequestLike],
) -> list[LockViolation]:
    slots = list(slots)
    requests = list(requests)
    slots_by_id = {slot.id: slot for slot in slots}
    requests_by_id = {request.id: request for request in requests}
    violations: list[LockViolation] = []

    for slot in slots:
        violations.extend(_check_slot(slot, requests_by_id))

    pending = [r for r in requests if r.status == SwapRequestStatus.PENDING]
    refs = Counter()
    for request in pending:
        refs.update({request.requester_slot_id, request.target_slot_id})
        violations.extend(_check_pending_owners(request, slots_by_id))
    for slot_id, count in refs.items():
        if count > 1:
            violations.append(LockViolation(
                "single_pending_per_slot", str(slot_id),
                f"{count} pending requests reference this slot",
            ))

    for request in requests:
        if request.status == SwapRequestStatus.PENDING:
            continue
        for slot_id in (request.requester_slot_id, request.target_slot_id):
            slot = slots_by_id.get(slot_id)
            if slot is not None and slot.lock_ref == request.id:
                violations.append(LockViolation(
                    "terminal_request_holds_lock", str(request.id),
                    f"{request.status} request still locks slot {slot_id}",
                ))
    return violations


def _check_slot(
    slot: SlotLike, requests_by_id: dict,
) -> list[LockViolation]:
    locked = slot.status == SlotStatus.LOCKED
    if locked != (slot.lock_ref is not None):
        return [LockViolation(
            "locked_iff_lock_ref", str(slot.id),
            f"status={slot.status} lock_ref={slot.lock_ref}",
        )]
    if not locked:
        return []
    holder = requests_by_id.get(slot.lock_ref)
    if holder is None or holder.status != SwapRequestStatus.PENDING:
        return [LockViolation(
            "lock_ref_pending", str(slot.id),
            f"lock_ref {slot.lock_ref} is not a pending request",
        )]
    if slot.id not in (holder.requester_slot_id, holder.target_slot_id):
        return [LockViolation(
            "lock_ref_contains_slot", str(slot.id),
            f"request {holder.id} does not reference this slot",
        )]
    return []


def _check_pending_owners(
    request: SwapRequestLike, slots_by_id: dict,
) -> list[LockViolation]:
    requester_slot = slots_by_id.get(request.requester_slot_id)
    target_slot = slots_by_id.get(request.target_slot_id)
    if requester_slot is None or target_slot is None:
        return []
    if requester_slot.owner_id == target_slot.owner_id:
        return [LockViolation(
            "distinct_owners", str(request.id),
            "both slots belong to the same owner",
        )]
    return []
