"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, SlotId, SwapRequestId wrap UUIDs — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: stored as-is in String columns and serialized to JSON without encoders
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
SlotId = NewType("SlotId", UUID)
SwapRequestId = NewType("SwapRequestId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class SlotStatus(str, Enum):
    """Slot states — maps to slots.status column."""
    OCCUPIED = "occupied"
    OFFERABLE = "offerable"
    LOCKED = "locked"


class SwapRequestStatus(str, Enum):
    """Swap request lifecycle — pending -> accepted | rejected (or deleted on cancel)."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TransactionMode(str, Enum):
    """How the coordinator decides whether the store can commit atomically."""
    AUTO = "auto"
    ATOMIC = "atomic"
    NONE = "none"


# Statuses an owner may set directly; LOCKED is reserved for the swap engine.
OWNER_SETTABLE_STATUSES = frozenset({SlotStatus.OCCUPIED, SlotStatus.OFFERABLE})


# ─── Value Types ─────────────────────────────────────────────────

@dataclass(frozen=True)
class OwnerInfo:
    """Display identity of a slot owner — never used for authorization."""
    id: UserId
    name: str
    email: str
