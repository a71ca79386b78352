"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Every store write takes a Scope; updates of existing rows are guarded (save_if/delete_if)
    - Reads backing the query façade take a plain session
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, ORM models satisfy SlotLike/SwapRequestLike
      without inheriting from anything
    - Async in Protocol: boundary methods are async because implementations do IO,
      but the swap rules that USE these shapes are never async themselves
"""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from slotswap.core.domain_types import (
    OwnerInfo, SlotId, SwapRequestId, SwapRequestStatus, UserId,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from slotswap.core.swap_rules import SlotExpectation


class SlotLike(Protocol):
    """Structural contract for slot records handled by the swap rules."""
    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    status: str
    lock_ref: UUID | None
    updated_at: datetime


class SwapRequestLike(Protocol):
    """Structural contract for swap-request records handled by the swap rules."""
    id: UUID
    requester_id: UUID
    requester_slot_id: UUID
    target_owner_id: UUID
    target_slot_id: UUID
    status: str
    created_at: datetime
    updated_at: datetime


class Scope(Protocol):
    """Unit-of-work handle — AtomicScope or NoopScope (infrastructure/transactions.py)."""
    atomic: bool
    lock_rows: bool
    session: "AsyncSession"

    @property
    def finished(self) -> bool: ...
    async def persist(self) -> None: ...
    async def commit(self) -> None: ...
    async def abort(self) -> None: ...


class SlotRepository(Protocol):
    """Contract for slot persistence — implemented by shell."""
    async def find_by_id(
        self, slot_id: SlotId, scope: Scope, *, for_update: bool = False,
    ) -> SlotLike | None: ...
    async def save(self, slot: SlotLike, scope: Scope) -> SlotLike: ...
    async def save_if(
        self,
        slot: SlotLike,
        scope: Scope,
        expected: "SlotExpectation",
        changes: dict,
    ) -> bool: ...
    async def delete_if(
        self, slot_id: SlotId, scope: Scope, expected: "SlotExpectation",
    ) -> bool: ...
    async def find_offerable_excluding_owner(
        self, db: "AsyncSession", user_id: UserId,
    ) -> list[SlotLike]: ...
    async def find_by_owner(
        self, db: "AsyncSession", owner_id: UserId,
    ) -> list[SlotLike]: ...
    async def find_many(
        self, db: "AsyncSession", slot_ids: set[SlotId],
    ) -> dict[SlotId, SlotLike]: ...


class SwapRequestRepository(Protocol):
    """Contract for swap-request persistence — implemented by shell."""
    async def find_by_id(
        self, request_id: SwapRequestId, scope: Scope, *, for_update: bool = False,
    ) -> SwapRequestLike | None: ...
    async def save(
        self, request: SwapRequestLike, scope: Scope,
    ) -> SwapRequestLike: ...
    async def save_if(
        self,
        request: SwapRequestLike,
        scope: Scope,
        expected_status: SwapRequestStatus,
        changes: dict,
    ) -> bool: ...
    async def delete_if(
        self,
        request_id: SwapRequestId,
        scope: Scope,
        expected_status: SwapRequestStatus,
    ) -> bool: ...
    async def find_pending_by_target_owner(
        self, db: "AsyncSession", user_id: UserId,
    ) -> list[SwapRequestLike]: ...
    async def find_pending_by_requester(
        self, db: "AsyncSession", user_id: UserId,
    ) -> list[SwapRequestLike]: ...


class OwnerDirectory(Protocol):
    """Owner-identity lookup (id -> name/email) used only to populate results."""
    async def lookup(
        self, db: "AsyncSession", user_ids: set[UserId],
    ) -> dict[UserId, OwnerInfo]: ...
