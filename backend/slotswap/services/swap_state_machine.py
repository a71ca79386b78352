"""Swap State Machine — create/accept/reject/cancel of slot swaps inside one coordinator scope.

Invariants:
    - Every operation runs in exactly one unit of work; any error aborts it before propagating
    - read -> validate -> write: no write is issued until every precondition has been checked
      against values read in the same scope
    - Every write to an existing row is guarded by the state that was validated; a guard that
      no longer matches means a concurrent operation won, and raises INVALID_STATE
    - Slot pairs are fetched and written in ascending id order (core/swap_rules.order_slot_ids)
    - One row per write, so a NoopScope exposes each write on its own, in this order:
        create  — request first, then the slot locks that point at it
        accept  — slots first (owners swapped, locks cleared), then request -> accepted
        reject  — locks released first, then request -> rejected
        cancel  — locks released first, then the request is deleted
    - reject/cancel release only slots still locked by THIS request; a slot altered or deleted
      out of band is skipped, never an error

Design Decisions:
    - The slot status/lock_ref pair is the mutex, enforced by the guarded UPDATE: two creates
      racing for one slot cannot both lock it, with or without store-level isolation
    - A create that loses a lock race under NoopScope undoes its own request and locks before
      raising; under AtomicScope the rollback does it
    - Fetches are sequential: one AsyncSession cannot run statements concurrently, and a fixed
      order is what prevents lock-order inversion under row locks
    - Results rendered from the in-scope objects plus an owner lookup in the same session
"""

import logging
import uuid
from datetime import datetime, timezone

from slotswap.core.domain_types import (
    SlotId, SwapRequestId, SwapRequestStatus, UserId,
)
from slotswap.core.errors import (
    ErrorContext, ErrorSeverity, InvalidStateError, ResourceNotFoundError,
    SlotSwapError,
)
from slotswap.core.repository_protocols import (
    OwnerDirectory, SlotRepository, SwapRequestRepository,
)
from slotswap.core.swap_rules import (
    check_create_preconditions, check_request_actor, check_request_pending,
    check_slots_locked_for, exchange_changes, expect_locked_by, expect_offerable,
    is_locked_by, lock_changes, order_slot_ids, order_slots, release_changes,
    status_changes,
)
from slotswap.infrastructure.transactions import (
    SessionScope, TransactionCoordinator,
)
from slotswap.models.slot import Slot
from slotswap.models.swap_request import SwapRequest
from slotswap.schemas.swap import (
    SwapRequestDetail, build_swap_request_detail, collect_owner_ids,
)
from slotswap.services.owner_directory import SqlOwnerDirectory
from slotswap.services.slot_store import SqlSlotStore
from slotswap.services.swap_request_store import SqlSwapRequestStore

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Swap request cancelled successfully"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _slot_label(request: SwapRequest, slot: Slot) -> str:
    return "Target slot" if slot.id == request.target_slot_id else "Requester slot"


class SwapStateMachine:
    """Orchestrates swap transitions over the slot and swap-request stores."""

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        slots: SlotRepository | None = None,
        requests: SwapRequestRepository | None = None,
        owners: OwnerDirectory | None = None,
    ):
        self._coordinator = coordinator
        self._slots = slots or SqlSlotStore()
        self._requests = requests or SqlSwapRequestStore()
        self._owners = owners or SqlOwnerDirectory()

    # ─── Operations ──────────────────────────────────────────────

    async def create_request(
        self,
        requester_id: UserId,
        requester_slot_id: SlotId,
        target_slot_id: SlotId,
    ) -> SwapRequestDetail:
        """Propose swapping requester_slot_id for target_slot_id; locks both slots."""
        try:
            async with self._coordinator.unit_of_work() as scope:
                fetched = await self._fetch_slots(
                    scope, requester_slot_id, target_slot_id,
                )
                requester_slot = fetched.get(requester_slot_id)
                target_slot = fetched.get(target_slot_id)
                check_create_preconditions(
                    requester_id, requester_slot_id, target_slot_id,
                    requester_slot, target_slot,
                )

                now = _utcnow()
                request = SwapRequest(
                    id=uuid.uuid4(),
                    requester_id=requester_id,
                    requester_slot_id=requester_slot_id,
                    target_owner_id=target_slot.owner_id,
                    target_slot_id=target_slot_id,
                    status=SwapRequestStatus.PENDING.value,
                    created_at=now,
                    updated_at=now,
                )
                await self._requests.save(request, scope)
                await self._lock_slots(
                    scope, request, [requester_slot, target_slot], now,
                )

                detail = await self._render(scope, request, fetched)
        except SlotSwapError as e:
            self._log_failure("create_request", e, requester_id)
            raise

        logger.info(
            "Swap request created; both slots locked",
            extra={
                "swap_request_id": request.id, "user_id": requester_id,
                "operation": "create_request", "atomic": scope.atomic,
            },
        )
        return detail

    async def accept_swap_request(
        self, request_id: SwapRequestId, user_id: UserId,
    ) -> SwapRequestDetail:
        """Target owner accepts: slot owners are exchanged and both slots settle as occupied."""
        operation = "accept_swap_request"
        try:
            async with self._coordinator.unit_of_work() as scope:
                request = await self._load_request(
                    scope, request_id, user_id, operation,
                )
                check_request_actor(request, user_id, "target", operation)
                check_request_pending(request, operation)

                fetched = await self._fetch_slots(
                    scope, request.requester_slot_id, request.target_slot_id,
                )
                requester_slot = fetched.get(request.requester_slot_id)
                target_slot = fetched.get(request.target_slot_id)
                check_slots_locked_for(request, requester_slot, target_slot)

                now = _utcnow()
                changes = exchange_changes(requester_slot, target_slot, now)
                for slot in order_slots([requester_slot, target_slot]):
                    settled = await self._slots.save_if(
                        slot, scope, expect_locked_by(request), changes[slot.id],
                    )
                    if not settled:
                        raise InvalidStateError(
                            f"{_slot_label(request, slot)} is no longer locked "
                            "for this swap",
                            self._context(request, operation, slot),
                        )
                await self._close_request(
                    scope, request, SwapRequestStatus.ACCEPTED, now, operation,
                )

                detail = await self._render(scope, request, fetched)
        except SlotSwapError as e:
            self._log_failure(operation, e, user_id, request_id)
            raise

        logger.info(
            "Swap request accepted; slot owners exchanged",
            extra={
                "swap_request_id": request_id, "user_id": user_id,
                "operation": operation, "atomic": scope.atomic,
            },
        )
        return detail

    async def reject_swap_request(
        self, request_id: SwapRequestId, user_id: UserId,
    ) -> SwapRequestDetail:
        """Target owner declines: the request is closed and its slots go back on offer."""
        operation = "reject_swap_request"
        try:
            async with self._coordinator.unit_of_work() as scope:
                request = await self._load_request(
                    scope, request_id, user_id, operation,
                )
                check_request_actor(request, user_id, "target", operation)
                check_request_pending(request, operation)

                fetched = await self._fetch_slots(
                    scope, request.requester_slot_id, request.target_slot_id,
                )
                now = _utcnow()
                await self._release_locks(scope, request, fetched.values(), now)
                await self._close_request(
                    scope, request, SwapRequestStatus.REJECTED, now, operation,
                )

                detail = await self._render(scope, request, fetched)
        except SlotSwapError as e:
            self._log_failure(operation, e, user_id, request_id)
            raise

        logger.info(
            "Swap request rejected; slots released",
            extra={
                "swap_request_id": request_id, "user_id": user_id,
                "operation": operation, "atomic": scope.atomic,
            },
        )
        return detail

    async def cancel_swap_request(
        self, request_id: SwapRequestId, user_id: UserId,
    ) -> dict:
        """Requester withdraws: slots go back on offer and the request is deleted."""
        operation = "cancel_swap_request"
        try:
            async with self._coordinator.unit_of_work() as scope:
                request = await self._load_request(
                    scope, request_id, user_id, operation,
                )
                check_request_actor(request, user_id, "requester", operation)
                check_request_pending(request, operation)

                fetched = await self._fetch_slots(
                    scope, request.requester_slot_id, request.target_slot_id,
                )
                await self._release_locks(
                    scope, request, fetched.values(), _utcnow(),
                )
                deleted = await self._requests.delete_if(
                    request.id, scope, SwapRequestStatus.PENDING,
                )
                if not deleted:
                    raise self._request_closed(request, operation)
        except SlotSwapError as e:
            self._log_failure(operation, e, user_id, request_id)
            raise

        logger.info(
            "Swap request cancelled; slots released",
            extra={
                "swap_request_id": request_id, "user_id": user_id,
                "operation": operation, "atomic": scope.atomic,
            },
        )
        return {"message": CANCELLED_MESSAGE}

    # ─── Helpers ─────────────────────────────────────────────────

    async def _fetch_slots(
        self, scope: SessionScope, first: SlotId, second: SlotId,
    ) -> dict[SlotId, Slot]:
        fetched: dict[SlotId, Slot] = {}
        for slot_id in order_slot_ids(first, second):
            slot = await self._slots.find_by_id(slot_id, scope, for_update=True)
            if slot is not None:
                fetched[slot_id] = slot
        return fetched

    async def _load_request(
        self,
        scope: SessionScope,
        request_id: SwapRequestId,
        user_id: UserId,
        operation: str,
    ) -> SwapRequest:
        request = await self._requests.find_by_id(
            request_id, scope, for_update=True,
        )
        if request is None:
            raise ResourceNotFoundError(
                "SwapRequest", str(request_id),
                ErrorContext(
                    user_id=str(user_id), swap_request_id=str(request_id),
                    operation=operation,
                ),
            )
        return request

    async def _lock_slots(
        self,
        scope: SessionScope,
        request: SwapRequest,
        slots: list[Slot],
        now: datetime,
    ) -> None:
        locked: list[Slot] = []
        for slot in order_slots(slots):
            taken = await self._slots.save_if(
                slot, scope, expect_offerable(), lock_changes(request, now),
            )
            if not taken:
                if not scope.atomic:
                    await self._undo_partial_create(scope, request, locked, now)
                raise InvalidStateError(
                    f"{_slot_label(request, slot)} was taken by a concurrent "
                    "swap request",
                    self._context(request, "create_request", slot),
                )
            locked.append(slot)

    async def _undo_partial_create(
        self,
        scope: SessionScope,
        request: SwapRequest,
        locked: list[Slot],
        now: datetime,
    ) -> None:
        await self._release_locks(scope, request, locked, now)
        await self._requests.delete_if(
            request.id, scope, SwapRequestStatus.PENDING,
        )
        logger.warning(
            "Lost a slot lock to a concurrent request; partial create undone",
            extra={"swap_request_id": request.id, "operation": "create_request"},
        )

    async def _release_locks(
        self,
        scope: SessionScope,
        request: SwapRequest,
        slots,
        now: datetime,
    ) -> None:
        for slot in order_slots(list(slots)):
            if is_locked_by(slot, request) and await self._slots.save_if(
                slot, scope, expect_locked_by(request), release_changes(now),
            ):
                continue
            logger.info(
                "Slot no longer locked by this request; left unchanged",
                extra={"slot_id": slot.id, "swap_request_id": request.id},
            )

    async def _close_request(
        self,
        scope: SessionScope,
        request: SwapRequest,
        status: SwapRequestStatus,
        now: datetime,
        operation: str,
    ) -> None:
        closed = await self._requests.save_if(
            request, scope, SwapRequestStatus.PENDING, status_changes(status, now),
        )
        if not closed:
            raise self._request_closed(request, operation)

    async def _render(
        self,
        scope: SessionScope,
        request: SwapRequest,
        fetched: dict[SlotId, Slot],
    ) -> SwapRequestDetail:
        owners = await self._owners.lookup(
            scope.session, collect_owner_ids([request], fetched),
        )
        return build_swap_request_detail(request, fetched, owners)

    @staticmethod
    def _context(
        request: SwapRequest, operation: str, slot: Slot | None = None,
    ) -> ErrorContext:
        return ErrorContext(
            slot_id=str(slot.id) if slot is not None else None,
            swap_request_id=str(request.id),
            operation=operation,
        )

    def _request_closed(
        self, request: SwapRequest, operation: str,
    ) -> InvalidStateError:
        return InvalidStateError(
            "Swap request was settled by a concurrent operation",
            self._context(request, operation),
        )

    @staticmethod
    def _log_failure(
        operation: str,
        error: SlotSwapError,
        user_id: UserId,
        request_id: SwapRequestId | None = None,
    ) -> None:
        level = (
            logging.ERROR if error.severity == ErrorSeverity.CRITICAL
            else logging.WARNING
        )
        logger.log(
            level,
            f"{operation} refused: {error.message}",
            extra={
                "operation": operation, "user_id": user_id,
                "swap_request_id": request_id, **error.to_log_extra(),
            },
        )
