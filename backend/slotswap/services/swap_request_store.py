"""Swap Request Store — SQLAlchemy persistence for swap-request records.

Invariants:
    - find_by_id/save/save_if/delete_if run inside the caller's scope
    - save_if/delete_if only touch a request still in the expected status (compare-and-set)
    - Inbox/outbox projections return only pending requests, newest first
"""

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.core.domain_types import SwapRequestId, SwapRequestStatus, UserId
from slotswap.db.base import sync_instance
from slotswap.infrastructure.transactions import SessionScope
from slotswap.models.swap_request import SwapRequest


class SqlSwapRequestStore:
    """Swap-request persistence backed by the swap_requests table."""

    async def find_by_id(
        self,
        request_id: SwapRequestId,
        scope: SessionScope,
        *,
        for_update: bool = False,
    ) -> SwapRequest | None:
        query = select(SwapRequest).where(SwapRequest.id == request_id)
        if for_update and scope.lock_rows:
            query = query.with_for_update()
        result = await scope.session.execute(query)
        return result.scalar_one_or_none()

    async def save(
        self, request: SwapRequest, scope: SessionScope,
    ) -> SwapRequest:
        scope.session.add(request)
        await scope.persist()
        return request

    async def save_if(
        self,
        request: SwapRequest,
        scope: SessionScope,
        expected_status: SwapRequestStatus,
        changes: dict,
    ) -> bool:
        result = await scope.session.execute(
            update(SwapRequest)
            .where(SwapRequest.id == request.id)
            .where(SwapRequest.status == expected_status.value)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await scope.persist()
        sync_instance(request, changes)
        return True

    async def delete_if(
        self,
        request_id: SwapRequestId,
        scope: SessionScope,
        expected_status: SwapRequestStatus,
    ) -> bool:
        result = await scope.session.execute(
            delete(SwapRequest)
            .where(SwapRequest.id == request_id)
            .where(SwapRequest.status == expected_status.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await scope.persist()
        return True

    async def find_pending_by_target_owner(
        self, db: AsyncSession, user_id: UserId,
    ) -> list[SwapRequest]:
        return await self._pending(db, SwapRequest.target_owner_id == user_id)

    async def find_pending_by_requester(
        self, db: AsyncSession, user_id: UserId,
    ) -> list[SwapRequest]:
        return await self._pending(db, SwapRequest.requester_id == user_id)

    async def _pending(self, db: AsyncSession, condition) -> list[SwapRequest]:
        result = await db.execute(
            select(SwapRequest)
            .where(condition)
            .where(SwapRequest.status == SwapRequestStatus.PENDING.value)
            .order_by(SwapRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_all(self, db: AsyncSession) -> list[SwapRequest]:
        result = await db.execute(select(SwapRequest))
        return list(result.scalars().all())
