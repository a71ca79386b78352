"""Health & Readiness Probes — liveness, readiness and lock-invariant audit endpoints.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if database is unreachable (readiness)
    - GET /health/locks returns 503 when any slot/lock invariant is violated at rest

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
    - Readiness reports whether the coordinator runs atomic scopes, so operators can see
      when the store fell back to write-through mode
"""

import logging
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.core.lock_audit import find_lock_violations
from slotswap.infrastructure import database
from slotswap.infrastructure.database import get_db
from slotswap.services.slot_store import SqlSlotStore
from slotswap.services.swap_request_store import SqlSwapRequestStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "slotswap-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe — includes database connectivity and transaction mode."""
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    coordinator = getattr(request.app.state, "coordinator", None)
    atomic = (
        await coordinator.capability.atomic_supported() if coordinator else None
    )
    return {
        "status": "ready",
        "checks": {"database": "healthy", "atomic_transactions": atomic},
    }


@router.get("/locks")
async def lock_audit(db: AsyncSession = Depends(get_db)):
    """Audit the at-rest slot/lock invariants across both stores."""
    slots = await SqlSlotStore().find_all(db)
    requests = await SqlSwapRequestStore().find_all(db)
    violations = find_lock_violations(slots, requests)
    body = {
        "status": "consistent" if not violations else "inconsistent",
        "slots_checked": len(slots),
        "requests_checked": len(requests),
        "violations": [v.to_dict() for v in violations],
    }
    if violations:
        logger.error(
            f"Lock audit found {len(violations)} violation(s)",
            extra={"operation": "lock_audit"},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body,
        )
    return body
