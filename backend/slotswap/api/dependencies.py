"""API Dependencies — acting-user identity and service wiring for route handlers.

Invariants:
    - The acting user arrives in X-User-Id; missing or malformed -> 401 (MissingIdentityError)
    - The TransactionCoordinator lives on app.state, built once in the lifespan

Design Decisions:
    - X-User-Id stands in for the authentication collaborator, which sits in front of this
      service (token verification is not this service's concern)
    - Coordinator on app.state rather than a module global: tests install their own
"""

from uuid import UUID

from fastapi import Header, Request

from slotswap.core.domain_types import UserId
from slotswap.core.errors import MissingIdentityError
from slotswap.infrastructure.transactions import TransactionCoordinator
from slotswap.services.slot_service import SlotService
from slotswap.services.swap_queries import SwapQueries
from slotswap.services.swap_state_machine import SwapStateMachine


async def get_current_user_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
) -> UserId:
    if not x_user_id:
        raise MissingIdentityError()
    try:
        return UserId(UUID(x_user_id))
    except ValueError:
        raise MissingIdentityError()


def get_coordinator(request: Request) -> TransactionCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise RuntimeError("Transaction coordinator not initialized")
    return coordinator


def get_swap_state_machine(request: Request) -> SwapStateMachine:
    return SwapStateMachine(get_coordinator(request))


def get_slot_service(request: Request) -> SlotService:
    return SlotService(get_coordinator(request))


def get_swap_queries() -> SwapQueries:
    return SwapQueries()
