"""Error Hierarchy — typed exceptions for every way a slot or swap operation is refused.

Invariants:
    - Every error has a code, a category, a severity and an HTTP status
    - Errors raised by the swap engine leave the stores as they were (the scope aborted)
    - Errors are never retried internally; the caller decides (e.g. INVALID_STATE after a lost race)
    - to_response() produces the REST envelope; messages never carry internals

Design Decisions:
    - One base (SlotSwapError) so the FastAPI handler catches the whole family
    - ErrorContext as a dataclass: ids for observability, no coupling to logging
    - to_log_extra() gives handlers and services the same structured log fields
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"


@dataclass
class ErrorContext:
    """Which entities and operation an error is about."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    slot_id: str | None = None
    swap_request_id: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None

    def ids(self) -> dict[str, str | None]:
        return {
            "user_id": self.user_id,
            "slot_id": self.slot_id,
            "swap_request_id": self.swap_request_id,
            "operation": self.operation,
        }


class SlotSwapError(Exception):
    """Base exception for all SlotSwap errors."""

    code = "INTERNAL_ERROR"
    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.ERROR
    http_status = 500

    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()

    def to_response(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": self.context.ids(),
            }
        }

    def to_log_extra(self) -> dict:
        extra = {k: v for k, v in self.context.ids().items() if v is not None}
        extra["error_code"] = self.code
        return extra


# ─── Domain Errors (400-level) ──────────────────────────────────

class ResourceNotFoundError(SlotSwapError):
    """A slot or swap request id does not resolve."""
    code = "NOT_FOUND"
    category = ErrorCategory.RESOURCE_NOT_FOUND
    http_status = 404

    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(f"{resource_type} '{resource_id}' not found", context)
        self.resource_type = resource_type
        self.resource_id = resource_id


class UnauthorizedActionError(SlotSwapError):
    """Actor does not own the slot or hold the required role on the request."""
    code = "UNAUTHORIZED"
    category = ErrorCategory.AUTHORIZATION
    severity = ErrorSeverity.WARNING
    http_status = 403


class SelfSwapError(SlotSwapError):
    """Both slots of a swap belong to the same owner."""
    code = "SELF_SWAP"
    category = ErrorCategory.BUSINESS_RULE
    severity = ErrorSeverity.WARNING
    http_status = 400

    def __init__(self, context: ErrorContext | None = None):
        super().__init__("Cannot swap with your own slot", context)


class InvalidStateError(SlotSwapError):
    """Slot or request is not in the status the transition needs."""
    code = "INVALID_STATE"
    category = ErrorCategory.CONFLICT
    severity = ErrorSeverity.WARNING
    http_status = 409


class SlotValidationError(SlotSwapError):
    """Slot fields failed a domain check (e.g. end before start)."""
    code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION
    http_status = 400

    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(message, context)
        self.field = field


class MissingIdentityError(SlotSwapError):
    """Request arrived without a usable acting-user identity."""
    code = "IDENTITY_REQUIRED"
    category = ErrorCategory.AUTHORIZATION
    severity = ErrorSeverity.WARNING
    http_status = 401

    def __init__(self, context: ErrorContext | None = None):
        super().__init__("A valid X-User-Id header is required", context)


class UnknownUserError(SlotSwapError):
    """Well-formed X-User-Id that names no registered user."""
    code = "UNKNOWN_USER"
    category = ErrorCategory.AUTHORIZATION
    severity = ErrorSeverity.WARNING
    http_status = 401

    def __init__(self, user_id: str, context: ErrorContext | None = None):
        super().__init__(f"User '{user_id}' is not registered", context)
        self.user_id = user_id


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(SlotSwapError):
    """The store failed; the scope was aborted."""
    code = "DATABASE_ERROR"
    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.CRITICAL
    http_status = 503

    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(f"Database {operation} failed: {message}", context)
        self.operation = operation
