"""Error Handlers — map exceptions to the REST error envelope.

Invariants:
    - SlotSwapError -> its own http_status and to_response() body
    - RequestValidationError -> 400 VALIDATION_ERROR with one entry per offending field
    - Anything else -> 500 INTERNAL_ERROR, message never includes internals

Design Decisions:
    - Refusals a client can cause (403/404/409/...) log at WARNING; only store failures
      (CRITICAL severity) log at ERROR
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from slotswap.core.errors import ErrorSeverity, SlotSwapError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SlotSwapError, slotswap_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


async def slotswap_error_handler(request: Request, exc: SlotSwapError) -> JSONResponse:
    level = (
        logging.ERROR if exc.severity == ErrorSeverity.CRITICAL else logging.WARNING
    )
    logger.log(
        level, f"{exc.code}: {exc.message}",
        extra={**exc.to_log_extra(), "path": request.url.path},
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def validation_error_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning(
        f"Rejected request body: {[d['field'] for d in details]}",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "category": "validation",
                "severity": ErrorSeverity.ERROR.value,
                "details": details,
            },
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        exc_info=True, extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": "internal",
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )
