"""Map lifecycle errors to HTTP responses.

Body: {"detail": message, "error": kind, ...context}
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from innkeep.domain.errors import (
    CapacityExceededError,
    InvalidInputError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    RoomUnavailableError,
)
from innkeep.domain.rooms import DuplicateRoomNumberError
from innkeep.observability.correlation import get_correlation_id
from innkeep.observability.logging import get_logger
from innkeep.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Checked in order: subclasses before their bases.
_STATUS_BY_ERROR: list[tuple[type[LifecycleError], int]] = [
    (NotFoundError, 404),
    (DuplicateRoomNumberError, 409),
    (InvalidTransitionError, 409),
    (CapacityExceededError, 409),
    (RoomUnavailableError, 409),
    (InvalidInputError, 400),
]


def status_for(exc: LifecycleError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "request rejected",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                path=request.url.path,
                status_code=status_code,
                error=exc.kind,
            )
        },
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
