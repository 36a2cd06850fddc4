"""Maps learning-engine failures onto HTTP responses.

Every domain error renders as ``{"error": code, "message": ..., "details": {...}}``
so clients can branch on the stable code instead of the message.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from lms.services.errors import (
    AlreadyEnrolledError,
    CannotPublishEmptyPathError,
    ConcurrencyConflictError,
    IneligibleCompletionError,
    LearningError,
    NotFoundError,
    OwnershipError,
    RejectedIncompleteReorderError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[LearningError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    OwnershipError: status.HTTP_403_FORBIDDEN,
    IneligibleCompletionError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    AlreadyEnrolledError: status.HTTP_409_CONFLICT,
    CannotPublishEmptyPathError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    RejectedIncompleteReorderError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
}


def status_for(exc: LearningError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[error_type]
    return status.HTTP_400_BAD_REQUEST


async def learning_error_handler(request: Request, exc: LearningError) -> JSONResponse:
    code = status_for(exc)
    logger.info(
        "Request rejected path=%s status=%d error=%s",
        request.url.path,
        code,
        exc.code,
    )
    return JSONResponse(
        status_code=code,
        content={"error": exc.code, "message": exc.message, "details": exc.details},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LearningError, learning_error_handler)
