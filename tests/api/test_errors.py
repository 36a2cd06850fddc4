"""Domain errors map onto stable HTTP statuses and one body shape."""

from __future__ import annotations

import asyncio
import json

import pytest
from starlette.requests import Request

from lms.api.errors import learning_error_handler, status_for
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


@pytest.mark.parametrize(
    "error,expected",
    [
        (ValidationError("bad"), 422),
        (NotFoundError("enrollment", "x"), 404),
        (OwnershipError("enrollment", "x"), 403),
        (IneligibleCompletionError("no", current_percentage=10), 422),
        (AlreadyEnrolledError(), 409),
        (CannotPublishEmptyPathError("p"), 422),
        (RejectedIncompleteReorderError("no"), 422),
        (ConcurrencyConflictError("race"), 409),
        (LearningError("generic"), 400),
    ],
)
def test_status_for(error: LearningError, expected: int) -> None:
    assert status_for(error) == expected


def test_subclass_inherits_parent_status() -> None:
    class StaleEnrollmentError(NotFoundError):
        pass

    assert status_for(StaleEnrollmentError("enrollment", "x")) == 404


def test_ineligible_details_carry_current_percentage() -> None:
    error = IneligibleCompletionError(
        "watch more", current_percentage=42, reason="insufficient_progress"
    )
    assert error.code == "ineligible_completion"
    assert error.details == {"current_percentage": 42, "reason": "insufficient_progress"}


def test_handler_renders_error_body() -> None:
    request = Request(
        {"type": "http", "method": "POST", "path": "/v1/enrollments", "headers": []}
    )
    error = AlreadyEnrolledError("already enrolled", enrollment_id="e-1")

    response = asyncio.run(learning_error_handler(request, error))

    assert response.status_code == 409
    assert json.loads(response.body) == {
        "error": error.code,
        "message": "already enrolled",
        "details": {"enrollment_id": "e-1"},
    }
