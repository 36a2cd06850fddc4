"""Domain failures raised by the learning services.

Every error carries a stable ``code`` and a ``details`` dict so the HTTP
layer can explain the failure (e.g. the learner's current watched
percentage) without knowing the service internals.
"""

from __future__ import annotations

from typing import Any


class LearningError(Exception):
    """Base learning-engine error."""

    def __init__(
        self,
        message: str,
        code: str = "learning_error",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(LearningError):
    """Out-of-range or malformed input, or an operation not allowed in the current state."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, "validation_error", details)


class NotFoundError(LearningError):
    def __init__(self, entity: str, entity_id: object):
        super().__init__(
            f"{entity} not found",
            "not_found",
            {"entity": entity, "id": str(entity_id)},
        )


class OwnershipError(LearningError):
    """Caller does not own the enrollment or attempt."""

    def __init__(self, entity: str, entity_id: object):
        super().__init__(
            f"{entity} belongs to another user",
            "forbidden",
            {"entity": entity, "id": str(entity_id)},
        )


class IneligibleCompletionError(LearningError):
    """Completion threshold or anti-cheat check failed."""

    def __init__(
        self,
        message: str,
        current_percentage: int,
        reason: str = "insufficient_progress",
        **details: Any,
    ):
        super().__init__(
            message,
            "ineligible_completion",
            {"current_percentage": current_percentage, "reason": reason, **details},
        )
        self.current_percentage = current_percentage
        self.reason = reason


class AlreadyEnrolledError(LearningError):
    def __init__(self, message: str = "already enrolled", **details: Any):
        super().__init__(message, "already_enrolled", details)


class CannotPublishEmptyPathError(LearningError):
    def __init__(self, path_id: object):
        super().__init__(
            "a learning path needs at least one active step to be published",
            "cannot_publish_empty_path",
            {"path_id": str(path_id)},
        )


class RejectedIncompleteReorderError(LearningError):
    """Reorder request is not exactly the current active step set."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, "rejected_incomplete_reorder", details)


class ConcurrencyConflictError(LearningError):
    """A concurrent writer won a race the caller may retry."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, "concurrency_conflict", details)
