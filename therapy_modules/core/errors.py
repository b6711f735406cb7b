"""Engine error taxonomy. Every error maps to one HTTP status."""
from typing import Any


class EngineError(Exception):
    """
    Base for all recoverable-by-caller errors raised by the services.

    Attributes:
        message: human-readable summary
        detail: extra context the caller can act on
        code: stable machine-readable code
    """

    status_code: int = 400
    default_message: str = "Request failed"
    default_code: str = "ENGINE_ERROR"

    def __init__(
        self,
        message: str | None = None,
        detail: str | list[Any] | dict[str, Any] | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.detail = detail
        self.code = code or self.default_code
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} - {self.detail}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
            "detail": self.detail,
        }


class NotFound(EngineError):
    status_code = 404
    default_message = "Resource not found"
    default_code = "NOT_FOUND"


class Forbidden(EngineError):
    status_code = 403
    default_message = "Forbidden"
    default_code = "FORBIDDEN"


class AlreadySubmitted(EngineError):
    status_code = 409
    default_message = "Attempt already submitted"
    default_code = "ALREADY_SUBMITTED"


class AssignmentRequired(EngineError):
    status_code = 403
    default_message = "This module requires an active assignment"
    default_code = "ASSIGNMENT_REQUIRED"


class NotEnrolled(EngineError):
    status_code = 403
    default_message = "You are not enrolled in this module"
    default_code = "NOT_ENROLLED"


class InvalidAssignment(EngineError):
    status_code = 400
    default_message = "Assignment is not active for this user and module"
    default_code = "INVALID_ASSIGNMENT"


class InvalidAnswer(EngineError):
    status_code = 400
    default_message = "One or more answers reference invalid questions"
    default_code = "INVALID_ANSWER"


class IncompleteAnswers(EngineError):
    status_code = 400
    default_message = "Please answer all questions before submitting"
    default_code = "INCOMPLETE_ANSWERS"


class SnapshotFailed(EngineError):
    status_code = 500
    default_message = "Failed to snapshot module"
    default_code = "SNAPSHOT_FAILED"


class ActiveAssignmentExists(EngineError):
    status_code = 409
    default_message = "User already has an active assignment for this module"
    default_code = "ACTIVE_ASSIGNMENT_EXISTS"


class InvalidScoreBands(EngineError):
    status_code = 400
    default_message = "Score bands must not overlap"
    default_code = "INVALID_SCORE_BANDS"


class Unauthenticated(EngineError):
    status_code = 401
    default_message = "Unauthorized"
    default_code = "UNAUTHENTICATED"
