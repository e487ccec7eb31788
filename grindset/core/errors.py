"""Typed error taxonomy for the grind engine and its user-facing classification."""

from enum import Enum

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError


class ErrorCategory(Enum):
    """Categories of errors surfaced by the engine."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Lookup errors
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_GRIND_NOT_FOUND = "ERR_GRIND_NOT_FOUND"
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_MESSAGE_NOT_FOUND = "ERR_MESSAGE_NOT_FOUND"
    ERR_USER_NOT_FOUND = "ERR_USER_NOT_FOUND"
    ERR_PARTICIPANT_NOT_FOUND = "ERR_PARTICIPANT_NOT_FOUND"
    ERR_RECORD_NOT_FOUND = "ERR_RECORD_NOT_FOUND"
    ERR_PROBLEM_NOT_FOUND = "ERR_PROBLEM_NOT_FOUND"

    # Permission errors
    ERR_FORBIDDEN = "ERR_FORBIDDEN"
    ERR_UNAUTHORIZED = "ERR_UNAUTHORIZED"

    # State conflicts
    ERR_CONFLICT = "ERR_CONFLICT"
    ERR_PARTICIPANT_EXISTS = "ERR_PARTICIPANT_EXISTS"
    ERR_ALREADY_QUITTED = "ERR_ALREADY_QUITTED"
    ERR_INVITATION_ALREADY_RESPONDED = "ERR_INVITATION_ALREADY_RESPONDED"
    ERR_USER_ALREADY_EXISTS = "ERR_USER_ALREADY_EXISTS"
    ERR_TASK_WINDOW_CLOSED = "ERR_TASK_WINDOW_CLOSED"

    # Validation errors
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_SAME_SENDER_RECEIVER = "ERR_SAME_SENDER_RECEIVER"
    ERR_NOT_AN_INVITATION = "ERR_NOT_AN_INVITATION"

    # Upstream errors
    ERR_UPSTREAM_UNAVAILABLE = "ERR_UPSTREAM_UNAVAILABLE"
    ERR_PROBLEM_SOURCE_UNAVAILABLE = "ERR_PROBLEM_SOURCE_UNAVAILABLE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class GrindsetError(Exception):
    """Base class for every error the engine surfaces to its callers."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    code: str = ErrorCode.ERR_UNKNOWN
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(GrindsetError):
    category = ErrorCategory.NOT_FOUND
    code = ErrorCode.ERR_NOT_FOUND
    default_message = "The requested resource was not found."


class ForbiddenError(GrindsetError):
    category = ErrorCategory.FORBIDDEN
    code = ErrorCode.ERR_FORBIDDEN
    default_message = "You are not allowed to perform this action."


class ConflictError(GrindsetError):
    category = ErrorCategory.CONFLICT
    code = ErrorCode.ERR_CONFLICT
    default_message = "This action conflicts with the current state."


class InvalidRequestError(GrindsetError):
    category = ErrorCategory.VALIDATION
    code = ErrorCode.ERR_VALIDATION
    default_message = "The request is invalid."


class UpstreamUnavailableError(GrindsetError):
    category = ErrorCategory.UPSTREAM_UNAVAILABLE
    code = ErrorCode.ERR_UPSTREAM_UNAVAILABLE
    default_message = "An upstream service is unavailable."


class UnauthorizedError(GrindsetError):
    category = ErrorCategory.UNAUTHORIZED
    code = ErrorCode.ERR_UNAUTHORIZED
    default_message = "Unauthorized."


class GrindNotFoundError(NotFoundError):
    code = ErrorCode.ERR_GRIND_NOT_FOUND
    default_message = "Grind not found."


class TaskNotFoundError(NotFoundError):
    code = ErrorCode.ERR_TASK_NOT_FOUND
    default_message = "Task not found."


class MessageNotFoundError(NotFoundError):
    code = ErrorCode.ERR_MESSAGE_NOT_FOUND
    default_message = "Message not found."


class UserNotFoundError(NotFoundError):
    code = ErrorCode.ERR_USER_NOT_FOUND
    default_message = "User not found."


class ParticipantNotFoundError(NotFoundError):
    """A participant identifier did not resolve, or the user is not in the grind."""

    code = ErrorCode.ERR_PARTICIPANT_NOT_FOUND
    default_message = "Participant not found."


class ParticipateRecordNotFoundError(NotFoundError):
    code = ErrorCode.ERR_RECORD_NOT_FOUND
    default_message = "Participate record not found."


class ProblemNotFoundError(NotFoundError):
    code = ErrorCode.ERR_PROBLEM_NOT_FOUND
    default_message = "Problem not found."


class ParticipantAlreadyExistsError(ConflictError):
    code = ErrorCode.ERR_PARTICIPANT_EXISTS
    default_message = "The user already participates in this grind."


class AlreadyQuittedError(ConflictError):
    code = ErrorCode.ERR_ALREADY_QUITTED
    default_message = "You have already quitted this grind."


class InvitationAlreadyRespondedError(ConflictError):
    code = ErrorCode.ERR_INVITATION_ALREADY_RESPONDED
    default_message = "This invitation has already been responded to."


class UserAlreadyExistsError(ConflictError):
    code = ErrorCode.ERR_USER_ALREADY_EXISTS
    default_message = "A user with this email already exists."


class TaskWindowClosedError(ConflictError):
    """The task's calendar day has elapsed and it can no longer be finished."""

    code = ErrorCode.ERR_TASK_WINDOW_CLOSED
    default_message = "This task's day is over and it can no longer be finished."


class SameSenderReceiverError(InvalidRequestError):
    code = ErrorCode.ERR_SAME_SENDER_RECEIVER
    default_message = "Sender and receiver must be different users."


class NotAnInvitationError(InvalidRequestError):
    code = ErrorCode.ERR_NOT_AN_INVITATION
    default_message = "This message is not an invitation."


class ProblemSourceUnavailableError(UpstreamUnavailableError):
    code = ErrorCode.ERR_PROBLEM_SOURCE_UNAVAILABLE
    default_message = "The problem source is currently unavailable."


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_SUGGESTIONS: dict[ErrorCategory, tuple[str, ErrorSeverity]] = {
    ErrorCategory.NOT_FOUND: ("Check the identifier and try again.", ErrorSeverity.LOW),
    ErrorCategory.FORBIDDEN: ("Only the authorized participant can do this.", ErrorSeverity.MEDIUM),
    ErrorCategory.CONFLICT: ("Refresh to see the current state before retrying.", ErrorSeverity.LOW),
    ErrorCategory.VALIDATION: ("Fix the highlighted fields and resubmit.", ErrorSeverity.LOW),
    ErrorCategory.UPSTREAM_UNAVAILABLE: ("Please try again in a moment.", ErrorSeverity.HIGH),
    ErrorCategory.UNAUTHORIZED: ("Sign in again to continue.", ErrorSeverity.MEDIUM),
    ErrorCategory.UNKNOWN: (
        "Please try again later. If the problem persists, contact support.",
        ErrorSeverity.MEDIUM,
    ),
}


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Internal details (SQL text, upstream payloads) never reach the response: unknown
    exceptions collapse into ERR_UNKNOWN with a generic message.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, GrindsetError):
        suggestion, severity = _SUGGESTIONS[exception.category]
        return ErrorResponse(
            code=exception.code,
            message=exception.message,
            suggestion=suggestion,
            severity=severity,
        )

    if isinstance(exception, PydanticValidationError):
        suggestion, severity = _SUGGESTIONS[ErrorCategory.VALIDATION]
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message="The request is invalid.",
            suggestion=suggestion,
            severity=severity,
        )

    suggestion, severity = _SUGGESTIONS[ErrorCategory.UNKNOWN]
    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion=suggestion,
        severity=severity,
    )


def category_of(exception: Exception) -> ErrorCategory:
    """Return the taxonomy category for any exception."""
    if isinstance(exception, GrindsetError):
        return exception.category
    if isinstance(exception, PydanticValidationError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN
