"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Not found errors (404)
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    GAME_SESSION_NOT_FOUND = "GAME_SESSION_NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_GUESS_RANGE = "INVALID_GUESS_RANGE"
    INVALID_DATE_OF_BIRTH = "INVALID_DATE_OF_BIRTH"
    INVALID_PROFILE_FIELD = "INVALID_PROFILE_FIELD"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
        )


class NotAuthenticatedError(AuthenticationError):
    """No identity is available for a profile operation."""

    def __init__(self) -> None:
        super().__init__(
            message="No signed-in identity",
            error_code=ErrorCode.NOT_AUTHENTICATED,
        )


class RemoteUnavailableError(AppException):
    """The remote profile store could not be reached or rejected the call."""

    def __init__(self, operation: str, document_id: str | None = None) -> None:
        details: dict[str, str] = {"operation": operation}
        if document_id:
            details["document_id"] = document_id
        super().__init__(
            error_code=ErrorCode.REMOTE_UNAVAILABLE,
            message=f"Remote profile store unavailable during {operation}",
            status_code=503,
            details=details,
        )


class InvalidGuessRangeError(AppException):
    """Guess value outside the accepted bounds."""

    def __init__(self, value: int, minimum: int, maximum: int) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_GUESS_RANGE,
            message=f"Guess must be between {minimum} and {maximum}",
            status_code=400,
            details={"value": value, "min": minimum, "max": maximum},
        )


class InvalidDateOfBirthError(AppException):
    """Date of birth is malformed or outside the allowed age range."""

    def __init__(self, date_of_birth: str, reason: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_DATE_OF_BIRTH,
            message=reason,
            status_code=400,
            details={"date_of_birth": date_of_birth},
        )


class InvalidProfileFieldError(AppException):
    """An editable profile field has an unusable value."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_PROFILE_FIELD,
            message=reason,
            status_code=400,
            details={"field": field},
        )


class ProfileNotLoadedError(AppException):
    """Profile has not been loaded for this identity."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.PROFILE_NOT_FOUND,
            message=f"Profile not loaded: {user_id}",
            status_code=404,
            details={"user_id": user_id},
        )


class GameSessionNotFoundError(AppException):
    """No live guess session exists for the caller."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.GAME_SESSION_NOT_FOUND,
            message="No active game session; start one first",
            status_code=404,
            details={"user_id": user_id},
        )
