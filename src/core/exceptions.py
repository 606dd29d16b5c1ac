"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Authorization errors (403)
    NOT_AUTHORIZED = "NOT_AUTHORIZED"

    # Not found errors (404)
    GROUP_NOT_FOUND = "GROUP_NOT_FOUND"

    # Validation errors (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Conflict errors (409)
    INVALID_STATE = "INVALID_STATE"
    LAST_ADMIN_PROTECTED = "LAST_ADMIN_PROTECTED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    # Rate limiting (429)
    RATE_LIMITED = "RATE_LIMITED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


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


class GroupNotFoundError(AppException):
    """Group not found."""

    def __init__(self, group_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.GROUP_NOT_FOUND,
            message=f"Group not found: {group_id}",
            status_code=404,
            details={"group_id": group_id},
        )


class NotAuthorizedError(AppException):
    """Actor is not allowed to perform the operation on this group."""

    def __init__(self, message: str = "Only group admins can do this", actor_id: str = "") -> None:
        super().__init__(
            error_code=ErrorCode.NOT_AUTHORIZED,
            message=message,
            status_code=403,
            details={"actor_id": actor_id} if actor_id else None,
        )


class InvalidStateError(AppException):
    """Operation precondition does not hold for the current membership state."""

    def __init__(self, message: str, state: str | None = None, request_status: str | None = None) -> None:
        details: dict[str, str] = {}
        if state is not None:
            details["state"] = state
        if request_status is not None:
            details["request_status"] = request_status
        super().__init__(
            error_code=ErrorCode.INVALID_STATE,
            message=message,
            status_code=409,
            details=details or None,
        )


class LastAdminProtectedError(AppException):
    """Cannot remove or demote the creator or the last admin of a group."""

    def __init__(self, user_id: str, reason: str = "last_admin") -> None:
        message = (
            "The group creator must remain an admin"
            if reason == "creator"
            else "Cannot remove or demote the last admin of a group"
        )
        super().__init__(
            error_code=ErrorCode.LAST_ADMIN_PROTECTED,
            message=message,
            status_code=409,
            details={"user_id": user_id, "reason": reason},
        )


class RateLimitedError(AppException):
    """Action is inside its cooldown window."""

    def __init__(self, key: str, window_seconds: int, retry_after: int | None = None) -> None:
        if retry_after is None:
            retry_after = window_seconds
        self.retry_after = retry_after
        super().__init__(
            error_code=ErrorCode.RATE_LIMITED,
            message=f"Please wait {retry_after} seconds before trying again",
            status_code=429,
            details={"key": key, "window_seconds": window_seconds, "retry_after": retry_after},
        )


class ConcurrentModificationError(AppException):
    """Optimistic-lock retries exhausted for a group record."""

    def __init__(self, group_id: str, attempts: int) -> None:
        super().__init__(
            error_code=ErrorCode.CONCURRENT_MODIFICATION,
            message="The group was modified concurrently, please retry",
            status_code=409,
            details={"group_id": group_id, "attempts": attempts},
        )


class StoreUnavailableError(AppException):
    """Persistence layer failed (connection, driver or data error)."""

    def __init__(self, message: str = "Storage is temporarily unavailable") -> None:
        super().__init__(
            error_code=ErrorCode.STORE_UNAVAILABLE,
            message=message,
            status_code=503,
        )
