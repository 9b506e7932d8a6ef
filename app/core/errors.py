"""
Domain errors raised by the service layer.

Routers never build HTTP responses for these themselves; app.main registers a
single handler that maps each error class to its status code.
"""

from typing import Any


class CloneLabError(Exception):
    """Base class for every domain error."""

    status_code = 400

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(CloneLabError):
    """Malformed input: blank message content, status outside the enumeration."""

    status_code = 422

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class IllegalTransitionError(CloneLabError):
    """Status change the transition table forbids. The clone is left unchanged."""

    status_code = 409

    def __init__(self, from_status: str | None, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot change status from '{from_status}' to '{to_status}'",
            code="ILLEGAL_TRANSITION",
            details={"from": from_status, "to": to_status},
        )


class NotFoundError(CloneLabError):
    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class AuthorizationError(CloneLabError):
    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


class ConcurrencyConflictError(CloneLabError):
    """
    Two writers raced on the same row. The caller should re-fetch and retry
    the operation, not resend the stale request.
    """

    status_code = 409

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} was modified by another request; reload and try again",
            code="CONCURRENCY_CONFLICT",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
