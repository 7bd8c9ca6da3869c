"""Custom HTTP exception classes module.

Pre-configured HTTPException subclasses for the failure kinds a request
can end in. Services raise them directly; FastAPI renders them as

    {"detail": {"code": "<machine code>", "message": "<human message>"}}

so callers can tell a role mismatch from an ownership mismatch, a bad
payload from an illegal state, without parsing text.

Usage:
    from bluegrid.utils.exceptions import NotFoundError, ConflictError
    raise NotFoundError("Report not found")
    raise ConflictError("Report is not awaiting approval")
"""

from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Base class carrying an HTTP status and a stable error code.

    Args:
        message: Human-readable message
        code: Machine-readable code, defaults to the class code
    """

    status_code_default: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.message: str = message or self.default_message
        super().__init__(
            status_code=self.status_code_default,
            detail={"code": self.code, "message": self.message},
        )


class AuthorizationError(ServiceError):
    """403: the actor's role does not permit the operation."""

    status_code_default = status.HTTP_403_FORBIDDEN
    code = "role_mismatch"
    default_message = "Access denied for this role"


class OwnershipError(ServiceError):
    """403: right role, but the actor is not the owner or assignee of the resource."""

    status_code_default = status.HTTP_403_FORBIDDEN
    code = "not_owner"
    default_message = "You do not own this resource"


class ValidationError(ServiceError):
    """400: missing or malformed field beyond what Pydantic catches.

    Rating out of range, missing reason or notes, unknown target status.
    """

    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "invalid_payload"
    default_message = "Invalid request payload"


class NotFoundError(ServiceError):
    """404: referenced report, user or schedule does not exist."""

    status_code_default = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(ServiceError):
    """409: the resource is not in a state that allows the operation.

    Also used for uniqueness violations such as an already registered email.
    """

    status_code_default = status.HTTP_409_CONFLICT
    code = "invalid_state"
    default_message = "Operation not allowed in the current state"


class UnauthorizedError(ServiceError):
    """401: authentication missing, invalid or expired."""

    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Authentication required"


class NotificationError(Exception):
    """Delivery failure on a best-effort channel. Logged, never surfaced."""
