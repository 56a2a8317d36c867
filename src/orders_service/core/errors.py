"""Domain errors raised by the order lifecycle and their wire representation."""

from __future__ import annotations

from typing import Any

from orders_service.db.time import utcnow

# HTTP status codes
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_UNPROCESSABLE_ENTITY = 422
HTTP_INTERNAL_SERVER_ERROR = 500


class OrderServiceError(Exception):
    """Base class for caller-facing errors.

    Every subclass carries a symbolic ``code`` and an HTTP status so the API
    layer can render a uniform error body without knowing the subclass.
    """

    code: str = "INTERNAL_ERROR"
    status_code: int = HTTP_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class OrderNotFound(OrderServiceError):
    """The referenced order does not exist for the tenant."""

    code = "ORDER_NOT_FOUND"
    status_code = HTTP_NOT_FOUND


class OrderVersionConflict(OrderServiceError):
    """The caller's expected version is stale."""

    code = "ORDER_VERSION_CONFLICT"
    status_code = HTTP_CONFLICT


class OrderStatusInvalid(OrderServiceError):
    """The command is not valid for the order's current lifecycle state."""

    code = "ORDER_STATUS_INVALID"
    status_code = HTTP_BAD_REQUEST


class IdempotencyKeyConflict(OrderServiceError):
    """An idempotency key was reused with a different request body."""

    code = "IDEMPOTENCY_KEY_CONFLICT"
    status_code = HTTP_CONFLICT


class IdempotencyRequestInProgress(OrderServiceError):
    """A first request for the same key has not finished yet; retry later."""

    code = "IDEMPOTENCY_REQUEST_IN_PROGRESS"
    status_code = HTTP_CONFLICT


class InvalidCursor(OrderServiceError):
    """A pagination cursor was not issued by this service."""

    code = "INVALID_CURSOR"
    status_code = HTTP_BAD_REQUEST


class InvalidPrecondition(OrderServiceError):
    """The ``If-Match`` precondition could not be parsed as a version."""

    code = "INVALID_PRECONDITION"
    status_code = HTTP_BAD_REQUEST


class TenantRequired(OrderServiceError):
    """The request did not identify a tenant."""

    code = "TENANT_REQUIRED"
    status_code = HTTP_UNAUTHORIZED


def error_body(
    code: str,
    message: str,
    path: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the uniform ``{"error": {...}}`` payload returned by every endpoint."""
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "timestamp": utcnow().isoformat(),
        "path": path,
    }
    if details is not None:
        error["details"] = details
    return {"error": error}
