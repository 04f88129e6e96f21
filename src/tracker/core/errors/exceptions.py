"""Domain exceptions for the application.

These exceptions represent business-logic errors and are automatically
converted to RFC 7807 Problem Details responses by the exception handlers.
None of them is retried internally; the caller decides whether to resubmit.
"""

from collections.abc import Iterable
from typing import Any


class AppException(Exception):
    """Base exception for all application errors.

    All domain exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        status_code: HTTP status code for the response
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Raised when a requested resource is not found.

    Also used for cross-tenant lookups so that callers cannot learn
    for the existence of another tenant's records.

    Example:
        raise NotFoundError("Idea not found", resource="idea", resource_id="42")
    """

    message = "Resource not found"
    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | int | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        super().__init__(message=message, details=details, **kwargs)


class ConflictError(AppException):
    """Raised when there's a conflict with existing data.

    Example:
        raise ConflictError("Status changed concurrently")
    """

    message = "Resource conflict"
    error_code = "conflict"
    status_code = 409


class ValidationError(AppException):
    """Raised when request data fails validation.

    Example:
        raise ValidationError(
            "Invalid input data",
            errors=[{"field": "resolution", "message": "Unknown resolution"}]
        )
    """

    message = "Validation error"
    error_code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class UnauthorizedError(AppException):
    """Raised when authentication is required but not provided or invalid.

    Example:
        raise UnauthorizedError("Invalid access token")
    """

    message = "Authentication required"
    error_code = "unauthorized"
    status_code = 401


class ForbiddenError(AppException):
    """Raised when a principal is authenticated but not allowed to act.

    Example:
        raise ForbiddenError(
            "Internal access required",
            details={"required": "internal"}
        )
    """

    message = "Access forbidden"
    error_code = "forbidden"
    status_code = 403


class IllegalTransitionError(AppException):
    """Raised when a workflow rule rejects a status change.

    Carries the offending statuses and the legal next states so the
    caller can render guidance.
    """

    message = "Invalid status transition"
    error_code = "illegal_transition"
    status_code = 409

    def __init__(
        self,
        entity_kind: str,
        current_status: str,
        requested_status: str,
        allowed: Iterable[str],
        message: str | None = None,
    ) -> None:
        self.entity_kind = entity_kind
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = sorted(allowed)
        super().__init__(
            message=message
            or f"Cannot move {entity_kind} from '{current_status}' to '{requested_status}'",
            details={
                "entity_kind": entity_kind,
                "current_status": current_status,
                "requested_status": requested_status,
                "valid_transitions": self.allowed,
            },
        )


class InvalidKeyError(UnauthorizedError):
    """Raised when an API key is malformed, unknown or revoked."""

    message = "Invalid API key"
    error_code = "invalid_api_key"


class KeyExpiredError(UnauthorizedError):
    """Raised when an API key is past its expiry."""

    message = "API key has expired"
    error_code = "api_key_expired"


class RateLimitError(AppException):
    """Raised when rate limit is exceeded.

    Example:
        raise RateLimitError(retry_after=42, limit=5, reset_time=1700000000)
    """

    message = "Rate limit exceeded"
    error_code = "rate_limit_exceeded"
    status_code = 429

    def __init__(
        self,
        message: str | None = None,
        retry_after: int = 0,
        limit: int | None = None,
        reset_time: int | None = None,
        **kwargs: Any,
    ) -> None:
        self.retry_after = retry_after
        self.limit = limit
        self.reset_time = reset_time
        details = kwargs.pop("details", {})
        details["retry_after"] = retry_after
        super().__init__(message=message, details=details, **kwargs)


class ProductNotFoundError(NotFoundError):
    """Raised when an issue key is requested for an unknown product."""

    message = "Product not found"
    error_code = "product_not_found"


class ProductMissingCodeError(AppException):
    """Raised when a product has no code to prefix issue keys with."""

    message = "Product has no code defined. Set a product code first."
    error_code = "product_missing_code"
    status_code = 422


class ServiceUnavailableError(AppException):
    """Raised when a required service is unavailable.

    Example:
        raise ServiceUnavailableError("Database connection failed")
    """

    message = "Service temporarily unavailable"
    error_code = "service_unavailable"
    status_code = 503


class StoreUnavailableError(ServiceUnavailableError):
    """Raised when the relational store cannot complete an operation."""

    message = "Data store temporarily unavailable"
    error_code = "store_unavailable"
