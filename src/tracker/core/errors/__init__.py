"""Error handling module with RFC 7807 Problem Details."""

from tracker.core.errors.exceptions import (
    AppException,
    ConflictError,
    ForbiddenError,
    IllegalTransitionError,
    InvalidKeyError,
    KeyExpiredError,
    NotFoundError,
    ProductMissingCodeError,
    ProductNotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from tracker.core.errors.handlers import (
    FieldError,
    ProblemDetail,
    register_exception_handlers,
)


__all__ = [
    # Exceptions
    "AppException",
    "ConflictError",
    # Handlers
    "FieldError",
    "ForbiddenError",
    "IllegalTransitionError",
    "InvalidKeyError",
    "KeyExpiredError",
    "NotFoundError",
    "ProblemDetail",
    "ProductMissingCodeError",
    "ProductNotFoundError",
    "RateLimitError",
    "ServiceUnavailableError",
    "StoreUnavailableError",
    "UnauthorizedError",
    "ValidationError",
    "register_exception_handlers",
]
