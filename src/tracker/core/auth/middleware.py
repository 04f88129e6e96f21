"""Request tracing and tenant context middleware.

This module provides middleware for:
- Injecting tenant context into requests
- Request tracing with unique IDs
"""

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from tracker.core.auth.backend import decode_token
from tracker.core.errors import UnauthorizedError


if TYPE_CHECKING:
    from starlette.types import ASGIApp


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Middleware that binds tenant context for logging.

    Reads tenant_id and user_id from a bearer token (if present and
    valid) into request.state and the structlog context. It never
    rejects a request; authentication is enforced by the route
    dependencies.

    Attributes:
        exclude_paths: Paths that don't carry tenant context
    """

    def __init__(
        self,
        app: "ASGIApp",
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
            "/api/v1/auth/signin",
        ]

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            try:
                principal = decode_token(auth_header.split(" ", 1)[1])
            except UnauthorizedError:
                principal = None

            if principal is not None:
                request.state.tenant_id = principal.tenant_id
                request.state.user_id = principal.user_id
                structlog.contextvars.bind_contextvars(
                    tenant_id=principal.tenant_id,
                    user_id=principal.user_id,
                )

        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware that adds a unique request ID to each request.

    The request ID is added to:
    - request.state.request_id
    - Response header X-Request-ID
    - Structlog context
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        request.state.trace_id = request_id  # Alias for error handler

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "tenant_id", "user_id")

        response.headers["X-Request-ID"] = request_id
        return response
