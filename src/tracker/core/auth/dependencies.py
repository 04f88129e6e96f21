"""FastAPI dependencies for authentication.

This module provides FastAPI dependency injection functions for:
- Resolving the bearer token to a current principal
- Restricting routes to internal principals
- Authenticating API keys and reporting their rate limit
"""

from typing import Annotated

from fastapi import Depends, Header, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tracker.api.dependencies import DBSession
from tracker.core.auth.api_keys import ApiKeyAuthenticator
from tracker.core.auth.schemas import ApiKeyPrincipal, Principal
from tracker.core.auth.scoping import ensure_internal
from tracker.core.auth.service import IdentitySvc
from tracker.core.errors import InvalidKeyError, UnauthorizedError
from tracker.core.rate_limit import RateLimiter, get_rate_limiter, rate_limit_headers


# HTTP Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    identity: IdentitySvc,
) -> Principal:
    """Resolve the Authorization header to a principal.

    Raises:
        UnauthorizedError: If the token is missing or invalid
    """
    if not credentials:
        raise UnauthorizedError(
            "Missing authentication token",
            error_code="missing_token",
        )
    return await identity.authenticate(credentials.credentials)


async def get_internal_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Get the current principal, ensuring it is internal."""
    return ensure_internal(principal)


async def get_api_key_principal(
    response: Response,
    db: DBSession,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> ApiKeyPrincipal:
    """Authenticate the ``X-API-Key`` header and attach rate limit headers.

    Raises:
        InvalidKeyError: If the header is missing or the key is invalid
        KeyExpiredError: If the key has expired
        RateLimitError: If the key is over its limit
    """
    if not x_api_key:
        raise InvalidKeyError(
            "API key required. Include X-API-Key header.",
            error_code="missing_api_key",
        )

    principal, decision = await ApiKeyAuthenticator(db, limiter).authenticate(x_api_key)
    response.headers.update(rate_limit_headers(decision))
    return principal


# Type aliases for cleaner dependency injection
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
InternalPrincipal = Annotated[Principal, Depends(get_internal_principal)]
ApiKeyCaller = Annotated[ApiKeyPrincipal, Depends(get_api_key_principal)]
