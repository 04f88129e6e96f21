"""Identity and scoping: tokens, principals, predicates and API keys."""

from tracker.core.auth.api_keys import ApiKeyAuthenticator, require_scope
from tracker.core.auth.backend import (
    create_access_token,
    decode_token,
    generate_api_key,
    hash_api_key,
    hash_password,
    verify_password,
)
from tracker.core.auth.dependencies import (
    ApiKeyCaller,
    CurrentPrincipal,
    InternalPrincipal,
)
from tracker.core.auth.middleware import RequestIdMiddleware, TenantContextMiddleware
from tracker.core.auth.schemas import ApiKeyPrincipal, Principal, TokenResponse
from tracker.core.auth.scoping import (
    can_access_ticket,
    ensure_administrator,
    ensure_internal,
    ensure_ticket_access,
    is_administrator,
    require_client_admin,
    require_internal,
)
from tracker.core.auth.service import IdentityService


__all__ = [
    "ApiKeyAuthenticator",
    "ApiKeyCaller",
    "ApiKeyPrincipal",
    "CurrentPrincipal",
    "IdentityService",
    "InternalPrincipal",
    "Principal",
    "RequestIdMiddleware",
    "TenantContextMiddleware",
    "TokenResponse",
    "can_access_ticket",
    "create_access_token",
    "decode_token",
    "ensure_administrator",
    "ensure_internal",
    "ensure_ticket_access",
    "generate_api_key",
    "hash_api_key",
    "hash_password",
    "is_administrator",
    "require_client_admin",
    "require_internal",
    "require_scope",
    "verify_password",
]
