"""Authentication API routes.

Provides endpoints for:
- Email/password sign-in
- The current principal
- API key management for the owning user
- API key introspection for machine callers
"""

from fastapi import APIRouter, status
from pydantic import BaseModel

from tracker.core.auth.dependencies import ApiKeyCaller, CurrentPrincipal
from tracker.core.auth.key_management import ApiKeyMgr
from tracker.core.auth.schemas import (
    ApiKeyCreate,
    ApiKeyCreatedResponse,
    ApiKeyResponse,
    ApiKeyUpdate,
    Principal,
    SignInRequest,
    TokenResponse,
)
from tracker.core.auth.service import IdentitySvc


router = APIRouter(prefix="/auth", tags=["auth"])

api_keys_router = APIRouter(prefix="/api-keys", tags=["api-keys"])

external_router = APIRouter(prefix="/external", tags=["external"])


class WhoAmIResponse(BaseModel):
    api_key_id: int
    user_id: int
    tenant_id: int
    scopes: list[str]
    rate_limit: int


@router.post(
    "/signin",
    response_model=TokenResponse,
    summary="Sign in with email and password",
    description="Verifies the credentials and returns a signed access token.",
)
async def sign_in(data: SignInRequest, identity: IdentitySvc) -> TokenResponse:
    """Sign in with email and password."""
    _principal, token = await identity.sign_in(data.email, data.password, data.tenant_id)
    return token


@router.get(
    "/me",
    response_model=Principal,
    summary="Get current principal",
    description="Returns the principal derived from the bearer token.",
)
async def get_me(principal: CurrentPrincipal) -> Principal:
    """Get the current principal."""
    return principal


@external_router.get(
    "/whoami",
    response_model=WhoAmIResponse,
    summary="Describe the calling API key",
    description="Authenticates the X-API-Key header; responses carry rate limit headers.",
)
async def whoami(caller: ApiKeyCaller) -> WhoAmIResponse:
    """Describe the calling API key."""
    return WhoAmIResponse(**caller.model_dump())


@api_keys_router.post(
    "",
    response_model=ApiKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an API key",
    description="The raw key is returned in this response only.",
)
async def create_api_key(
    data: ApiKeyCreate,
    principal: CurrentPrincipal,
    keys: ApiKeyMgr,
) -> ApiKeyCreatedResponse:
    api_key, raw_key = await keys.issue(
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        name=data.name,
        scopes=data.scopes,
        rate_limit=data.rate_limit,
        expires_at=data.expires_at,
    )
    return ApiKeyCreatedResponse(api_key=ApiKeyResponse.model_validate(api_key), key=raw_key)


@api_keys_router.get(
    "",
    response_model=list[ApiKeyResponse],
    summary="List my API keys",
)
async def list_api_keys(principal: CurrentPrincipal, keys: ApiKeyMgr) -> list[ApiKeyResponse]:
    return [ApiKeyResponse.model_validate(k) for k in await keys.list_for(principal)]


@api_keys_router.patch(
    "/{key_id}",
    response_model=ApiKeyResponse,
    summary="Update an API key",
    description="Rate limits outside 1..1000 are clamped.",
)
async def update_api_key(
    key_id: int,
    data: ApiKeyUpdate,
    principal: CurrentPrincipal,
    keys: ApiKeyMgr,
) -> ApiKeyResponse:
    api_key = await keys.update(
        key_id, principal, name=data.name, scopes=data.scopes, rate_limit=data.rate_limit
    )
    return ApiKeyResponse.model_validate(api_key)


@api_keys_router.delete(
    "/{key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke an API key",
)
async def revoke_api_key(key_id: int, principal: CurrentPrincipal, keys: ApiKeyMgr) -> None:
    await keys.revoke(key_id, principal)
