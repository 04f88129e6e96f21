"""Authentication schemas for principals, tokens and API keys."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tracker.core.constants import API_KEY_DEFAULT_SCOPES, API_KEY_MAX_RATE_LIMIT

from tracker.modules.users.models import Role


class Principal(BaseModel):
    """The authenticated caller as derived from a verified credential.

    Attributes:
        user_id: The user's ID
        tenant_id: The tenant every query is scoped to
        client_id: Owning client, or None for tenant staff
        is_internal: Whether the caller belongs to the tenant's own staff
        role: One of :class:`~tracker.modules.users.models.Role`
    """

    user_id: int
    tenant_id: int
    client_id: int | None = None
    is_internal: bool = False
    role: str = Role.USER.value

    model_config = ConfigDict(frozen=True)


class ApiKeyPrincipal(BaseModel):
    """Caller authenticated with an API key."""

    api_key_id: int
    user_id: int
    tenant_id: int
    scopes: list[str] = Field(default_factory=list)
    rate_limit: int


class SignInRequest(BaseModel):
    """Schema for email/password sign-in."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    tenant_id: int | None = Field(
        default=None,
        description="Needed only when the email is registered in several tenants",
    )


class TokenResponse(BaseModel):
    """Schema for a freshly issued access token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    principal: Principal


class ApiKeyCreate(BaseModel):
    """Schema for issuing an API key."""

    name: str = Field(..., min_length=1, max_length=255, pattern=r"\S")
    scopes: list[str] = Field(default_factory=lambda: list(API_KEY_DEFAULT_SCOPES))
    rate_limit: int | None = Field(None, ge=1, le=API_KEY_MAX_RATE_LIMIT)
    expires_at: datetime | None = None


class ApiKeyUpdate(BaseModel):
    """Schema for changing a key; omitted fields are left alone."""

    name: str | None = Field(None, max_length=255)
    scopes: list[str] | None = None
    # Out-of-range values are clamped rather than rejected
    rate_limit: int | None = None


class ApiKeyResponse(BaseModel):
    """An API key as shown to its owner; never includes the key itself."""

    id: int
    name: str
    key_prefix: str
    scopes: list[str]
    rate_limit: int
    is_active: bool
    last_used_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreatedResponse(BaseModel):
    """Returned once on creation; ``key`` cannot be retrieved again."""

    api_key: ApiKeyResponse
    key: str
