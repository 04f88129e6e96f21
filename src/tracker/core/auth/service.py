"""Identity service deriving principals from authoritative records."""

from datetime import timedelta
from typing import Annotated

import structlog
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.dependencies import DBSession
from tracker.config import settings
from tracker.core.auth.backend import create_access_token, decode_token, verify_password
from tracker.core.auth.schemas import ApiKeyPrincipal, Principal, TokenResponse
from tracker.core.errors import UnauthorizedError
from tracker.modules.users.models import User
from tracker.modules.users.repos import UserRepository


logger = structlog.get_logger()


class IdentityService:
    """Service for sign-in and principal resolution.

    The ``isInternal`` claim inside a token is only a cache: every
    authentication reloads the user and recomputes it from the client
    record, so a client that changes type takes effect immediately.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.user_repo = UserRepository(session)

    @staticmethod
    def principal_for(user: User) -> Principal:
        return Principal(
            user_id=user.id,
            tenant_id=user.tenant_id,
            client_id=user.client_id,
            is_internal=user.is_internal,
            role=user.role,
        )

    def issue_for_user(self, user: User) -> TokenResponse:
        """Issue a signed token for a loaded user."""
        principal = self.principal_for(user)
        expires = timedelta(days=settings.access_token_expire_days)
        return TokenResponse(
            access_token=create_access_token(principal, expires),
            expires_in=int(expires.total_seconds()),
            principal=principal,
        )

    async def _active_user(self, user_id: int, tenant_id: int) -> User:
        user = await self.user_repo.get_by_id(user_id, tenant_id)
        if user is None:
            raise UnauthorizedError("User not found", error_code="user_not_found")
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated", error_code="account_inactive")
        return user

    async def authenticate(self, token: str) -> Principal:
        """Resolve a bearer token to a current principal.

        Raises:
            UnauthorizedError: If the token is invalid or the user is
                missing, inactive or moved to another tenant
        """
        claims = decode_token(token)
        user = await self._active_user(claims.user_id, claims.tenant_id)

        principal = self.principal_for(user)
        if principal.is_internal != claims.is_internal:
            logger.info(
                "principal_internal_flag_changed",
                user_id=user.id,
                token_value=claims.is_internal,
                current_value=principal.is_internal,
            )
        return principal

    async def principal_for_api_key(self, caller: ApiKeyPrincipal) -> Principal:
        """The principal of the user owning an authenticated API key.

        Raises:
            UnauthorizedError: If the owner is gone or deactivated
        """
        return self.principal_for(await self._active_user(caller.user_id, caller.tenant_id))

    async def _user_for_sign_in(self, email: str, tenant_id: int | None) -> User | None:
        if tenant_id is not None:
            return await self.user_repo.get_by_email(email, tenant_id)

        matches = await self.user_repo.find_by_email(email)
        if len(matches) > 1:
            logger.info("sign_in_ambiguous", email=email)
            raise UnauthorizedError(
                "Email is registered in more than one tenant; include tenant_id",
                error_code="tenant_required",
            )
        return matches[0] if matches else None

    async def sign_in(
        self, email: str, password: str, tenant_id: int | None = None
    ) -> tuple[Principal, TokenResponse]:
        """Authenticate with email and password.

        Email is unique per tenant, so ``tenant_id`` is needed only when
        the same address is registered in several tenants.

        Raises:
            UnauthorizedError: If the credentials are invalid or the account
                inactive; ``tenant_required`` when the email is ambiguous
        """
        user = await self._user_for_sign_in(email, tenant_id)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("sign_in_failed", email=email)
            raise UnauthorizedError(
                "Invalid email or password",
                error_code="invalid_credentials",
            )
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated", error_code="account_inactive")

        token = self.issue_for_user(user)
        logger.info("sign_in_succeeded", user_id=user.id, tenant_id=user.tenant_id)
        return token.principal, token


def get_identity_service(db: DBSession) -> IdentityService:
    return IdentityService(db)


IdentitySvc = Annotated[IdentityService, Depends(get_identity_service)]
