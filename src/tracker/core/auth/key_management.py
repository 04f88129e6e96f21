"""API key management for the owning user."""

from datetime import datetime
from typing import Annotated

import structlog
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.dependencies import DBSession
from tracker.core.auth.api_keys import clamp_rate_limit
from tracker.core.auth.backend import generate_api_key
from tracker.core.auth.models import ApiKey
from tracker.core.auth.schemas import Principal
from tracker.core.constants import API_KEY_DEFAULT_SCOPES
from tracker.core.errors import NotFoundError


logger = structlog.get_logger()


class ApiKeyManager:
    """Issues, lists, updates and revokes a user's own API keys.

    Every lookup is scoped to the caller's tenant and user; a key owned
    by someone else answers not-found.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def issue(
        self,
        tenant_id: int,
        user_id: int,
        name: str,
        scopes: list[str] | None = None,
        rate_limit: int | None = None,
        expires_at: datetime | None = None,
    ) -> tuple[ApiKey, str]:
        """Create and store a new key.

        Returns:
            Tuple of (stored key row, raw key). The raw key is not recoverable later.
        """
        raw_key, key_hash, prefix = generate_api_key()
        api_key = ApiKey(
            tenant_id=tenant_id,
            user_id=user_id,
            name=name.strip(),
            key_hash=key_hash,
            key_prefix=prefix,
            scopes=list(API_KEY_DEFAULT_SCOPES) if scopes is None else scopes,
            rate_limit=clamp_rate_limit(rate_limit),
            is_active=True,
            expires_at=expires_at,
        )
        self.session.add(api_key)
        await self.session.flush()
        await self.session.refresh(api_key)
        logger.info("api_key_issued", api_key_id=api_key.id, user_id=user_id, prefix=prefix)
        return api_key, raw_key

    async def list_for(self, principal: Principal) -> list[ApiKey]:
        """The caller's keys, newest first, revoked ones included."""
        result = await self.session.execute(
            select(ApiKey)
            .where(ApiKey.tenant_id == principal.tenant_id, ApiKey.user_id == principal.user_id)
            .order_by(ApiKey.created_at.desc())
        )
        return list(result.scalars().all())

    async def _owned(self, key_id: int, principal: Principal) -> ApiKey:
        result = await self.session.execute(
            select(ApiKey).where(
                ApiKey.id == key_id,
                ApiKey.tenant_id == principal.tenant_id,
                ApiKey.user_id == principal.user_id,
            )
        )
        api_key = result.scalar_one_or_none()
        if api_key is None:
            raise NotFoundError("API key not found", resource="api_key", resource_id=key_id)
        return api_key

    async def update(
        self,
        key_id: int,
        principal: Principal,
        name: str | None = None,
        scopes: list[str] | None = None,
        rate_limit: int | None = None,
    ) -> ApiKey:
        """Rename a key or change its scopes or rate limit.

        Raises:
            NotFoundError: If the caller does not own the key
        """
        api_key = await self._owned(key_id, principal)
        if name is not None and name.strip():
            api_key.name = name.strip()
        if scopes is not None:
            api_key.scopes = scopes
        if rate_limit is not None:
            api_key.rate_limit = clamp_rate_limit(rate_limit)
        await self.session.flush()
        await self.session.refresh(api_key)
        logger.info("api_key_updated", api_key_id=api_key.id, user_id=principal.user_id)
        return api_key

    async def revoke(self, key_id: int, principal: Principal) -> ApiKey:
        """Deactivate a key; it stops authenticating immediately.

        Raises:
            NotFoundError: If the caller does not own the key
        """
        api_key = await self._owned(key_id, principal)
        api_key.is_active = False
        await self.session.flush()
        logger.info("api_key_revoked", api_key_id=api_key.id, user_id=principal.user_id)
        return api_key


def get_api_key_manager(db: DBSession) -> ApiKeyManager:
    return ApiKeyManager(db)


ApiKeyMgr = Annotated[ApiKeyManager, Depends(get_api_key_manager)]
