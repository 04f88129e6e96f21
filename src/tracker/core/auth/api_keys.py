"""API key authentication with per-key rate limiting."""

import asyncio
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.config import settings
from tracker.core.auth.backend import hash_api_key
from tracker.core.auth.models import ApiKey
from tracker.core.auth.schemas import ApiKeyPrincipal
from tracker.core.constants import (
    API_KEY_DEFAULT_RATE_LIMIT,
    API_KEY_MAX_RATE_LIMIT,
    API_KEY_PREFIX,
    SHA256_HEX_LENGTH,
)
from tracker.core.database import async_session_factory
from tracker.core.errors import (
    ForbiddenError,
    InvalidKeyError,
    KeyExpiredError,
    RateLimitError,
)
from tracker.core.rate_limit import RateLimiter, RateLimitResult, get_rate_limiter


logger = structlog.get_logger()

_KEY_FORMAT = re.compile(rf"^{API_KEY_PREFIX}[0-9a-f]{{{SHA256_HEX_LENGTH}}}$")

TouchCallback = Callable[[int], Awaitable[None]]

# Strong references so pending background updates are not garbage collected
_background_tasks: set[asyncio.Task[Any]] = set()


def clamp_rate_limit(rate_limit: int | None) -> int:
    """Bound a requested per-minute limit to 1..1000, defaulting to 100."""
    if rate_limit is None:
        return API_KEY_DEFAULT_RATE_LIMIT
    return max(1, min(API_KEY_MAX_RATE_LIMIT, rate_limit))


def is_well_formed_key(raw_key: str) -> bool:
    return bool(_KEY_FORMAT.match(raw_key))


async def touch_last_used(api_key_id: int) -> None:
    """Stamp ``last_used_at`` in a session of its own."""
    async with async_session_factory() as session:
        await session.execute(
            update(ApiKey)
            .where(ApiKey.id == api_key_id)
            .values(last_used_at=datetime.now(UTC))
        )
        await session.commit()


def _log_touch_failure(task: asyncio.Task[Any]) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(
            "api_key_touch_failed",
            error_type=type(exc).__name__,
            error=str(exc),
        )


class ApiKeyAuthenticator:
    """Authenticates raw API keys and applies the key's rate limit.

    Checks run in order: format, lookup by hash, active flag, expiry,
    then the rate limiter. Only a request that passes all of them
    schedules the background ``last_used_at`` update.
    """

    def __init__(
        self,
        session: AsyncSession,
        limiter: RateLimiter | None = None,
        touch: TouchCallback | None = None,
        window: int | None = None,
    ) -> None:
        self.session = session
        self.limiter = limiter or get_rate_limiter()
        self.touch = touch or touch_last_used
        self.window = window or settings.api_key_rate_window

    async def authenticate(self, raw_key: str) -> tuple[ApiKeyPrincipal, RateLimitResult]:
        """Resolve a raw key to a principal.

        Raises:
            InvalidKeyError: If the key is malformed, unknown or revoked
            KeyExpiredError: If the key is past its expiry
            RateLimitError: If the key has used up its window
        """
        if not is_well_formed_key(raw_key):
            raise InvalidKeyError(details={"reason": "malformed"})

        result = await self.session.execute(
            select(ApiKey).where(ApiKey.key_hash == hash_api_key(raw_key))
        )
        api_key = result.scalar_one_or_none()
        if api_key is None or not api_key.is_active:
            raise InvalidKeyError()

        if api_key.expires_at is not None and api_key.expires_at < datetime.now(UTC):
            raise KeyExpiredError(details={"expired_at": api_key.expires_at.isoformat()})

        limit = clamp_rate_limit(api_key.rate_limit)
        decision = await self.limiter.hit(str(api_key.id), limit, self.window)
        if not decision.allowed:
            logger.warning(
                "api_key_rate_limited",
                api_key_id=api_key.id,
                limit=limit,
                retry_after=decision.retry_after,
            )
            raise RateLimitError(
                f"Rate limit exceeded. Limit: {limit} requests per minute",
                retry_after=decision.retry_after or 1,
                limit=decision.limit,
                reset_time=decision.reset_time,
            )

        self._schedule_touch(api_key.id)

        principal = ApiKeyPrincipal(
            api_key_id=api_key.id,
            user_id=api_key.user_id,
            tenant_id=api_key.tenant_id,
            scopes=list(api_key.scopes or []),
            rate_limit=limit,
        )
        return principal, decision

    def _schedule_touch(self, api_key_id: int) -> None:
        task = asyncio.create_task(self.touch(api_key_id))
        _background_tasks.add(task)
        task.add_done_callback(_log_touch_failure)


def require_scope(principal: ApiKeyPrincipal, *scopes: str) -> ApiKeyPrincipal:
    """Ensure the key holds at least one of ``scopes``.

    Raises:
        ForbiddenError: If none of the scopes is granted
    """
    if not any(scope in principal.scopes for scope in scopes):
        raise ForbiddenError(
            "Insufficient scope",
            error_code="insufficient_scope",
            details={"required": list(scopes), "granted": principal.scopes},
        )
    return principal
