"""Credential backend for passwords, signed tokens and API keys.

This module provides the pure credential utilities:
- Password hashing with bcrypt
- Token signing and verification (HS256)
- API key generation and hashing
"""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from tracker.config import settings
from tracker.core.auth.schemas import Principal
from tracker.core.constants import (
    API_KEY_DISPLAY_PREFIX_LENGTH,
    API_KEY_PREFIX,
    API_KEY_RANDOM_BYTES,
    BCRYPT_ROUNDS,
)
from tracker.core.errors import UnauthorizedError


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
)


# ============================================================
# Password Utilities
# ============================================================


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


# ============================================================
# Token Utilities
# ============================================================


def create_access_token(
    principal: Principal,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a token carrying the principal's claims.

    Args:
        principal: The principal to encode
        expires_delta: Optional custom lifetime; defaults to the configured days

    Returns:
        Encoded token
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(days=settings.access_token_expire_days))

    to_encode: dict[str, Any] = {
        "userId": principal.user_id,
        "tenantId": principal.tenant_id,
        "clientId": principal.client_id,
        "isInternal": principal.is_internal,
        "role": principal.role,
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> Principal:
    """Verify a token and return the principal it carries.

    Raises:
        UnauthorizedError: If the token is missing, malformed, badly
            signed or expired
    """
    if not token:
        raise UnauthorizedError("Missing authentication token", error_code="missing_token")

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise UnauthorizedError(
            "Invalid or expired token",
            error_code="invalid_token",
        ) from None

    try:
        return Principal(
            user_id=payload["userId"],
            tenant_id=payload["tenantId"],
            client_id=payload.get("clientId"),
            is_internal=bool(payload.get("isInternal", False)),
            role=payload.get("role") or "user",
        )
    except (KeyError, PydanticValidationError):
        raise UnauthorizedError(
            "Invalid token claims",
            error_code="invalid_token",
        ) from None


# ============================================================
# API Key Utilities
# ============================================================


def hash_api_key(raw_key: str) -> str:
    """SHA-256 hex digest used to store and look up API keys."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_api_key() -> tuple[str, str, str]:
    """Create a new API key.

    Returns:
        Tuple of (raw key, stored hash, display prefix). The raw key is
        shown once and never stored.
    """
    raw_key = API_KEY_PREFIX + secrets.token_hex(API_KEY_RANDOM_BYTES)
    return raw_key, hash_api_key(raw_key), raw_key[:API_KEY_DISPLAY_PREFIX_LENGTH]
