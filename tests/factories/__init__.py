"""Test factories."""

from tests.factories.principal import (
    ApiKeyPrincipalFactory,
    InternalPrincipalFactory,
    PrincipalFactory,
)


__all__ = [
    "ApiKeyPrincipalFactory",
    "InternalPrincipalFactory",
    "PrincipalFactory",
]
