"""Pytest configuration and shared fixtures."""

import socket
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import urlparse

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.config import settings
from tracker.core.auth.schemas import Principal
from tracker.core.database import get_db
from tracker.main import create_app
from tests.factories import InternalPrincipalFactory, PrincipalFactory


def _database_reachable() -> bool:
    url = urlparse(str(settings.database_url))
    try:
        with socket.create_connection((url.hostname or "localhost", url.port or 5432), timeout=1):
            return True
    except OSError:
        return False


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests when PostgreSQL is not reachable."""
    if _database_reachable():
        return
    skip = pytest.mark.skip(reason="PostgreSQL not reachable")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def session() -> AsyncMock:
    """An AsyncSession stand-in; set ``execute.side_effect`` per test."""
    mock = AsyncMock(spec=AsyncSession)
    mock.add = MagicMock()
    return mock


@pytest.fixture
def principal() -> Principal:
    return PrincipalFactory.build(user_id=10, tenant_id=1, client_id=5)


@pytest.fixture
def internal_principal() -> Principal:
    return InternalPrincipalFactory.build(user_id=20, tenant_id=1)


@pytest.fixture
def app(session: AsyncMock):
    """Application with the database dependency replaced by a mock session."""
    application = create_app()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield session

    application.dependency_overrides[get_db] = override_get_db

    yield application

    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
