"""Fixtures for tests that run against PostgreSQL."""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tracker.config import settings
from tracker.core.auth.models import ApiKey  # noqa: F401
from tracker.core.database import Base

# Import all models to ensure they're registered with Base.metadata
from tracker.modules.clients.models import Client  # noqa: F401
from tracker.modules.ideas.models import Idea, Team, TeamMembership  # noqa: F401
from tracker.modules.products.models import Product
from tracker.modules.tenants.models import Tenant
from tracker.modules.users.models import User  # noqa: F401
from tracker.modules.workitems.models import Requirement  # noqa: F401


# Test database URL - same server, "_test" database
TEST_DATABASE_URL = settings.async_database_url.rsplit("/", 1)[0] + "/tracker_test"


@pytest.fixture
async def engine():
    """Create test database engine with a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Factory for independent sessions, one per simulated request."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def tenant(db: AsyncSession) -> Tenant:
    tenant = Tenant(name="Acme Software")
    db.add(tenant)
    await db.commit()
    return tenant


@pytest.fixture
async def product(db: AsyncSession, tenant: Tenant) -> Product:
    product = Product(tenant_id=tenant.id, name="HR Manager", code="HRM")
    db.add(product)
    await db.commit()
    return product
