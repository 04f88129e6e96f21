"""Alembic migration environment running against the async engine."""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from tracker.config import settings
from tracker.core.auth.models import ApiKey  # noqa: F401
from tracker.core.database import Base

# Import all models to ensure they're registered with Base.metadata
from tracker.modules.clients.models import Client  # noqa: F401
from tracker.modules.ideas.models import Idea, Team, TeamMembership  # noqa: F401
from tracker.modules.products.models import Product, ProductSequence  # noqa: F401
from tracker.modules.tenants.models import Tenant  # noqa: F401
from tracker.modules.users.models import User  # noqa: F401
from tracker.modules.workitems.models import (  # noqa: F401
    DevTask,
    Epic,
    Feature,
    Requirement,
    RequirementAmendment,
    Ticket,
)


config = context.config
config.set_main_option("sqlalchemy.url", settings.async_database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
