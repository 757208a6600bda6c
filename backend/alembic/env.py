"""Alembic migration environment.

Runs migrations through the async engine, reading the database URL from
``bhamail.core.config.settings``.
"""

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

# All models must be imported for autogenerate to see their tables
from bhamail.models import Account, Base, User, UserSession  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """Return the configured database URL with an async driver."""
    from bhamail.core.config import settings

    url = settings.DATABASE_URL
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def check_production_safety() -> None:
    """Refuse to migrate a production database without explicit confirmation.

    Set ``CONFIRM_PRODUCTION_MIGRATION=true`` alongside
    ``ENVIRONMENT=production`` to proceed.

    Raises:
        RuntimeError: Production environment without confirmation.
    """
    if os.getenv("ENVIRONMENT", "").lower() != "production":
        return
    if os.getenv("CONFIRM_PRODUCTION_MIGRATION", "").lower() != "true":
        raise RuntimeError(
            "Production migration requires CONFIRM_PRODUCTION_MIGRATION=true."
        )


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without a database connection."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    check_production_safety()
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
