import asyncio

from logging.config import fileConfig

from sqlalchemy.engine import Connection

from alembic import context
from imagegen.common.model import MappedBase
from imagegen.database.db import SQLALCHEMY_DATABASE_URL, create_async_engine_and_session

# Import models so their tables are registered on the metadata
import imagegen.src.billing.domain.models  # noqa: F401

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = MappedBase.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Emits SQL to the script output instead of executing it.
    """
    context.configure(
        url=str(SQLALCHEMY_DATABASE_URL),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={'paramstyle': 'named'},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations with the application's async engine"""
    engine, _ = create_async_engine_and_session(SQLALCHEMY_DATABASE_URL)

    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await engine.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
