"""Alembic environment — async migration runner for the SlotSwap schema.

Invariants:
    - The URL comes from Settings (DATABASE_URL), the same source the app uses
    - Every ORM model is registered on Base.metadata before autogenerate runs

Design Decisions:
    - Settings over a second URL parser: postgresql:// -> postgresql+asyncpg:// lives
      in one place (config.py)
    - render_as_batch on SQLite so ALTERs in later revisions work on local databases
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

from slotswap.config import get_settings
from slotswap.db.base import Base
import slotswap.models  # noqa: F401  (registers users, slots, swap_requests)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return get_settings().database_url


def _configure(**kwargs) -> None:
    url = _database_url()
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL without a live connection."""
    _configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url(), poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(_run_sync)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
