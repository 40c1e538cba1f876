"""
Alembic Migration Environment
===============================

What:  Configures Alembic for the notes database.
Why:   Alembic needs to know how to connect to the database and which
       models to track for auto-generating migrations.
How:   Database.migrate() hands over its open connection through
       config.attributes; the `alembic` CLI falls back to an async engine
       built from Settings.database_url.
When:  Application startup, and by hand during development.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from apostrophe.config import Settings
from apostrophe.database import Base

# Import all models so Alembic can detect them for --autogenerate
from apostrophe.models.note import Note  # noqa: F401

config = context.config

# Programmatic runs have no .ini; the app's logging setup stays in charge
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

if not config.get_main_option("sqlalchemy.url"):
    # ConfigParser interpolates "%", which can appear in escaped paths
    config.set_main_option(
        "sqlalchemy.url", Settings().database_url.replace("%", "%%")
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    """
    Execute migrations against the provided connection.

    render_as_batch: SQLite cannot ALTER most things in place, so table
    changes go through Alembic's copy-and-move batch mode.
    """
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=True,
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
    connection = config.attributes.get("connection")
    if connection is not None:
        do_run_migrations(connection)
    else:
        asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
