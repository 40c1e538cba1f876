"""
Apostrophe Backend — Database Session Management
==================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   A Database object built from Settings owns the engine and session
       factory; a session dependency auto-commits on success and
       auto-rolls-back on error.
Who:   create_app() builds one Database and stores it on app.state; route
       handlers receive sessions via FastAPI's dependency injection.
When:  Engine is created with the app; sessions are created per-request.

Architecture Decision:
    Async SQLAlchemy on the aiosqlite driver. The notes database is a single
    local file, so there is no pool tuning; SQLite serialises writers and a
    single user rarely has more than one request in flight.

    Schema changes are Alembic revisions under apostrophe/migrations and are
    applied to head at startup, on the same connection the app uses. An
    existing notes.db from an older install keeps its rows.
"""

import logging
from pathlib import Path
from typing import AsyncGenerator

from alembic import command
from alembic.config import Config
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from apostrophe.config import Settings

logger = logging.getLogger(__name__)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


class Database:
    """
    Owns the async engine and session factory for one application instance.

    Tests build their own Database against a temporary file, so nothing here
    is module-level state.
    """

    def __init__(self, settings: Settings):
        self.url = settings.database_url
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            # Echo SQL queries in DEBUG mode for development visibility
            echo=settings.log_level == "DEBUG",
        )
        # expire_on_commit=False: attributes stay readable after commit
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def ensure_directory(self) -> None:
        """Create the parent directory of a file-backed SQLite database."""
        database = make_url(self.url).database
        if database and database != ":memory:":
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    async def migrate(self) -> None:
        """Upgrade the schema to the latest revision. Rows are kept."""
        self.ensure_directory()
        async with self.engine.begin() as conn:
            await conn.run_sync(_upgrade_to_head)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Close pooled connections. Called during application shutdown."""
        await self.engine.dispose()


MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def alembic_config() -> Config:
    """Alembic config pointing at the packaged revisions; no alembic.ini needed."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    return config


def _upgrade_to_head(sync_conn) -> None:
    config = alembic_config()
    # env.py runs on this connection instead of opening its own engine
    config.attributes["connection"] = sync_conn
    command.upgrade(config, "head")


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the app's Database
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler

    Example usage in a route:
        @router.get("/notes")
        async def list_notes(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
