"""
Apostrophe Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (settings pointed at a temp
       directory, mocked DB sessions, a real SQLite file, API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
       Fake provider transports live in provider_mocks.py.

Fixture Hierarchy (all function-scoped):
    ├── clean_env (autouse): no provider keys leak in from the developer's shell
    ├── settings: Settings rooted in tmp_path; Ollama pointed at a closed port
    ├── resolver: CredentialResolver for those settings
    ├── mock_db_session: Mock database session (no real DB needed)
    ├── database: Real SQLite database in tmp_path migrated to head
    ├── app: create_app(settings) sharing that SQLite file
    └── test_client: HTTPX AsyncClient bound to the app via ASGITransport
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from apostrophe.config import Settings
from apostrophe.database import Database
from apostrophe.services.credentials import CredentialResolver

# Port 1 is reserved (tcpmux) and closed on any sane test machine
CLOSED_PORT_ENDPOINT = "http://127.0.0.1:1/api/generate"


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Tests decide explicitly which provider keys exist."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("HUGGINGFACE_API_KEY", raising=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}",
        config_dir=tmp_path / "config",
        images_root=tmp_path / "images",
        ollama_endpoint=CLOSED_PORT_ENDPOINT,
        log_level="WARNING",
    )


@pytest.fixture
def resolver(settings) -> CredentialResolver:
    return CredentialResolver(settings)


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_get_note(mock_db_session):
            mock_db_session.execute.return_value.scalar_one_or_none.return_value = note
            result = await note_service.get_note(mock_db_session, "note-1")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.get = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.migrate()
    yield db
    await db.dispose()


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def app(settings, database):
    from apostrophe.main import create_app

    application = create_app(settings)
    yield application
    await application.state.database.dispose()


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient talking to the app through ASGITransport.

    ASGITransport does not run the lifespan, so the notes table comes from
    the `database` fixture, which shares the same SQLite file.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
