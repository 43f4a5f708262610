"""
DLE Backend - Test Configuration (conftest.py)
================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment is pointed at an in-memory SQLite database and a temp
       storage root BEFORE any app module is imported, so the settings
       singleton and the engine are built from test values.

Fixture Hierarchy (all function-scoped):
    ├── db_engine:      in-memory aiosqlite engine with the full schema
    ├── db_session:     AsyncSession on that engine
    ├── temp_storage:   StorageService rooted in a tmp_path directory
    ├── mock_llm:       AsyncMock standing in for GeminiService
    ├── person / tag:   Seeded rows for tests that need a parent
    └── test_client:    httpx AsyncClient over ASGITransport, with the
                        request session bound to db_engine
"""

import os
import tempfile

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = ""
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_WEBHOOK_SECRET"] = ""
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="dle_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_db_session
from app.models.person import Person
from app.models.tag import Tag
from app.services.llm_base import LLMService
from app.services.storage_service import StorageService


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    One in-memory database per test.

    StaticPool keeps a single connection, so every session opened on this
    engine (the test's and the app's) sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def person(db_session) -> Person:
    row = Person(name="Asha", relationship="mother")
    db_session.add(row)
    await db_session.commit()
    return row


@pytest_asyncio.fixture
async def tag(db_session) -> Tag:
    row = Tag(name="family")
    db_session.add(row)
    await db_session.commit()
    return row


# ══════════════════════════════════════════════════════════════════════════
# Collaborator Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path) -> StorageService:
    """A fresh object store per test, cleaned up with tmp_path."""
    return StorageService(storage_root=str(tmp_path / "storage"))


@pytest.fixture
def mock_llm():
    """
    Gemini stand-in.

    Usage:
        mock_llm.transcribe_audio.return_value = "Bought milk for 40 rupees"
        mock_llm.complete.return_value = '{"summary": "Bought milk"}'
    """
    llm = AsyncMock(spec=LLMService)
    llm.transcribe_audio.return_value = ""
    llm.complete.return_value = "{}"
    llm.health_check.return_value = True
    return llm


@pytest.fixture
def sample_image_bytes():
    # Minimal JPEG: Start of Image (FFD8) + JFIF marker + End of Image (FFD9)
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the FastAPI app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    from app.main import app

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
