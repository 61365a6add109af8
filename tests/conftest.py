"""Shared test fixtures and configuration."""
import pytest
import os
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SESSION_BACKEND", "memory")
os.environ.setdefault("DIRECTORY_BACKEND", "yaml")

from app.main import app
from app.db.models import Base
from app.core.config import Settings
from app.core.dependencies import get_directory, get_session_store
from app.services.directory.in_memory_directory import InMemoryDirectoryProvider
from app.services.ivr.call_flow import CallFlow
from app.services.session.base import SessionStore, SessionStoreError
from app.services.session.in_memory_store import InMemorySessionStore


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

HONG_KONG = ZoneInfo("Asia/Hong_Kong")


class FailingSessionStore(SessionStore):
    """Session store whose every command fails, like an unreachable Redis."""

    async def get(self, key: str) -> Optional[str]:
        raise SessionStoreError("store unreachable")

    async def set(self, key: str, value: str) -> None:
        raise SessionStoreError("store unreachable")

    async def increment(self, key: str) -> int:
        raise SessionStoreError("store unreachable")


@pytest.fixture
def failing_store():
    """Session store that is unreachable."""
    return FailingSessionStore()


@pytest.fixture
def test_directory_path():
    """Return path to test directory YAML file."""
    return Path(__file__).parent / "fixtures" / "test_directory.yaml"


@pytest.fixture
def test_settings(test_directory_path):
    """Override settings for testing."""
    return Settings(
        twilio_auth_token="test-token",
        validate_twilio_signature=False,
        database_url=TEST_DATABASE_URL,
        session_backend="memory",
        directory_backend="yaml",
        directory_file=str(test_directory_path),
        bank_name="Test Bank",
        bank_name_zh="測試銀行",
        max_pin_attempts=3,
        transfer_account_limit=5,
        support_queue="support",
        hold_music_url="https://example.com/hold.mp3",
        max_hold_loops=2,
        agent_sip_uri="sip:agent@example.com",
    )


@pytest.fixture
def session_store():
    """Fresh in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def test_directory(test_directory_path):
    """Directory provider with test data."""
    return InMemoryDirectoryProvider(directory_file=str(test_directory_path))


@pytest.fixture
def morning_clock():
    """Clock fixed at 09:30 Hong Kong time."""
    return lambda: datetime(2026, 10, 19, 9, 30, tzinfo=HONG_KONG)


@pytest.fixture
def call_flow(session_store, test_directory, test_settings, morning_clock):
    """Call flow wired to in-memory collaborators."""
    return CallFlow(
        session_store, test_directory, settings=test_settings, clock=morning_clock
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def test_client(session_store, test_directory, test_settings, monkeypatch):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_directory] = lambda: test_directory

    # Override settings in modules that use it
    monkeypatch.setattr("app.core.dependencies.settings", test_settings)
    monkeypatch.setattr("app.core.security.settings", test_settings)

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()
