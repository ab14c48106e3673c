"""Pytest configuration and fixtures."""

import os
import sys
from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path
from types import SimpleNamespace

# Disable rate limiting and startup table creation in tests
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities.identity import Identity
from domain.services.game_service import GameService
from domain.services.profile_service import ProfileService
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.cache.local_cache import InMemoryLocalCache
from infrastructure.database.models import Base
from infrastructure.database.profile_store import SQLAlchemyRemoteProfileStore

# Test database URL (SQLite in memory, shared across one engine's connections)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_IDENTITY_ID = "identity-test-user"
TEST_TODAY = date(2024, 6, 1)


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory bound to the test engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def test_identity() -> Identity:
    """Signed-in identity with fixed ID."""
    return Identity(
        id=TEST_IDENTITY_ID,
        email="test@example.com",
        name="Test User",
    )


@pytest.fixture
def auth_provider() -> JWTAuthProvider:
    """Create auth provider for testing."""
    return JWTAuthProvider(
        secret_key="test-secret-key",
        algorithm="HS256",
        expire_minutes=30,
    )


@pytest.fixture
def auth_headers(auth_provider: JWTAuthProvider, test_identity: Identity) -> dict[str, str]:
    """Create authorization headers for the test identity."""
    return {"Authorization": f"Bearer {auth_provider.create_token(test_identity)}"}


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (no auth)."""
    from main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def api_services(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[SimpleNamespace, None]:
    """Profile and game services backed by the test database."""
    store = SQLAlchemyRemoteProfileStore(session_factory)
    profiles = ProfileService(store=store, cache=InMemoryLocalCache(), today=lambda: TEST_TODAY)
    games = GameService(profiles=profiles, store=store)

    yield SimpleNamespace(store=store, profiles=profiles, games=games)

    await games.close_all()
    await profiles.drain()


@pytest.fixture
async def authenticated_client(
    api_services: SimpleNamespace,
    auth_provider: JWTAuthProvider,
    auth_headers: dict[str, str],
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create authenticated test client with database and auth overrides.

    This client:
    - Sends a bearer token for the test identity on every request
    - Verifies tokens with the test auth provider
    - Uses services backed by the in-memory SQLite database
    """
    from api.dependencies.auth import get_auth_provider
    from api.v1.dependencies import get_game_service, get_profile_service, get_profile_store
    from main import create_app

    app = create_app()

    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_profile_store] = lambda: api_services.store
    app.dependency_overrides[get_profile_service] = lambda: api_services.profiles
    app.dependency_overrides[get_game_service] = lambda: api_services.games

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=auth_headers
    ) as c:
        yield c

    app.dependency_overrides.clear()
