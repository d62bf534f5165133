from typing import AsyncGenerator, Callable, Optional
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic_ai.models.test import TestModel
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.pool import StaticPool

# Use in-memory SQLite for testing; the root conftest already exported DATABASE_URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_USER_ID = "user-practitioner-1"
OTHER_USER_ID = "user-practitioner-2"


@pytest_asyncio.fixture
async def test_engine():
    """Create a fresh in-memory database with every table and the default zones."""
    from omnicrm.core.database import create_all
    from omnicrm.server.services.momentum import seed_default_zones

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)
    await seed_default_zones(sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(name="session")
async def session_fixture(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new session for each test."""
    async_session_maker = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session_maker() as session:  # type: ignore[attr-defined]
        yield session


@pytest.fixture
def repos(session: AsyncSession):
    from omnicrm.core.database.repositories.bundle import build_sql_repos_from_session

    return build_sql_repos_from_session(session=session)


@pytest.fixture
def ai_processor():
    """Inbox processor backed by pydantic-ai's TestModel; tests may replace it."""
    from omnicrm.integrations.ai import InboxAIProcessor

    return InboxAIProcessor(model=TestModel())


@pytest.fixture
def google_handler() -> dict:
    """Mutable holder for the function answering Google HTTP calls in a test."""

    def _not_mocked(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"message": f"unexpected call {request.url}"}})

    return {"handler": _not_mocked, "requests": []}


@pytest.fixture
def google_http_client(google_handler: dict) -> httpx.AsyncClient:
    def dispatch(request: httpx.Request) -> httpx.Response:
        google_handler["requests"].append(request)
        return google_handler["handler"](request)

    return httpx.AsyncClient(transport=httpx.MockTransport(dispatch))


@pytest.fixture
def mock_google(google_handler: dict) -> Callable[[Callable[[httpx.Request], httpx.Response]], None]:
    """Install the handler answering Google requests for the current test."""

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> None:
        google_handler["handler"] = handler

    return install


@pytest_asyncio.fixture
async def app_client_factory(session: AsyncSession, ai_processor, google_http_client):
    """Build HTTP clients against the app with its dependencies pointed at the test database."""
    from omnicrm.core.database import get_session
    from omnicrm.server.main import app
    from omnicrm.server.services.deps import (
        get_google_http_client,
        get_inbox_processor,
        get_onboarding_rate_limiter,
    )
    from omnicrm.server.services.onboarding import OnboardingRateLimiter

    rate_limiter = OnboardingRateLimiter(limit_per_minute=5)

    async def get_session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_inbox_processor] = lambda: ai_processor
    app.dependency_overrides[get_onboarding_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_google_http_client] = lambda: google_http_client

    clients = []

    def build(user_id: Optional[str] = TEST_USER_ID) -> AsyncClient:
        headers = {"X-User-Id": user_id} if user_id else {}
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost", headers=headers)
        clients.append(client)
        return client

    # Mock the lifespan to prevent database initialization during tests
    async def mock_lifespan(app):
        yield

    with patch("omnicrm.server.main.lifespan", mock_lifespan):
        yield build

    for client in clients:
        await client.aclose()
    await google_http_client.aclose()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(name="client")
async def client_fixture(app_client_factory) -> AsyncClient:
    """Client authenticated as the test practitioner."""
    return app_client_factory()


@pytest_asyncio.fixture
async def other_client(app_client_factory) -> AsyncClient:
    """Client authenticated as a second practitioner."""
    return app_client_factory(OTHER_USER_ID)


@pytest_asyncio.fixture
async def anonymous_client(app_client_factory) -> AsyncClient:
    """Client without the identity header."""
    return app_client_factory(None)
