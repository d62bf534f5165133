"""Test configuration for database unit tests.

This module provides common fixtures for testing the repositories of the
centralized database layer against an in-memory SQLite database.
"""

from __future__ import annotations

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.pool import StaticPool

from omnicrm.core.database import create_all, utc_now

USER_ID = "user-db-1"
OTHER_USER_ID = "user-db-2"


@pytest_asyncio.fixture(scope="function")
async def in_memory_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create in-memory SQLite engine with every table."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def in_memory_session(in_memory_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create in-memory SQLite session for testing."""
    async_session = sessionmaker(
        bind=in_memory_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:  # type: ignore[attr-defined]
        yield session


@pytest.fixture
def at():
    """Build timestamps relative to now so ordering assertions never depend on clock resolution."""
    base = utc_now()

    def _at(minutes: int) -> object:
        return base + timedelta(minutes=minutes)

    return _at
