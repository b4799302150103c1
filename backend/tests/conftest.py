"""Root conftest — shared test configuration and database fixtures.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - db_manager wraps the test engine, so stores run their real SQL

Design Decisions:
    - SQLite in-memory: fast, no external dependency; conditional UPDATE + rowcount
      behave the same as on PostgreSQL for the statements the store issues
    - DatabaseSessionManager built via __new__: reuses the test engine instead of
      creating a second pool
"""

import os

# Ensure tests never reach real infrastructure
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession, create_async_engine, async_sessionmaker,
)

from bookswap.db.base import Base  # noqa: E402
from bookswap.infrastructure.database import DatabaseSessionManager  # noqa: E402
from bookswap.infrastructure.exchange_store import SqlExchangeStore  # noqa: E402
import bookswap.models  # noqa: E402,F401


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def db_manager(test_engine, test_session_factory):
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    return manager


@pytest.fixture
async def store(db_manager):
    return SqlExchangeStore(db_manager)
