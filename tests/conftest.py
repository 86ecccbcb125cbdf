"""
Shared pytest fixtures for testing the trading core.

Uses an in-memory SQLite database for fast, isolated tests. The engine
under test opens its own sessions through ``session_factory``; tests read
the resulting state back through fresh sessions so nothing is served from
a stale identity map.
"""

import os

# Keep the OTLP exporters off during tests
os.environ.setdefault("OTLP_ENABLED", "false")

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sharesphere.database import Base
from sharesphere.models import Broker, Company, Holding, Share, Shareholder, StockExchange, Trade


# Use in-memory SQLite for tests (fast, isolated)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio backend for pytest-asyncio."""
    return "asyncio"


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine.

    Creates tables at the start, drops them at the end.
    Each test gets a fresh database.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    """Session factory handed to the services under test."""
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def test_session(session_factory):
    """Provide a database session for setting up test data.

    Rolls back the session after each test for isolation.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


# --- Helper fixtures for creating test data ---


@pytest_asyncio.fixture
async def exchange(test_session):
    """Create a stock exchange."""
    e = StockExchange(name="NYSE", country="USA")
    test_session.add(e)
    await test_session.commit()
    return e


@pytest_asyncio.fixture
async def company(test_session, exchange):
    """Create a listed company."""
    c = Company(name="Test Company", ticker="TEST", exchange_id=exchange.id)
    test_session.add(c)
    await test_session.commit()
    return c


@pytest_asyncio.fixture
async def share(test_session, company):
    """Create a share priced 100.00 with 50 available."""
    s = Share(company_id=company.id, price=Decimal("100.00"), available_quantity=50)
    test_session.add(s)
    await test_session.commit()
    return s


@pytest_asyncio.fixture
async def broker(test_session):
    """Create a broker."""
    b = Broker(name="Test Broker", license_number="LIC123", email="broker@example.com")
    test_session.add(b)
    await test_session.commit()
    return b


@pytest_asyncio.fixture
async def shareholder(test_session):
    """Create a shareholder with an existing portfolio value of 10000.00."""
    sh = Shareholder(
        name="Max Mustermann",
        email="max@example.com",
        portfolio_value=Decimal("10000.00"),
    )
    test_session.add(sh)
    await test_session.commit()
    return sh


# --- State reader ---


class StateReader:
    """Reads committed state through a fresh session per call."""

    def __init__(self, factory):
        self._factory = factory

    async def share(self, share_id: int) -> Share:
        async with self._factory() as session:
            return await session.get(Share, share_id)

    async def shareholder(self, shareholder_id: int) -> Shareholder:
        async with self._factory() as session:
            return await session.get(Shareholder, shareholder_id)

    async def holding(self, shareholder_id: int, share_id: int) -> Holding | None:
        async with self._factory() as session:
            return await session.get(Holding, (shareholder_id, share_id))

    async def trades(self) -> list[Trade]:
        async with self._factory() as session:
            result = await session.execute(select(Trade).order_by(Trade.timestamp))
            return list(result.scalars().all())


@pytest_asyncio.fixture
async def state(session_factory):
    """Reader for committed database state."""
    return StateReader(session_factory)
