"""
Pytest configuration and fixtures for async database testing.

Tests run against a fresh in-memory SQLite database (aiosqlite) per test
function, so no database server is needed.
"""
import os
from dataclasses import dataclass
from datetime import time

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Must be set before the application settings are first loaded
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("BOT_TIMEZONE", "America/Sao_Paulo")

from barberbot.core.db import Base, get_session  # noqa: E402
from barberbot.models import Barber, Service, Shop, WorkingHours  # noqa: E402


@pytest.fixture(scope="function")
async def async_engine():
    """
    Create an async engine bound to a private in-memory database.

    SQLite needs explicit BEGIN handling for SAVEPOINTs to behave.
    """
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def async_session(session_factory):
    async with session_factory() as session:
        yield session


@dataclass
class SeededShop:
    shop: Shop
    services: list
    barbers: list


async def seed_shop(
    session: AsyncSession,
    instance_id: str = "inst-1",
    token: str = "token-1",
    name: str = "Barbearia Teste",
) -> SeededShop:
    """
    A shop with three services and two barbers working 09:00-12:00 every day.

    Services sort by name as: Barba, Corte, Corte + Barba.
    """
    shop = Shop(name=name, wapi_instance_id=instance_id, wapi_token=token)
    session.add(shop)
    await session.flush()

    services = [
        Service(shop_id=shop.id, name="Barba", duration_minutes=30, price_cents=2500),
        Service(shop_id=shop.id, name="Corte", duration_minutes=30, price_cents=3500),
        Service(shop_id=shop.id, name="Corte + Barba", duration_minutes=90, price_cents=5500),
    ]
    barbers = [
        Barber(shop_id=shop.id, name="João"),
        Barber(shop_id=shop.id, name="Pedro"),
    ]
    session.add_all(services + barbers)
    await session.flush()

    session.add_all(
        [
            WorkingHours(
                shop_id=shop.id,
                barber_id=barber.id,
                day_of_week=day,
                start_time=time(9, 0),
                end_time=time(12, 0),
            )
            for barber in barbers
            for day in range(7)
        ]
    )
    await session.commit()
    return SeededShop(shop=shop, services=services, barbers=barbers)


@pytest.fixture(scope="function")
async def seeded(async_session):
    return await seed_shop(async_session)


@pytest.fixture(scope="function")
async def client(session_factory):
    """
    FastAPI AsyncClient whose requests each get their own test-database session.
    """
    from barberbot.main import app

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_shop(async_session):
    """Factory for additional shops in the same database."""
    async def _make(**kwargs) -> SeededShop:
        return await seed_shop(async_session, **kwargs)
    return _make
