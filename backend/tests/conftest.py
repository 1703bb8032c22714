"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own file-backed SQLite database (aiosqlite), so several
sessions can hit it at once in the concurrency tests. Redis is disabled, so
the search cache degrades to a miss, except where the `redis_cache` fixture
swaps in fakeredis.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./rideshare-test.db")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///./rideshare-test.db")

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from fakeredis import FakeAsyncRedis
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from rideshare.main import app
from rideshare.core.clock import utcnow
from rideshare.core.security import create_access_token
from rideshare.db.base import Base
from rideshare.db.session import get_db
from rideshare.models import Trip, User  # noqa: F401 - register tables on Base.metadata
from rideshare.models.enums import Gender, GenderPreference, UserType
from rideshare.services import cache_service
from rideshare.schemas.user import Actor, UserCreate
from rideshare.services.trip_service import create_trip
from rideshare.services.user_service import create_user, to_actor


def trip_payload(**overrides) -> dict:
    """A valid trip request; override any field."""
    payload = {
        "from_location": "الرباط",
        "to_location": "الدار البيضاء",
        "departure_time": utcnow() + timedelta(days=2),
        "total_seats": 4,
        "price_per_seat": Decimal("50.00"),
        "car_model": "Dacia Logan",
        "car_plate": "12345-A-6",
        "gender_preference": GenderPreference.ANY,
    }
    payload.update(overrides)
    return payload


def api_payload(**overrides) -> dict:
    """trip_payload() as JSON the API accepts."""
    payload = trip_payload(**overrides)
    payload["departure_time"] = payload["departure_time"].isoformat()
    payload["price_per_seat"] = str(payload["price_per_seat"])
    payload["gender_preference"] = getattr(payload["gender_preference"], "value", payload["gender_preference"])
    return payload


def auth_headers_for(actor: Actor) -> dict:
    token = create_access_token(data={"sub": str(actor.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create tables in a fresh database file, dispose afterwards."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rideshare.db'}",
        connect_args={"timeout": 30},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_actor(db: AsyncSession, user_type: UserType, gender=None) -> Actor:
    user = await create_user(db, UserCreate(user_type=user_type, gender=gender))
    return to_actor(user)


@pytest_asyncio.fixture
async def driver(db_session: AsyncSession) -> Actor:
    return await _make_actor(db_session, UserType.DRIVER, Gender.MALE)


@pytest_asyncio.fixture
async def other_driver(db_session: AsyncSession) -> Actor:
    return await _make_actor(db_session, UserType.DRIVER, Gender.FEMALE)


@pytest_asyncio.fixture
async def passenger(db_session: AsyncSession) -> Actor:
    return await _make_actor(db_session, UserType.PASSENGER, Gender.MALE)


@pytest_asyncio.fixture
async def female_passenger(db_session: AsyncSession) -> Actor:
    return await _make_actor(db_session, UserType.PASSENGER, Gender.FEMALE)


@pytest_asyncio.fixture
async def anonymous_passenger(db_session: AsyncSession) -> Actor:
    """Passenger who never recorded a gender."""
    return await _make_actor(db_session, UserType.PASSENGER)


@pytest_asyncio.fixture
async def driver_headers(driver: Actor) -> dict:
    return auth_headers_for(driver)


@pytest_asyncio.fixture
async def passenger_headers(passenger: Actor) -> dict:
    return auth_headers_for(passenger)


@pytest_asyncio.fixture
async def trip(db_session: AsyncSession, driver: Actor) -> Trip:
    """Rabat to Casablanca in two days, 4 seats."""
    return await create_trip(db_session, trip_payload(), driver)


@pytest_asyncio.fixture
async def redis_cache(monkeypatch) -> AsyncGenerator[FakeAsyncRedis, None]:
    """Search cache backed by an in-memory fakeredis server."""
    fake = FakeAsyncRedis(decode_responses=True)
    await fake.flushall()
    monkeypatch.setattr(cache_service.settings, "REDIS_ENABLED", True)
    monkeypatch.setattr(cache_service, "_redis_client", fake)

    yield fake

    await fake.flushall()
    await fake.aclose()
