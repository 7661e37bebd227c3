"""Shared test configuration and fixtures.

Each test gets a fresh database:
- by default a throwaway SQLite file under the test's tmp_path;
- set ``TEST_DATABASE_URL`` (e.g. ``postgresql+asyncpg://.../booking_test``)
  to run the same tests against PostgreSQL.
"""

import os

# Must be set before booking_service.config is imported.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-booking-service-tests")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

import booking_service.models  # noqa: F401
from booking_service.api.deps import get_ledger
from booking_service.config import Settings, settings
from booking_service.database import Base, create_engine, create_session_factory
from booking_service.main import app
from booking_service.models.car import Car
from booking_service.services.booking_ledger import BookingLedger
from booking_service.services.car_lookup import DatabaseCarLookup
from booking_service.services.notifications import NotificationDispatcher

# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def hours_from_now(hours: int) -> datetime:
    """A whole-hour UTC instant ``hours`` from now (at least one hour ahead)."""
    base = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    return base + timedelta(hours=hours + 1)


def days_from_now(days: int) -> datetime:
    return hours_from_now(days * 24)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create an engine on a fresh database and build the schema."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}"
    engine = create_engine(Settings(database_url=url, db_pool_size=10))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


async def add_car(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    name: str,
    price_per_day: Decimal,
    is_active: bool = True,
    images: list[str] | None = None,
) -> Car:
    car = Car(
        name=name,
        price_per_day=price_per_day,
        is_active=is_active,
        images=images if images is not None else [f"https://img.test/{name.replace(' ', '-').lower()}.jpg"],
    )
    async with session_factory() as session:
        async with session.begin():
            session.add(car)
    return car


@pytest_asyncio.fixture
async def car(session_factory) -> Car:
    """An active car at $75/day."""
    return await add_car(session_factory, name="Nissan Rogue", price_per_day=Decimal("75.00"))


@pytest_asyncio.fixture
async def other_car(session_factory) -> Car:
    return await add_car(session_factory, name="Toyota Camry", price_per_day=Decimal("65.00"))


@pytest_asyncio.fixture
async def inactive_car(session_factory) -> Car:
    return await add_car(session_factory, name="Retired Sedan", price_per_day=Decimal("40.00"), is_active=False)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@pytest.fixture
def notifier() -> AsyncMock:
    """Notifier double; inspect ``notifier.notify`` for sent events."""
    return AsyncMock()


@pytest.fixture
def ledger(session_factory, notifier) -> BookingLedger:
    return BookingLedger(
        session_factory,
        DatabaseCarLookup(),
        NotificationDispatcher(notifier),
        lock_timeout_ms=5000,
        transaction_timeout_seconds=10.0,
    )


# ---------------------------------------------------------------------------
# HTTP client and auth
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(ledger: BookingLedger) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test ledger."""
    app.dependency_overrides[get_ledger] = lambda: ledger

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build access tokens the way the auth service signs them."""

    def _make(sub: str, expires_in: timedelta = timedelta(minutes=15), **claims) -> str:
        now = datetime.now(timezone.utc)
        payload = {"sub": sub, "iat": now, "exp": now + expires_in, "type": "access", **claims}
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    return _make


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id: uuid.UUID, make_token) -> dict[str, str]:
    """Return Authorization headers for the test user."""
    return {"Authorization": f"Bearer {make_token(str(user_id))}"}


@pytest.fixture
def other_auth_headers(make_token) -> dict[str, str]:
    """Headers for a second, unrelated user."""
    return {"Authorization": f"Bearer {make_token(str(uuid.uuid4()))}"}
