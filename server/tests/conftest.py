"""Test configuration and fixtures."""

import os

# Settings are read at import time; point them at SQLite before the app loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ENABLE_BACKGROUND_WORKERS", "false")

from datetime import date, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from hostmatch.core.clock import utcnow
from hostmatch.core.config import settings
from hostmatch.core.database import Base, get_db
from hostmatch.models import *  # noqa: F403 - Import all models
from hostmatch.models import (
    Booking,
    BookingStatus,
    Host,
    HostReviewStatus,
    RequestClaim,
    RequestStatus,
    ReservationRequest,
    Vehicle,
)
from hostmatch.schemas.common import Actor
from hostmatch.services.notifications import Notifier

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_token(account_id: str, email: str | None = None) -> str:
    """Sign a bearer token the way the identity provider would."""
    payload = {"sub": account_id}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


def auth_headers(account_id: str, email: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(account_id, email)}"}


async def create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def file_engine(tmp_path):
    """
    File-backed SQLite engine with a fresh connection per session.

    Unlike the in-memory engine, sessions here run in independent
    transactions, so concurrent writers really contend for the database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(file_engine):
    return async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """Create a test FastAPI application bound to the test session."""
    from hostmatch.main import create_app

    app = create_app(use_lifespan=False)

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class RecordingNotifier(Notifier):
    """Notifier that keeps every message for assertions."""

    def __init__(self):
        self.sent: list[tuple] = []

    async def vehicle_change_proposed(self, booking, token, consent_url):
        self.sent.append(("vehicle_change_proposed", booking.id, consent_url))

    async def invitation_sent(self, invitation):
        self.sent.append(("invitation_sent", invitation.recipient_email))

    async def invitation_countered(self, invitation, recipient):
        self.sent.append(("invitation_countered", recipient))

    async def invitation_responded(self, invitation):
        self.sent.append(("invitation_responded", invitation.status))

    def kinds(self) -> list[str]:
        return [message[0] for message in self.sent]


class FailingNotifier(Notifier):
    """Notifier whose delivery channel is down."""

    async def vehicle_change_proposed(self, booking, token, consent_url):
        raise ConnectionError("smtp unavailable")

    async def invitation_sent(self, invitation):
        raise ConnectionError("smtp unavailable")

    async def invitation_countered(self, invitation, recipient):
        raise ConnectionError("smtp unavailable")

    async def invitation_responded(self, invitation):
        raise ConnectionError("smtp unavailable")


@pytest.fixture
def notifier():
    return RecordingNotifier()


async def seed_host(db: AsyncSession, name: str = "Coastal Car Share", email: str | None = None) -> Host:
    host = Host(name=name, email=email or f"{name.lower().replace(' ', '.')}@hosts.example")
    db.add(host)
    await db.commit()
    await db.refresh(host)
    return host


async def seed_vehicle(
    db: AsyncSession,
    host: Host,
    make: str = "Toyota",
    model: str = "Corolla",
    daily_rate: float = 45,
    is_active: bool = True,
) -> Vehicle:
    vehicle = Vehicle(host_id=host.id, make=make, model=model, year=2022, daily_rate=daily_rate, is_active=is_active)
    db.add(vehicle)
    await db.commit()
    await db.refresh(vehicle)
    return vehicle


async def seed_request(
    db: AsyncSession,
    start_date: date | None = date(2030, 7, 1),
    end_date: date | None = date(2030, 7, 5),
    code: str = "REQ-TEST01",
) -> ReservationRequest:
    reservation = ReservationRequest(
        request_code=code,
        guest_name="Dana Reyes",
        guest_email="dana@example.com",
        start_date=start_date,
        end_date=end_date,
        status=RequestStatus.OPEN,
    )
    db.add(reservation)
    await db.commit()
    await db.refresh(reservation)
    return reservation


async def seed_booking(
    db: AsyncSession,
    vehicle: Vehicle,
    start_date: date = date(2030, 7, 3),
    end_date: date = date(2030, 7, 8),
    status: BookingStatus = BookingStatus.CONFIRMED,
    review: HostReviewStatus | None = None,
) -> Booking:
    booking = Booking(
        car_id=vehicle.id,
        host_id=vehicle.host_id,
        guest_name="Lee Park",
        guest_email="lee@example.com",
        start_date=start_date,
        end_date=end_date,
        status=status,
        host_review_status=review,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking


async def force_claim_lapse(db: AsyncSession, claim_id, minutes_ago: int = 5) -> None:
    """Move a claim's whole window into the past."""
    now = utcnow()
    await db.execute(
        update(RequestClaim)
        .where(RequestClaim.id == claim_id)
        .values(
            claimed_at=now - timedelta(minutes=30 + minutes_ago),
            claim_expires_at=now - timedelta(minutes=minutes_ago),
        )
    )
    await db.commit()


@pytest_asyncio.fixture
async def host(test_session):
    return await seed_host(test_session)


@pytest_asyncio.fixture
async def other_host(test_session):
    return await seed_host(test_session, name="Summit Rentals")


@pytest_asyncio.fixture
async def vehicle(test_session, host):
    return await seed_vehicle(test_session, host)


@pytest_asyncio.fixture
async def open_request(test_session):
    return await seed_request(test_session)


@pytest.fixture
def owner():
    return Actor(account_id="owner-1", email="owner@hosts.example")


@pytest.fixture
def manager():
    return Actor(account_id="manager-1", email="Manager@Hosts.example")


@pytest.fixture
def stranger():
    return Actor(account_id="stranger-1", email="stranger@hosts.example")
