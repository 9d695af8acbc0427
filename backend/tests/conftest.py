"""
Pytest fixtures for test database, client, users and domain objects.

Tests run against TEST_DATABASE_URL (in-memory SQLite by default, or a
PostgreSQL test database). Tables are created and dropped per test for
isolation.
"""

import os

# Settings are read once at import time; configure before importing the app
os.environ.setdefault("TICKET_SIGNING_KEY", "test-ticket-signing-key-0123456789abcdefghij")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("NOTIFIER_BACKEND", "log")

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.security import create_access_token
from app.models import (
    CarpoolOffer,
    Driver,
    DriverStatus,
    DriverType,
    Event,
    OfferStatus,
    Room,
    RoomStatus,
    Ticket,
    User,
    UserRole,
    VehicleType,
)
from app.services.interfaces.notifier import Notifier
from app.services.strategy_factory import get_notifier
from app.services.ticket_signing_service import TicketSigner

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
TEST_SIGNING_KEY = os.environ["TICKET_SIGNING_KEY"]


class RecordingNotifier(Notifier):
    """Collects notifications so tests can assert on them."""

    def __init__(self):
        self.calls = []

    async def notify_booking_approved(self, rental_id: int) -> None:
        self.calls.append(("approved", rental_id))

    async def notify_booking_rejected(self, rental_id: int, reason: Optional[str] = None) -> None:
        self.calls.append(("rejected", rental_id, reason))

    async def notify_resource_disabled(self, room_id: int, rental_ids: Sequence[int] = ()) -> None:
        self.calls.append(("disabled", room_id, list(rental_ids)))


def _make_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        return create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    engine = _make_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def signer() -> TicketSigner:
    return TicketSigner(TEST_SIGNING_KEY)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB and notifier dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(db_session: AsyncSession, obj):
    db_session.add(obj)
    await db_session.commit()
    await db_session.refresh(obj)
    return obj


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


# ===== Users =====

@pytest_asyncio.fixture
async def student(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="student@campus.edu", username="student", role=UserRole.STUDENT))


@pytest_asyncio.fixture
async def other_student(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="other@campus.edu", username="other", role=UserRole.STUDENT))


@pytest_asyncio.fixture
async def third_student(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="third@campus.edu", username="third", role=UserRole.STUDENT))


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="organizer@campus.edu", username="organizer", role=UserRole.ORGANIZER))


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="admin@campus.edu", username="admin", role=UserRole.ADMIN))


# ===== Events and tickets =====

@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, organizer: User) -> Event:
    return await _add(
        db_session,
        Event(
            title="Spring Concert",
            description="Outdoor concert",
            date=datetime.now(timezone.utc) + timedelta(days=30),
            location="Main Quad",
            organizer_id=organizer.id,
        ),
    )


@pytest_asyncio.fixture
async def other_event(db_session: AsyncSession, organizer: User) -> Event:
    return await _add(
        db_session,
        Event(
            title="Career Fair",
            date=datetime.now(timezone.utc) + timedelta(days=40),
            location="Gym",
            organizer_id=organizer.id,
        ),
    )


@pytest_asyncio.fixture
async def test_ticket(db_session: AsyncSession, test_event: Event, student: User) -> Ticket:
    return await _add(
        db_session,
        Ticket(event_id=test_event.id, user_id=student.id, unique_code="TKT-0001-ABCD"),
    )


# ===== Rooms =====

@pytest_asyncio.fixture
async def test_room(db_session: AsyncSession, organizer: User) -> Room:
    return await _add(
        db_session,
        Room(
            organizer_id=organizer.id,
            name="Hall A",
            address="1 Campus Way",
            capacity=40,
            status=RoomStatus.ENABLED,
            amenities="projector",
            hourly_rate=Decimal("25.00"),
        ),
    )


@pytest_asyncio.fixture
async def small_room(db_session: AsyncSession, organizer: User) -> Room:
    return await _add(
        db_session,
        Room(
            organizer_id=organizer.id,
            name="Study Room 3",
            address="Library, 2nd floor",
            capacity=6,
            status=RoomStatus.ENABLED,
        ),
    )


def slot(days: int = 3, hour: int = 10, hours: int = 2):
    """A future [start, end) range on a whole hour."""
    start = (datetime.now(timezone.utc) + timedelta(days=days)).replace(
        hour=hour, minute=0, second=0, microsecond=0
    )
    return start, start + timedelta(hours=hours)


# ===== Carpool =====

async def make_driver(
    db_session: AsyncSession,
    user: User,
    capacity: int = 3,
    status: DriverStatus = DriverStatus.ACTIVE,
) -> Driver:
    driver_type = DriverType.ORGANIZER if user.role == UserRole.ORGANIZER else DriverType.STUDENT
    return await _add(
        db_session,
        Driver(
            user_id=user.id,
            capacity=capacity,
            vehicle_type=VehicleType.SEDAN,
            driver_type=driver_type,
            status=status,
        ),
    )


async def make_offer(
    db_session: AsyncSession,
    driver: Driver,
    event: Event,
    seats: Optional[int] = None,
) -> CarpoolOffer:
    total = driver.capacity
    available = total if seats is None else seats
    return await _add(
        db_session,
        CarpoolOffer(
            driver_id=driver.id,
            event_id=event.id,
            total_seats=total,
            seats_available=available,
            departure_info="Parking lot B",
            departure_time=event.date - timedelta(hours=1),
            status=OfferStatus.FULL if available == 0 else OfferStatus.ACTIVE,
        ),
    )


@pytest_asyncio.fixture
async def driver(db_session: AsyncSession, student: User) -> Driver:
    return await make_driver(db_session, student, capacity=3)


@pytest_asyncio.fixture
async def offer(db_session: AsyncSession, driver: Driver, test_event: Event) -> CarpoolOffer:
    return await make_offer(db_session, driver, test_event)
