"""Test configuration and fixtures"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db, get_session_factory
from app.models.profile import Profile, ProfileRole
from app.models.reservation import Reservation, ReservationStatus
from app.models.user import User
from app.ratelimit import limiter
from app.realtime import ReservationHub, get_hub
from app.api.auth import create_access_token, get_password_hash
from app.validation import local_today


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

limiter.enabled = False


@pytest.fixture
async def session_factory():
    """One in-memory database shared by every session of a test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(session_factory):
    """Session for arranging and inspecting data"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def hub():
    return ReservationHub()


@pytest.fixture(autouse=True)
def task_queue(monkeypatch):
    """Celery producer replaced so no broker is needed"""
    from app.jobs.celery_app import celery_app

    send_task = MagicMock()
    monkeypatch.setattr(celery_app, "send_task", send_task)
    return send_task


async def create_account(
    db: AsyncSession,
    email: str,
    password: str,
    name: str,
    role: ProfileRole = ProfileRole.CUSTOMER,
) -> User:
    user = User(
        id=uuid4(),
        email=email,
        hashed_password=get_password_hash(password),
        display_name=name,
        is_active=True,
    )
    db.add(user)
    db.add(
        Profile(
            uid=user.id,
            email=email,
            display_name=name,
            role=role,
            reservations=[],
        )
    )
    await db.commit()
    return user


@pytest.fixture
async def test_user(test_db):
    """Create a customer account"""
    return await create_account(test_db, "asha@gmail.com", "testpass123", "Asha Rao")


@pytest.fixture
async def other_user(test_db):
    """A second customer account"""
    return await create_account(test_db, "rohan@gmail.com", "otherpass123", "Rohan Sen")


@pytest.fixture
async def test_admin_user(test_db):
    """Create an account with the admin role"""
    return await create_account(
        test_db, "manager@onesip.co.in", "adminpass123", "Manager", role=ProfileRole.ADMIN
    )


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
async def client(session_factory, hub):
    """Create test client with overridden database and realtime hub"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_hub] = lambda: hub

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def authenticated_client(client, test_user):
    """Create authenticated test client"""
    client.headers.update(auth_headers(test_user))
    return client


@pytest.fixture
async def admin_client(client, test_admin_user):
    """Create admin authenticated test client"""
    client.headers.update(auth_headers(test_admin_user))
    return client


def reservation_payload(**overrides) -> dict:
    """Valid form values for a booking a week from today"""
    payload = {
        "customer_name": "Asha Rao",
        "customer_phone": "9876543210",
        "party_size": "2",
        "reservation_date": (local_today() + timedelta(days=7)).isoformat(),
        "reservation_time": "19:00",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def test_reservations(test_db):
    """Three bookings, one per status, created oldest first"""
    today = local_today()
    rows = [
        Reservation(
            customer_name="Asha Rao",
            customer_phone="9876543210",
            customer_email="asha@gmail.com",
            party_size=2,
            reservation_date=today,
            reservation_time="19:00",
            status=ReservationStatus.PENDING,
        ),
        Reservation(
            customer_name="Rohan Sen",
            customer_phone="9123456780",
            party_size=6,
            reservation_date=today + timedelta(days=1),
            reservation_time="20:00",
            status=ReservationStatus.CONFIRMED,
        ),
        Reservation(
            customer_name="Meera Iyer",
            customer_phone="8012345678",
            party_size=4,
            reservation_date=today + timedelta(days=3),
            reservation_time="13:00",
            status=ReservationStatus.CANCELLED,
        ),
    ]
    start = datetime.utcnow() - timedelta(hours=1)
    for offset, row in enumerate(rows):
        row.created_at = start + timedelta(minutes=offset)
        row.updated_at = row.created_at
        test_db.add(row)
    await test_db.commit()
    return rows


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def make_payload():
    return reservation_payload
