"""Test infrastructure: in-memory SQLite database, session and httpx client fixtures.

Each test gets a fresh schema on a single shared aiosqlite connection.
Notification emission is captured instead of delivered.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from bluegrid.database import Base, get_db  # noqa: E402
from bluegrid.main import app  # noqa: E402
from bluegrid.models import *  # noqa: F401,F403,E402 (register all models with metadata)
from bluegrid.models.enums import Role  # noqa: E402
from bluegrid.models.user import User  # noqa: E402
from bluegrid.services.notification_service import notification_dispatcher  # noqa: E402
from bluegrid.utils.jwt import create_access_token  # noqa: E402
from bluegrid.utils.password import hash_password  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ---------------------------------------------------------------------------
# Engine, session, client
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with the full schema."""
    eng = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI test client sharing the test session."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_events(monkeypatch) -> list:
    """Record emitted notification events instead of delivering them."""
    events: list = []

    def _capture(event):
        if event is not None:
            events.append(event)
        return None

    monkeypatch.setattr(notification_dispatcher, "emit", _capture)
    return events


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
async def create_user(
    db: AsyncSession,
    role: Role,
    email: str,
    full_name: str,
    password: str = "secret123",
    phone: str | None = None,
) -> User:
    user = User(
        email=email,
        password_hash=hash_password(password),
        email_verified=True,
        full_name=full_name,
        phone=phone,
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def resident(db: AsyncSession) -> User:
    return await create_user(db, Role.RESIDENT, "asha@example.com", "Asha Resident", phone="9876543210")


@pytest_asyncio.fixture
async def other_resident(db: AsyncSession) -> User:
    return await create_user(db, Role.RESIDENT, "ravi@example.com", "Ravi Resident", phone="9876500000")


@pytest_asyncio.fixture
async def technician(db: AsyncSession) -> User:
    return await create_user(db, Role.MAINTENANCE_TECHNICIAN, "tech@example.com", "Tara Technician", phone="9811111111")


@pytest_asyncio.fixture
async def other_technician(db: AsyncSession) -> User:
    return await create_user(db, Role.MAINTENANCE_TECHNICIAN, "tech2@example.com", "Tomas Technician")


@pytest_asyncio.fixture
async def controller(db: AsyncSession) -> User:
    return await create_user(db, Role.WATER_FLOW_CONTROLLER, "flow@example.com", "Farid Controller")


@pytest_asyncio.fixture
async def officer(db: AsyncSession) -> User:
    return await create_user(db, Role.PANCHAYAT_OFFICER, "officer@example.com", "Priya Officer")


def make_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


def auth_header(token_or_user) -> dict[str, str]:
    token = token_or_user if isinstance(token_or_user, str) else make_token(token_or_user)
    return {"Authorization": f"Bearer {token}"}


REPORT_PAYLOAD: dict = {
    "full_name": "Asha Resident",
    "mobile_number": "9876543210",
    "location_name": "Ward 4, near the temple",
    "notes": "Main line leaking onto the road",
}
