import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

# Load environment variables from .env file
load_dotenv()

# Test database URL - defaults to a private in-memory SQLite database.
# The application engine is pointed at the same URL so nothing can reach
# the production database during tests.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from app.core.security import create_access_token  # noqa: E402
from app.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import metadata, patients, professionals  # noqa: E402
from app.repositories.appointment_repository import AppointmentRepository  # noqa: E402
from app.schemas.appointments import AppointmentResponse  # noqa: E402


def create_test_engine() -> AsyncEngine:
    """Engine bound to the running test's event loop."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection keeps the in-memory database alive for the test
        return create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://"),
        echo=False,
        poolclass=NullPool,
    )


ACTOR = "staff-reception-1"


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    test_engine = create_test_engine()
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    """Bearer headers for a staff member; the subject becomes the audit actor."""
    token = create_access_token(data={"sub": ACTOR}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


async def _insert(db_session: AsyncSession, table: Any, values: dict[str, Any]) -> dict[str, Any]:
    values = {"id": uuid4(), **values}
    await db_session.execute(insert(table).values(**values))
    await db_session.commit()
    return values


@pytest_asyncio.fixture
async def professional(db_session: AsyncSession) -> dict[str, Any]:
    """A professional in the directory."""
    return await _insert(
        db_session,
        professionals,
        {"full_name": "Dr. Helena Prado", "specialty": "Physiotherapy", "is_active": True},
    )


@pytest_asyncio.fixture
async def other_professional(db_session: AsyncSession) -> dict[str, Any]:
    """A second professional, whose calendar is independent."""
    return await _insert(
        db_session,
        professionals,
        {"full_name": "Dr. Caio Mendes", "specialty": "Psychology", "is_active": True},
    )


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession) -> dict[str, Any]:
    """A patient with a standard consultation rate."""
    return await _insert(
        db_session,
        patients,
        {"full_name": "Marina Alves", "consultation_rate": Decimal("150.00"), "is_active": True},
    )


@pytest_asyncio.fixture
async def stand_in_patient(db_session: AsyncSession) -> dict[str, Any]:
    """A patient available to take a freed slot."""
    return await _insert(
        db_session,
        patients,
        {"full_name": "Rafael Costa", "consultation_rate": Decimal("120.00"), "is_active": True},
    )


@pytest_asyncio.fixture
async def unrated_patient(db_session: AsyncSession) -> dict[str, Any]:
    """A patient without a consultation rate."""
    return await _insert(
        db_session,
        patients,
        {"full_name": "Beatriz Lima", "consultation_rate": None, "is_active": True},
    )


@pytest_asyncio.fixture
async def pro_bono_patient(db_session: AsyncSession) -> dict[str, Any]:
    """A patient seen free of charge."""
    return await _insert(
        db_session,
        patients,
        {"full_name": "Lucas Pereira", "consultation_rate": Decimal("0.00"), "is_active": True},
    )


AppointmentFactory = Callable[..., Awaitable[AppointmentResponse]]


@pytest.fixture
def make_appointment(
    db_session: AsyncSession,
    patient: dict[str, Any],
    professional: dict[str, Any],
) -> AppointmentFactory:
    """Insert appointments directly, bypassing conflict checks."""

    async def factory(**overrides: Any) -> AppointmentResponse:
        values = {
            "patient_id": patient["id"],
            "patient_name": patient["full_name"],
            "professional_id": professional["id"],
            "professional_name": professional["full_name"],
            "date": date(2024, 7, 1),
            "start_time": time(9, 0),
            "duration_minutes": 60,
            "consultation_type": "follow-up",
            "status": "scheduled",
            "amount": Decimal("150.00"),
            **overrides,
        }
        appointment = await AppointmentRepository(db_session).create(values)
        await db_session.commit()
        return appointment

    return factory
