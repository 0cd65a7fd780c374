import os

# Configuración de entorno ANTES de importar la aplicación
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["GYM_TIMEZONE"] = "Europe/Zagreb"
os.environ["BOOKING_POLICY"] = "standard"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
import pytz
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.booking import BookingStatus
from app.models.user import UserRole
from app.repositories.async_booking import async_booking_repository
from app.repositories.async_user import async_user_repository
from app.services.booking import BookingService
from app.services.booking_policy import StandardBookingPolicy, StrictBookingPolicy
from app.core.timezone_utils import get_local_date

GYM_TZ = "Europe/Zagreb"

# Lunes 1 de junio de 2026, 08:00 hora local (CEST, UTC+2)
NOW = datetime(2026, 6, 1, 6, 0, tzinfo=timezone.utc)


def local(year, month, day, hour, minute=0):
    """Instante UTC correspondiente a una hora local del gimnasio."""
    naive = datetime(year, month, day, hour, minute)
    return pytz.timezone(GYM_TZ).localize(naive).astimezone(timezone.utc)


def slot(year, month, day, hour):
    """Slot de una hora que empieza a la hora local indicada."""
    start = local(year, month, day, hour)
    return start, start + timedelta(hours=1)


@pytest_asyncio.fixture
async def engine():
    """Base de datos SQLite en memoria con el esquema completo, nueva por test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def service(clock):
    return BookingService(policy=StandardBookingPolicy(GYM_TZ), clock=clock)


@pytest.fixture
def strict_service(clock):
    return BookingService(policy=StrictBookingPolicy(GYM_TZ), clock=clock)


async def _create_user(db, email, name, role=UserRole.USER, limit=3):
    user = await async_user_repository.create(db, obj_in={
        "email": email,
        "name": name,
        "role": role,
        "weekly_booking_limit": limit,
    })
    await db.commit()
    return user


@pytest_asyncio.fixture
async def member(db):
    return await _create_user(db, "member@test.com", "Member Test")


@pytest_asyncio.fixture
async def other_member(db):
    return await _create_user(db, "other@test.com", "Other Member")


@pytest_asyncio.fixture
async def admin(db):
    return await _create_user(db, "admin@test.com", "Admin Test", role=UserRole.ADMIN)


@pytest.fixture
def make_booking(db):
    """Inserta una reserva directamente en el repositorio (sin pasar por la admisión)."""
    async def _make(user, start, end=None, status=BookingStatus.CONFIRMED):
        end = end or start + timedelta(hours=1)
        booking = await async_booking_repository.create(db, obj_in={
            "user_id": user.id,
            "start_time": start,
            "end_time": end,
            "booking_date": get_local_date(start, GYM_TZ),
            "status": status,
        })
        await db.commit()
        return booking
    return _make
