"""
Shared fixtures: an in-memory SQLite database seeded with roles, users and
services, the engine objects wired over it, and an API client bound to it.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from booking.availability import AvailabilityEngine
from booking.blocked_periods import BlockedPeriodIndex, BlockedPeriodManager
from booking.config import Settings
from booking.db import create_db_and_tables, get_session
from booking.lifecycle import AppointmentLifecycle
from booking.locking import WriteLocks
from booking.models import Appointment, BlockedPeriod, Role, Service, User
from booking.repositories import (
    SqlAppointmentStore,
    SqlBlockedPeriodStore,
    SqlServiceCatalog,
    SqlUserDirectory,
)
from booking.schemas import AppointmentStatus

DAY = date(2030, 6, 3)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


class FixedClock:
    """Callable clock whose current time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@dataclass
class Seed:
    provider: int
    other_provider: int
    customer: int
    admin: int
    service_a: int
    service_b: int


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    with Session(db_engine) as session:
        yield session


def seed_database(session) -> Seed:
    """Insert the roles, users and services every test starts from."""
    roles = {
        slug: Role(name=slug.title(), slug=slug)
        for slug in ("administrator", "provider", "secretary", "customer")
    }
    session.add_all(roles.values())
    session.commit()

    provider = User(first_name="Paula", last_name="Provider", email="paula@example.com", role_id=roles["provider"].id)
    other = User(first_name="Oscar", last_name="Other", email="oscar@example.com", role_id=roles["provider"].id)
    customer = User(first_name="Carl", last_name="Customer", email="carl@example.com", role_id=roles["customer"].id)
    admin = User(first_name="Ada", last_name="Admin", email="ada@example.com", role_id=roles["administrator"].id)
    service_a = Service(name="Service A", duration=60, attendants_number=1)
    service_b = Service(name="Service B", duration=30, attendants_number=3)
    session.add_all([provider, other, customer, admin, service_a, service_b])
    session.commit()

    return Seed(
        provider=provider.id,
        other_provider=other.id,
        customer=customer.id,
        admin=admin.id,
        service_a=service_a.id,
        service_b=service_b.id,
    )


@pytest.fixture
def seed(session) -> Seed:
    return seed_database(session)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, DATABASE_URL="sqlite://", REQUIRE_NOTES=False, MIN_APPOINTMENT_MINUTES=15)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(at(8))


@pytest.fixture
def locks() -> WriteLocks:
    return WriteLocks()


@pytest.fixture
def blocked_index(session) -> BlockedPeriodIndex:
    return BlockedPeriodIndex(SqlBlockedPeriodStore(session))


@pytest.fixture
def blocked_manager(session, locks) -> BlockedPeriodManager:
    return BlockedPeriodManager(SqlBlockedPeriodStore(session), locks)


@pytest.fixture
def availability(session, blocked_index) -> AvailabilityEngine:
    return AvailabilityEngine(SqlAppointmentStore(session), blocked_index, SqlServiceCatalog(session))


def build_lifecycle(session, locks, settings, clock) -> AppointmentLifecycle:
    """Wire a lifecycle and its availability engine over one session."""
    availability = AvailabilityEngine(
        SqlAppointmentStore(session),
        BlockedPeriodIndex(SqlBlockedPeriodStore(session)),
        SqlServiceCatalog(session),
    )
    return AppointmentLifecycle(
        appointments=SqlAppointmentStore(session),
        users=SqlUserDirectory(session),
        services=SqlServiceCatalog(session),
        engine=availability,
        locks=locks,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def lifecycle(session, locks, test_settings, clock) -> AppointmentLifecycle:
    return build_lifecycle(session, locks, test_settings, clock)


@pytest.fixture
def client(session, seed):
    from booking.main import app

    def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_appointment(session, seed, start, end, *, service_id=None, status=AppointmentStatus.confirmed,
                    provider_id=None, is_unavailability=False):
    """Insert an appointment directly, bypassing the lifecycle checks."""
    appointment = Appointment(
        start=start,
        end=end,
        hash=uuid.uuid4().hex,
        status=AppointmentStatus.not_applicable if is_unavailability else status,
        is_unavailability=is_unavailability,
        provider_id=provider_id or seed.provider,
        customer_id=None if is_unavailability else seed.customer,
        service_id=None if is_unavailability else (service_id or seed.service_a),
    )
    session.add(appointment)
    session.commit()
    session.refresh(appointment)
    return appointment


def add_blocked_period(session, name, start, end):
    blocked_period = BlockedPeriod(name=name, start=start, end=end)
    session.add(blocked_period)
    session.commit()
    session.refresh(blocked_period)
    return blocked_period
