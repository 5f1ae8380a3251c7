"""
Shared fixtures for the booking engine test suite.

Every test gets a fresh in-memory SQLite database; the partial unique
index on active bookings is enforced there too, so conflict races can be
exercised without PostgreSQL.
"""

import os

# Must be set before the settings module is imported
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("CI", "1")

from datetime import date, time, timedelta
from decimal import Decimal
from typing import Callable, Generator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from franchise_booking.api.dependencies.database import get_db
from franchise_booking.core.enums import RoleName
from franchise_booking.database import Base
from franchise_booking.main import app
import franchise_booking.models  # noqa: F401
from franchise_booking.models.booking import Booking
from franchise_booking.models.professional import Customer, Professional
from franchise_booking.models.service import Service
from franchise_booking.principal import CallerIdentity
from franchise_booking.schemas.booking import BookingCreate
from franchise_booking.services.booking_service import BookingService
from franchise_booking.services.review_service import ReviewService


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def professional(db: Session) -> Professional:
    pro = Professional(business_name="Spotless Homes", email="pro@example.com")
    db.add(pro)
    db.commit()
    return pro


@pytest.fixture
def other_professional(db: Session) -> Professional:
    pro = Professional(business_name="Garden Heroes", email="garden@example.com")
    db.add(pro)
    db.commit()
    return pro


@pytest.fixture
def customer(db: Session) -> Customer:
    cust = Customer(first_name="Ada", last_name="Lovelace", email="ada@example.com")
    db.add(cust)
    db.commit()
    return cust


@pytest.fixture
def other_customer(db: Session) -> Customer:
    cust = Customer(first_name="Alan", last_name="Turing", email="alan@example.com")
    db.add(cust)
    db.commit()
    return cust


@pytest.fixture
def service(db: Session) -> Service:
    """20.00/h with a 5.00 call-out fee and a 2 hour default duration."""
    svc = Service(
        name="Deep clean",
        price=Decimal("20.00"),
        duration_hours=Decimal("2"),
        call_out_fee=Decimal("5.00"),
        is_active=True,
    )
    db.add(svc)
    db.commit()
    return svc


@pytest.fixture
def customer_caller(customer: Customer) -> CallerIdentity:
    return CallerIdentity(id=customer.id, role=RoleName.CUSTOMER)


@pytest.fixture
def other_customer_caller(other_customer: Customer) -> CallerIdentity:
    return CallerIdentity(id=other_customer.id, role=RoleName.CUSTOMER)


@pytest.fixture
def professional_caller(professional: Professional) -> CallerIdentity:
    return CallerIdentity(id=professional.id, role=RoleName.PROFESSIONAL)


@pytest.fixture
def admin_caller() -> CallerIdentity:
    return CallerIdentity(id="01HADM1N000000000000000000", role=RoleName.ADMIN)


@pytest.fixture
def booking_day() -> date:
    return date.today() + timedelta(days=7)


@pytest.fixture
def booking_service(db: Session) -> BookingService:
    return BookingService(db)


@pytest.fixture
def review_service(db: Session) -> ReviewService:
    return ReviewService(db)


@pytest.fixture
def booking_payload(customer, professional, service, booking_day) -> Callable[..., BookingCreate]:
    """Build a BookingCreate for the default parties; keyword overrides win."""

    def _build(**overrides) -> BookingCreate:
        data = {
            "customer_id": customer.id,
            "professional_id": professional.id,
            "service_id": service.id,
            "booking_date": booking_day,
            "booking_time": time(10, 0),
        }
        data.update(overrides)
        return BookingCreate(**data)

    return _build


@pytest.fixture
def make_booking(booking_service, customer_caller, booking_payload) -> Callable[..., Booking]:
    """Create a booking through the service as the customer."""

    def _make(caller: Optional[CallerIdentity] = None, **overrides) -> Booking:
        result = booking_service.create_booking(caller or customer_caller, booking_payload(**overrides))
        return result.booking

    return _make


@pytest.fixture
def complete_booking(booking_service, professional_caller) -> Callable[[Booking], Booking]:
    """Walk a booking through confirmed -> in_progress -> completed."""

    def _complete(booking: Booking) -> Booking:
        for status in ("confirmed", "in_progress", "completed"):
            booking = booking_service.update_status(professional_caller, booking.id, status)
        return booking

    return _complete


@pytest.fixture
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[CallerIdentity], dict]:
    """Headers the upstream gateway would forward for a caller."""

    def _headers(caller: CallerIdentity) -> dict:
        return {"X-User-Id": caller.id, "X-User-Role": caller.role.value}

    return _headers
