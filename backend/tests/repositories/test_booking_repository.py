from datetime import time
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from franchise_booking.repositories import RepositoryFactory


@pytest.fixture
def booking_fields(customer, professional, service, booking_day):
    def _fields(**overrides):
        data = {
            "customer_id": customer.id,
            "professional_id": professional.id,
            "service_id": service.id,
            "booking_date": booking_day,
            "booking_time": time(10, 0),
            "duration_minutes": 60,
            "hourly_rate": Decimal("20.00"),
            "base_amount": Decimal("20.00"),
            "final_amount": Decimal("20.00"),
            "status": "pending",
        }
        data.update(overrides)
        return data

    return _fields


def test_create_surfaces_integrity_error_for_same_active_start(db, booking_fields):
    repository = RepositoryFactory.create_booking_repository(db)
    with repository.transaction():
        repository.create(**booking_fields())

    with pytest.raises(IntegrityError):
        repository.create(**booking_fields())


def test_inactive_bookings_do_not_hold_the_start_time(db, booking_fields):
    repository = RepositoryFactory.create_booking_repository(db)
    with repository.transaction():
        repository.create(**booking_fields(status="cancelled"))
        repository.create(**booking_fields(status="completed"))
        repository.create(**booking_fields())

    assert repository.count() == 3


def test_conflict_query_returns_active_bookings_in_start_order(db, booking_fields, professional, booking_day):
    bookings = RepositoryFactory.create_booking_repository(db)
    with bookings.transaction():
        late = bookings.create(**booking_fields(booking_time=time(15, 0)))
        early = bookings.create(**booking_fields(booking_time=time(9, 0)))
        bookings.create(**booking_fields(booking_time=time(12, 0), status="cancelled"))

    repository = RepositoryFactory.create_conflict_checker_repository(db)
    found = repository.get_bookings_for_conflict_check(professional.id, booking_day)
    assert [b.id for b in found] == [early.id, late.id]

    without_early = repository.get_bookings_for_conflict_check(professional.id, booking_day, early.id)
    assert [b.id for b in without_early] == [late.id]


def test_list_bookings_paginates_newest_first(db, booking_fields, customer):
    repository = RepositoryFactory.create_booking_repository(db)
    with repository.transaction():
        for hour in (8, 10, 12):
            repository.create(**booking_fields(booking_time=time(hour, 0)))

    items, total = repository.list_bookings(customer_id=customer.id, page=1, limit=2)

    assert total == 3
    assert len(items) == 2
    assert items[0].service is not None
