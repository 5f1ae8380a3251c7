from types import SimpleNamespace

import pytest

from franchise_booking.core.booking_policy import is_allowed
from franchise_booking.core.enums import BookingOperation, RoleName
from franchise_booking.principal import CallerIdentity

CUSTOMER = CallerIdentity(id="cust-1", role=RoleName.CUSTOMER)
OTHER_CUSTOMER = CallerIdentity(id="cust-2", role=RoleName.CUSTOMER)
PROFESSIONAL = CallerIdentity(id="pro-1", role=RoleName.PROFESSIONAL)
OTHER_PROFESSIONAL = CallerIdentity(id="pro-2", role=RoleName.PROFESSIONAL)
ADMIN = CallerIdentity(id="admin-1", role=RoleName.ADMIN)


def _booking(status="pending"):
    return SimpleNamespace(customer_id="cust-1", professional_id="pro-1", status=status)


@pytest.mark.parametrize(
    "caller, expected",
    [(CUSTOMER, True), (PROFESSIONAL, True), (ADMIN, True), (OTHER_CUSTOMER, False), (OTHER_PROFESSIONAL, False)],
)
def test_view_and_create(caller, expected):
    assert is_allowed(caller, BookingOperation.VIEW, _booking()) is expected
    assert is_allowed(caller, BookingOperation.CREATE, _booking()) is expected


def test_update_is_parties_only():
    assert is_allowed(CUSTOMER, BookingOperation.UPDATE, _booking())
    assert is_allowed(PROFESSIONAL, BookingOperation.UPDATE, _booking())
    assert not is_allowed(ADMIN, BookingOperation.UPDATE, _booking())
    assert not is_allowed(OTHER_CUSTOMER, BookingOperation.UPDATE, _booking())


@pytest.mark.parametrize(
    "operation", [BookingOperation.CONFIRM, BookingOperation.START, BookingOperation.COMPLETE]
)
def test_work_transitions_are_professional_only(operation):
    assert is_allowed(PROFESSIONAL, operation, _booking())
    assert not is_allowed(CUSTOMER, operation, _booking())
    assert not is_allowed(ADMIN, operation, _booking())
    assert not is_allowed(OTHER_PROFESSIONAL, operation, _booking())


@pytest.mark.parametrize("status", ["pending", "confirmed"])
def test_cancel_before_work_starts(status):
    booking = _booking(status)
    assert is_allowed(CUSTOMER, BookingOperation.CANCEL, booking)
    assert is_allowed(PROFESSIONAL, BookingOperation.CANCEL, booking)
    assert is_allowed(ADMIN, BookingOperation.CANCEL, booking)
    assert not is_allowed(OTHER_CUSTOMER, BookingOperation.CANCEL, booking)


def test_cancel_in_progress_is_professional_only():
    booking = _booking("in_progress")
    assert is_allowed(PROFESSIONAL, BookingOperation.CANCEL, booking)
    assert not is_allowed(CUSTOMER, BookingOperation.CANCEL, booking)
    assert not is_allowed(ADMIN, BookingOperation.CANCEL, booking)


def test_review_and_discount():
    assert is_allowed(CUSTOMER, BookingOperation.REVIEW, _booking("completed"))
    assert not is_allowed(PROFESSIONAL, BookingOperation.REVIEW, _booking("completed"))
    assert is_allowed(PROFESSIONAL, BookingOperation.APPLY_DISCOUNT, _booking())
    assert is_allowed(ADMIN, BookingOperation.APPLY_DISCOUNT, _booking())
    assert not is_allowed(CUSTOMER, BookingOperation.APPLY_DISCOUNT, _booking())
