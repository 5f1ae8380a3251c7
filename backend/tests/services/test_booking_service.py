from datetime import time
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from franchise_booking.core.config import settings
from franchise_booking.core.exceptions import (
    DependencyFailureException,
    ForbiddenException,
    InvalidInputException,
    InvalidTransitionException,
    NotFoundException,
    SlotConflictException,
    ValidationException,
)
from franchise_booking.models.booking import Booking, BookingStatus
from franchise_booking.schemas.booking import BookingUpdate


class TestCreateBooking:
    def test_creates_pending_booking_with_price(self, booking_service, customer_caller, booking_payload):
        result = booking_service.create_booking(customer_caller, booking_payload())

        booking = result.booking
        assert booking.status == BookingStatus.PENDING.value
        assert booking.duration_minutes == 120
        assert booking.end_time == time(12, 0)
        assert booking.hourly_rate == Decimal("20.00")
        assert booking.base_amount == Decimal("40.00")
        assert booking.final_amount == Decimal("45.00")
        assert result.payment_required is True
        assert booking.service.name == "Deep clean"
        assert booking.customer.first_name == "Ada"

    def test_requested_duration_overrides_service_default(self, make_booking):
        booking = make_booking(duration_hours=Decimal("1.5"))

        assert booking.duration_minutes == 90
        assert booking.final_amount == Decimal("35.00")

    def test_emergency_booking_adds_premium(self, make_booking):
        booking = make_booking(emergency_booking=True)

        assert booking.emergency_premium == Decimal("10.00")
        assert booking.final_amount == Decimal("55.00")

    def test_overlapping_booking_is_rejected(self, make_booking, other_customer_caller, other_customer):
        make_booking()

        with pytest.raises(SlotConflictException) as exc_info:
            make_booking(
                caller=other_customer_caller,
                customer_id=other_customer.id,
                booking_time=time(11, 0),
                duration_hours=Decimal("1"),
            )

        assert exc_info.value.code == "SLOT_CONFLICT"
        assert exc_info.value.message == "Time slot not available"
        assert len(exc_info.value.details["conflicts"]) == 1

    @pytest.mark.parametrize("start", [time(8, 0), time(12, 0), time(13, 30)])
    def test_adjacent_or_separate_bookings_are_allowed(self, make_booking, start):
        make_booking()

        booking = make_booking(booking_time=start, duration_hours=Decimal("1"))

        assert booking.status == BookingStatus.PENDING.value

    def test_other_professional_is_independent(self, make_booking, other_professional):
        make_booking()

        booking = make_booking(professional_id=other_professional.id)

        assert booking.professional_id == other_professional.id

    def test_cancelled_booking_frees_the_slot(self, make_booking, booking_service, customer_caller):
        first = make_booking()
        booking_service.cancel_booking(customer_caller, first.id, "Plans changed")

        second = make_booking()

        assert second.id != first.id

    def test_unique_index_catches_race_past_checker(self, db, make_booking, booking_service):
        make_booking()

        with patch.object(booking_service.conflict_checker, "check_booking_conflicts", return_value=[]):
            with pytest.raises(SlotConflictException):
                make_booking()

        assert db.query(Booking).count() == 1

    def test_deadlock_on_professional_lock_is_reported_as_conflict(
        self, db, booking_service, customer_caller, booking_payload
    ):
        deadlock = OperationalError("SELECT ... FOR UPDATE", {}, Exception("deadlock detected"))

        with patch("sqlalchemy.orm.Query.with_for_update", side_effect=deadlock):
            with pytest.raises(SlotConflictException):
                booking_service.create_booking(customer_caller, booking_payload())

        assert db.query(Booking).count() == 0

    def test_deadlock_on_insert_is_reported_as_conflict(self, db, booking_service, customer_caller, booking_payload):
        deadlock = OperationalError("INSERT", {}, Exception("deadlock detected"))

        with patch.object(db, "flush", side_effect=deadlock):
            with pytest.raises(SlotConflictException):
                booking_service.create_booking(customer_caller, booking_payload())

    def test_storage_outage_is_dependency_failure(self, db, booking_service, customer_caller, booking_payload):
        outage = OperationalError("INSERT", {}, Exception("server closed the connection"))

        with patch.object(db, "flush", side_effect=outage):
            with pytest.raises(DependencyFailureException):
                booking_service.create_booking(customer_caller, booking_payload())

    def test_customer_cannot_book_for_someone_else(self, booking_service, other_customer_caller, booking_payload):
        with pytest.raises(ForbiddenException):
            booking_service.create_booking(other_customer_caller, booking_payload())

    def test_customer_cannot_apply_discount(self, booking_service, customer_caller, booking_payload):
        with pytest.raises(ForbiddenException):
            booking_service.create_booking(customer_caller, booking_payload(discount_percent=Decimal("10")))

    def test_professional_can_apply_discount(self, booking_service, professional_caller, booking_payload):
        result = booking_service.create_booking(
            professional_caller, booking_payload(discount_amount=Decimal("45"))
        )

        assert result.booking.final_amount == Decimal("0.00")
        assert result.payment_required is False

    def test_unknown_service_or_professional(self, booking_service, admin_caller, booking_payload):
        with pytest.raises(NotFoundException):
            booking_service.create_booking(admin_caller, booking_payload(service_id="missing"))
        with pytest.raises(NotFoundException):
            booking_service.create_booking(admin_caller, booking_payload(professional_id="missing"))

    def test_inactive_service_is_not_bookable(self, db, service, booking_service, customer_caller, booking_payload):
        service.is_active = False
        db.commit()

        with pytest.raises(NotFoundException):
            booking_service.create_booking(customer_caller, booking_payload())

    def test_invalid_durations(self, booking_service, customer_caller, booking_payload):
        with pytest.raises(InvalidInputException):
            booking_service.create_booking(customer_caller, booking_payload(duration_hours=Decimal("0")))
        with pytest.raises(ValidationException):
            booking_service.create_booking(
                customer_caller, booking_payload(duration_hours=Decimal(settings.max_booking_duration_hours + 1))
            )

    def test_booking_cannot_cross_midnight(self, booking_service, customer_caller, booking_payload):
        with pytest.raises(ValidationException):
            booking_service.create_booking(customer_caller, booking_payload(booking_time=time(23, 0)))

    def test_booking_may_end_exactly_at_midnight(self, make_booking):
        booking = make_booking(booking_time=time(22, 0))

        assert booking.end_time == time(0, 0)
        assert booking.end_minutes == 1440

    def test_recurring_booking_links_to_parent(self, make_booking, booking_day):
        parent = make_booking(is_recurring=True, recurrence_pattern="weekly")

        child = make_booking(
            booking_time=time(14, 0),
            is_recurring=True,
            recurrence_pattern="weekly",
            parent_booking_id=parent.id,
        )

        assert child.parent_booking_id == parent.id
        assert child.recurrence_pattern == "weekly"

    def test_unknown_parent_booking(self, make_booking):
        with pytest.raises(NotFoundException):
            make_booking(parent_booking_id="01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestReadBookings:
    def test_parties_and_admin_can_view(
        self, make_booking, booking_service, customer_caller, professional_caller, admin_caller
    ):
        booking = make_booking()

        for caller in (customer_caller, professional_caller, admin_caller):
            assert booking_service.get_booking(caller, booking.id).id == booking.id

    def test_stranger_cannot_view(self, make_booking, booking_service, other_customer_caller):
        booking = make_booking()

        with pytest.raises(ForbiddenException):
            booking_service.get_booking(other_customer_caller, booking.id)

    def test_missing_booking(self, booking_service, customer_caller):
        with pytest.raises(NotFoundException):
            booking_service.get_booking(customer_caller, "missing")

    def test_list_is_scoped_to_caller(
        self,
        make_booking,
        booking_service,
        customer_caller,
        other_customer_caller,
        other_customer,
        admin_caller,
    ):
        make_booking()
        make_booking(booking_time=time(13, 0))
        make_booking(caller=other_customer_caller, customer_id=other_customer.id, booking_time=time(15, 0))

        mine, total = booking_service.list_bookings(customer_caller)
        assert total == 2
        assert {b.customer_id for b in mine} == {customer_caller.id}

        everything, total = booking_service.list_bookings(admin_caller)
        assert total == 3

        with pytest.raises(ForbiddenException):
            booking_service.list_bookings(customer_caller, customer_id=other_customer.id)

    def test_list_filters_and_pages(self, make_booking, booking_service, professional_caller):
        for hour in (8, 10, 12, 14, 16):
            make_booking(booking_time=time(hour, 0))

        page, total = booking_service.list_bookings(professional_caller, page=2, limit=2)
        assert total == 5
        assert len(page) == 2

        pending, total = booking_service.list_bookings(professional_caller, status="pending")
        assert total == 5
        confirmed, total = booking_service.list_bookings(professional_caller, status="confirmed")
        assert total == 0

    def test_list_rejects_unknown_status(self, booking_service, admin_caller):
        with pytest.raises(ValidationException):
            booking_service.list_bookings(admin_caller, status="archived")


class TestUpdateBooking:
    def test_reschedule_reprices_from_snapshot_rate(self, db, service, make_booking, booking_service, customer_caller):
        booking = make_booking()
        service.price = Decimal("99.00")
        db.commit()

        updated = booking_service.update_booking(
            customer_caller, booking.id, BookingUpdate(booking_time=time(14, 0), duration_hours=Decimal("3"))
        )

        assert updated.booking_time == time(14, 0)
        assert updated.duration_minutes == 180
        assert updated.final_amount == Decimal("65.00")

    def test_reschedule_may_overlap_its_own_old_window(self, make_booking, booking_service, customer_caller):
        booking = make_booking()

        updated = booking_service.update_booking(
            customer_caller, booking.id, BookingUpdate(booking_time=time(10, 30))
        )

        assert updated.booking_time == time(10, 30)

    def test_reschedule_onto_another_booking_conflicts(
        self, make_booking, booking_service, customer_caller
    ):
        make_booking(booking_time=time(14, 0))
        booking = make_booking()

        with pytest.raises(SlotConflictException):
            booking_service.update_booking(customer_caller, booking.id, BookingUpdate(booking_time=time(13, 0)))

    def test_unique_index_catches_reschedule_race_past_checker(
        self, db, make_booking, booking_service, customer_caller
    ):
        make_booking()
        later = make_booking(booking_time=time(14, 0))

        with patch.object(booking_service.conflict_checker, "check_booking_conflicts", return_value=[]):
            with pytest.raises(SlotConflictException) as exc_info:
                booking_service.update_booking(customer_caller, later.id, BookingUpdate(booking_time=time(10, 0)))

        assert exc_info.value.code == "SLOT_CONFLICT"
        db.refresh(later)
        assert later.booking_time == time(14, 0)

    def test_reschedule_deadlock_is_reported_as_conflict(self, db, make_booking, booking_service, customer_caller):
        booking = make_booking()
        deadlock = OperationalError("UPDATE", {}, Exception("deadlock detected"))

        with patch.object(db, "flush", side_effect=deadlock):
            with pytest.raises(SlotConflictException):
                booking_service.update_booking(customer_caller, booking.id, BookingUpdate(booking_time=time(14, 0)))

    @pytest.mark.parametrize(
        "discount_amount, created_final, rescheduled_final",
        [
            (None, Decimal("40.50"), Decimal("58.50")),
            (Decimal("5"), Decimal("35.50"), Decimal("53.50")),
        ],
    )
    def test_percent_discount_scales_with_new_duration(
        self,
        make_booking,
        booking_service,
        professional_caller,
        customer_caller,
        discount_amount,
        created_final,
        rescheduled_final,
    ):
        booking = make_booking(
            caller=professional_caller, discount_percent=Decimal("10"), discount_amount=discount_amount
        )
        assert booking.final_amount == created_final
        assert booking.discount_percent == Decimal("10")

        updated = booking_service.update_booking(
            customer_caller, booking.id, BookingUpdate(duration_hours=Decimal("3"))
        )

        assert updated.discount_percent == Decimal("10")
        assert updated.final_amount == rescheduled_final

    def test_detail_edit_keeps_schedule(self, make_booking, booking_service, professional_caller):
        booking = make_booking()

        updated = booking_service.update_booking(
            professional_caller, booking.id, BookingUpdate(notes="Bring a ladder", city="Utrecht")
        )

        assert updated.notes == "Bring a ladder"
        assert updated.city == "Utrecht"
        assert updated.booking_time == time(10, 0)

    def test_admin_cannot_edit(self, make_booking, booking_service, admin_caller):
        booking = make_booking()

        with pytest.raises(ForbiddenException):
            booking_service.update_booking(admin_caller, booking.id, BookingUpdate(notes="x"))

    def test_terminal_booking_cannot_be_edited(self, make_booking, booking_service, customer_caller):
        booking = make_booking()
        booking_service.cancel_booking(customer_caller, booking.id)

        with pytest.raises(InvalidTransitionException):
            booking_service.update_booking(customer_caller, booking.id, BookingUpdate(notes="x"))

    def test_empty_update_is_rejected(self, make_booking, booking_service, customer_caller):
        booking = make_booking()

        with pytest.raises(ValidationException):
            booking_service.update_booking(customer_caller, booking.id, BookingUpdate())


class TestCancelBooking:
    def test_customer_cancels_pending_booking(self, make_booking, booking_service, customer_caller):
        booking = make_booking()

        cancelled = booking_service.cancel_booking(customer_caller, booking.id, "Sick")

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_by_id == customer_caller.id
        assert cancelled.cancellation_reason == "Sick"
        assert cancelled.cancelled_at is not None
        assert cancelled.cancellation_fee == Decimal("0.00")

    def test_cancelling_twice_fails(self, make_booking, booking_service, customer_caller):
        booking = make_booking()
        booking_service.cancel_booking(customer_caller, booking.id)

        with pytest.raises(InvalidTransitionException) as exc_info:
            booking_service.cancel_booking(customer_caller, booking.id)

        assert exc_info.value.message == "Cannot cancel booking in current status"

    def test_stranger_cannot_cancel(self, make_booking, booking_service, other_customer_caller):
        booking = make_booking()

        with pytest.raises(ForbiddenException):
            booking_service.cancel_booking(other_customer_caller, booking.id)

    def test_in_progress_cannot_be_cancelled_here(
        self, make_booking, booking_service, professional_caller
    ):
        booking = make_booking()
        booking_service.update_status(professional_caller, booking.id, "confirmed")
        booking_service.update_status(professional_caller, booking.id, "in_progress")

        with pytest.raises(InvalidTransitionException):
            booking_service.cancel_booking(professional_caller, booking.id)

    def test_late_customer_cancellation_fee(
        self, monkeypatch, make_booking, booking_service, customer_caller, professional_caller
    ):
        monkeypatch.setattr(settings, "late_cancellation_fee_percent", 50)
        monkeypatch.setattr(settings, "late_cancellation_hours", 24 * 365)
        by_customer = make_booking()
        by_professional = make_booking(booking_time=time(14, 0))

        assert booking_service.cancel_booking(customer_caller, by_customer.id).cancellation_fee == Decimal("22.50")
        assert booking_service.cancel_booking(
            professional_caller, by_professional.id
        ).cancellation_fee == Decimal("0.00")


class TestUpdateStatus:
    def test_professional_walks_full_lifecycle(self, make_booking, complete_booking):
        booking = complete_booking(make_booking())

        assert booking.status == BookingStatus.COMPLETED.value
        assert booking.confirmed_at is not None
        assert booking.started_at is not None
        assert booking.completed_at is not None

    def test_customer_cannot_confirm(self, make_booking, booking_service, customer_caller):
        booking = make_booking()

        with pytest.raises(ForbiddenException):
            booking_service.update_status(customer_caller, booking.id, "confirmed")

    def test_illegal_jump_is_rejected(self, make_booking, booking_service, professional_caller):
        booking = make_booking()

        with pytest.raises(InvalidTransitionException) as exc_info:
            booking_service.update_status(professional_caller, booking.id, "completed")

        assert exc_info.value.details == {"current_status": "pending", "requested_status": "completed"}

    def test_completed_is_terminal(self, make_booking, complete_booking, booking_service, professional_caller):
        booking = complete_booking(make_booking())

        with pytest.raises(InvalidTransitionException):
            booking_service.update_status(professional_caller, booking.id, "cancelled")

    def test_only_professional_cancels_in_progress(
        self, make_booking, booking_service, professional_caller, customer_caller
    ):
        booking = make_booking()
        booking_service.update_status(professional_caller, booking.id, "confirmed")
        booking_service.update_status(professional_caller, booking.id, "in_progress")

        with pytest.raises(ForbiddenException):
            booking_service.update_status(customer_caller, booking.id, "cancelled")

        cancelled = booking_service.update_status(professional_caller, booking.id, "cancelled")
        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_by_id == professional_caller.id

    def test_unknown_status_value(self, make_booking, booking_service, professional_caller):
        booking = make_booking()

        with pytest.raises(ValidationException):
            booking_service.update_status(professional_caller, booking.id, "archived")
