# backend/franchise_booking/services/booking_service.py
"""
Booking Service for the booking engine.

Handles the booking lifecycle:
- Creation with conflict detection, pricing and a per-professional lock
- Reads scoped to the caller
- Rescheduling and detail edits
- Cancellation and status transitions

Every public operation takes an explicit ``CallerIdentity``; permission
decisions are delegated to ``core.booking_policy.is_allowed``.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import pytz
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.booking_policy import is_allowed
from ..core.config import settings
from ..core.enums import BookingOperation
from ..core.exceptions import (
    DependencyFailureException,
    ForbiddenException,
    InvalidInputException,
    InvalidTransitionException,
    NotFoundException,
    RepositoryException,
    SlotConflictException,
    ValidationException,
)
from ..models.booking import MINUTES_PER_DAY, TERMINAL_BOOKING_STATUSES, Booking, BookingStatus
from ..models.professional import Customer
from ..models.service import Service
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import CallerIdentity
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..schemas.booking import BookingCreate, BookingUpdate
from .base import BaseService
from .booking_transitions import ensure_transition, parse_status, OPERATION_FOR_TARGET
from .conflict_checker import ConflictChecker, from_minutes, to_minutes
from .pricing_service import (
    HUNDRED,
    ZERO,
    PriceBreakdown,
    calculate_booking_price,
    cancellation_fee_for,
    emergency_premium_for,
    quantize_money,
)

logger = logging.getLogger(__name__)

SLOT_CONFLICT_MESSAGE = "Time slot not available"
STORAGE_UNAVAILABLE_MESSAGE = "Booking storage is temporarily unavailable. Please retry."

_SCHEDULE_FIELDS = ("booking_date", "booking_time", "duration_hours")
_RESCHEDULABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass
class BookingCreationResult:
    booking: Booking
    payment_required: bool


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Check-then-insert is serialized per professional by locking the
    professional row for the whole write; the partial unique index (and the
    exclusion constraint on PostgreSQL) backs that up, and any constraint
    violation is reported as a slot conflict.
    """

    repository: BookingRepository

    @staticmethod
    def _is_deadlock_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode == "40P01":
            return True
        return "deadlock detected" in str(exc).lower()

    def __init__(
        self,
        db: Session,
        repository: Optional[BookingRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            repository: Optional BookingRepository instance
            conflict_checker: Optional ConflictChecker instance
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.professional_repository = RepositoryFactory.create_professional_repository(db)
        self.service_repository = RepositoryFactory.create_base_repository(db, Service)
        self.customer_repository = RepositoryFactory.create_base_repository(db, Customer)

    # Write plumbing

    @contextmanager
    def _booking_write(self, conflict_details: Dict[str, Any]) -> Iterator[None]:
        """
        Run a booking write in one transaction and translate storage errors.

        Constraint violations and deadlocks mean another writer took the slot.
        Repositories wrap driver errors in ``RepositoryException``, so the
        wrapped cause decides the outcome.
        """
        try:
            with self.repository.transaction():
                yield
        except (SQLAlchemyError, RepositoryException) as exc:
            cause = exc.__cause__ if isinstance(exc, RepositoryException) else exc
            if isinstance(cause, IntegrityError):
                prometheus_metrics.inc_booking_conflict("constraint")
                self.logger.warning(f"Booking constraint rejected write: {cause.orig}")
                raise SlotConflictException(SLOT_CONFLICT_MESSAGE, details=conflict_details) from exc
            if isinstance(cause, OperationalError) and self._is_deadlock_error(cause):
                prometheus_metrics.inc_booking_conflict("deadlock")
                self.logger.warning(f"Deadlock while writing booking: {cause.orig}")
                raise SlotConflictException(SLOT_CONFLICT_MESSAGE, details=conflict_details) from exc
            self.logger.error(f"Booking write failed: {exc}")
            raise DependencyFailureException(STORAGE_UNAVAILABLE_MESSAGE) from exc

    def _lock_professional(self, professional_id: str) -> None:
        if self.professional_repository.get_for_update(professional_id) is None:
            raise NotFoundException(
                "Professional not found", details={"professional_id": professional_id}
            )

    def _ensure_slot_free(
        self,
        professional_id: str,
        booking_date: date,
        start_time: time,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        end_time = from_minutes(to_minutes(start_time) + duration_minutes)
        conflicts = self.conflict_checker.check_booking_conflicts(
            professional_id, booking_date, start_time, end_time, exclude_booking_id
        )
        if conflicts:
            prometheus_metrics.inc_booking_conflict("checker")
            raise SlotConflictException(
                SLOT_CONFLICT_MESSAGE,
                details={
                    "professional_id": professional_id,
                    "booking_date": booking_date.isoformat(),
                    "booking_time": start_time.isoformat(timespec="minutes"),
                    "conflicts": conflicts,
                },
            )

    # Validation helpers

    @staticmethod
    def _resolve_duration_minutes(
        duration_hours: Optional[Union[Decimal, float, str]],
        default_hours: Optional[Union[Decimal, float, str]],
    ) -> int:
        raw = duration_hours if duration_hours is not None else default_hours
        if raw is None:
            raise InvalidInputException(
                "Duration is required when the service has no default duration",
                details={"field": "duration_hours"},
            )
        try:
            hours = Decimal(str(raw))
        except InvalidOperation as exc:
            raise InvalidInputException("Duration must be a number") from exc
        if hours <= 0:
            raise InvalidInputException(
                "Duration must be greater than zero",
                details={"field": "duration_hours", "value": str(hours)},
            )
        minutes = hours * 60
        if minutes != minutes.to_integral_value():
            raise InvalidInputException(
                "Duration must be a whole number of minutes",
                details={"field": "duration_hours", "value": str(hours)},
            )
        if minutes > settings.max_booking_duration_hours * 60:
            raise ValidationException(
                f"Bookings cannot exceed {settings.max_booking_duration_hours} hours",
                details={"field": "duration_hours", "value": str(hours)},
            )
        return int(minutes)

    @staticmethod
    def _ensure_same_day(start_time: time, duration_minutes: int) -> None:
        if to_minutes(start_time) + duration_minutes > MINUTES_PER_DAY:
            raise ValidationException(
                "Booking must end on the day it starts",
                details={
                    "booking_time": start_time.isoformat(timespec="minutes"),
                    "duration_minutes": duration_minutes,
                },
            )

    @staticmethod
    def _price(
        hourly_rate: Any,
        duration_minutes: int,
        *,
        call_out_fee: Any,
        emergency: bool,
        discount_amount: Any = None,
        discount_percent: Any = None,
    ) -> PriceBreakdown:
        hours = Decimal(duration_minutes) / Decimal(60)
        premium = ZERO
        if emergency:
            base_only = calculate_booking_price(hourly_rate, hours)
            premium = emergency_premium_for(base_only.base_amount, settings.emergency_premium_percent)
        return calculate_booking_price(
            hourly_rate,
            hours,
            call_out_fee=call_out_fee,
            emergency_premium=premium,
            discount_amount=discount_amount,
            discount_percent=discount_percent,
        )

    def _get_active_service(self, service_id: str) -> Service:
        service = self.service_repository.get_by_id(service_id)
        if service is None or not service.is_active:
            raise NotFoundException(
                "Service not found or no longer offered", details={"service_id": service_id}
            )
        return service

    def _get_or_404(self, booking_id: str, *, lock: bool = False) -> Booking:
        booking = (
            self.repository.get_for_update(booking_id)
            if lock
            else self.repository.get_booking_with_details(booking_id)
        )
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @staticmethod
    def _fixed_discount(booking: Booking) -> Decimal:
        """
        Fixed part of a booking's stored discount.

        ``discount_amount`` holds the fixed discount plus the percent share of
        the pre-discount total, both on the cent grid, so subtracting the
        percent share recovers the fixed part exactly.
        """
        percent = Decimal(booking.discount_percent or 0)
        gross = booking.base_amount + booking.call_out_fee + booking.emergency_premium
        percent_share = quantize_money(gross * percent / HUNDRED)
        return max(Decimal(booking.discount_amount) - percent_share, ZERO)

    def _cancellation_fee(self, booking: Booking, caller: CallerIdentity) -> Decimal:
        """Late customer cancellations may retain a share of the booking amount."""
        fee_percent = settings.late_cancellation_fee_percent
        if not fee_percent or not caller.is_customer:
            return ZERO
        tz = pytz.timezone(settings.business_timezone)
        starts_at = tz.localize(datetime.combine(booking.booking_date, booking.booking_time))
        hours_left = (starts_at - datetime.now(tz)).total_seconds() / 3600
        if hours_left >= settings.late_cancellation_hours:
            return ZERO
        return cancellation_fee_for(booking.final_amount, fee_percent)

    # Operations

    @BaseService.measure_operation("create_booking")
    def create_booking(self, caller: CallerIdentity, data: BookingCreate) -> BookingCreationResult:
        """
        Create a pending booking.

        Args:
            caller: Authenticated caller
            data: Booking request

        Returns:
            The persisted booking and whether payment is required

        Raises:
            ForbiddenException: Caller is not a party to the booking (or an admin),
                or a non-professional tried to apply a discount
            NotFoundException: Unknown or inactive service, unknown professional,
                customer or parent booking
            InvalidInputException: Duration or pricing inputs are invalid
            SlotConflictException: The professional is already booked in that window
            DependencyFailureException: Storage is unavailable
        """
        self.log_operation(
            "create_booking",
            caller_id=caller.id,
            professional_id=data.professional_id,
            booking_date=data.booking_date.isoformat(),
        )

        if not is_allowed(caller, BookingOperation.CREATE, data):
            raise ForbiddenException("You cannot create bookings on behalf of other users")
        has_discount = bool(data.discount_amount) or bool(data.discount_percent)
        if has_discount and not is_allowed(caller, BookingOperation.APPLY_DISCOUNT, data):
            raise ForbiddenException("Only the professional or an admin can apply a discount")

        service = self._get_active_service(data.service_id)
        duration_minutes = self._resolve_duration_minutes(data.duration_hours, service.duration_hours)
        self._ensure_same_day(data.booking_time, duration_minutes)
        price = self._price(
            service.price,
            duration_minutes,
            call_out_fee=service.call_out_fee,
            emergency=data.emergency_booking,
            discount_amount=data.discount_amount,
            discount_percent=data.discount_percent,
        )

        conflict_details = {
            "professional_id": data.professional_id,
            "booking_date": data.booking_date.isoformat(),
            "booking_time": data.booking_time.isoformat(timespec="minutes"),
        }
        with self._booking_write(conflict_details):
            self._lock_professional(data.professional_id)
            if not self.customer_repository.exists(id=data.customer_id):
                raise NotFoundException("Customer not found", details={"customer_id": data.customer_id})
            if data.parent_booking_id and not self.repository.exists(id=data.parent_booking_id):
                raise NotFoundException(
                    "Parent booking not found", details={"parent_booking_id": data.parent_booking_id}
                )

            self._ensure_slot_free(
                data.professional_id, data.booking_date, data.booking_time, duration_minutes
            )

            now = datetime.now(timezone.utc)
            booking = self.repository.create(
                customer_id=data.customer_id,
                professional_id=data.professional_id,
                service_id=data.service_id,
                parent_booking_id=data.parent_booking_id,
                booking_date=data.booking_date,
                booking_time=data.booking_time,
                duration_minutes=duration_minutes,
                hourly_rate=price.hourly_rate,
                base_amount=price.base_amount,
                call_out_fee=price.call_out_fee,
                emergency_premium=price.emergency_premium,
                discount_amount=price.discount_amount,
                discount_percent=data.discount_percent or ZERO,
                final_amount=price.final_amount,
                emergency_booking=data.emergency_booking,
                notes=data.notes,
                service_address=data.service_address,
                city=data.city,
                postal_code=data.postal_code,
                special_instructions=data.special_instructions,
                emergency_contact_name=data.emergency_contact_name,
                emergency_contact_phone=data.emergency_contact_phone,
                is_recurring=data.is_recurring,
                recurrence_pattern=data.recurrence_pattern.value if data.recurrence_pattern else None,
                recurrence_end_date=data.recurrence_end_date,
                status=BookingStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            booking_id = booking.id

        self.logger.info(
            f"Created booking {booking_id} for professional {data.professional_id} "
            f"on {data.booking_date} at {data.booking_time} ({duration_minutes}m, {price.final_amount})"
        )
        created = self._get_or_404(booking_id)
        return BookingCreationResult(booking=created, payment_required=price.final_amount > 0)

    @BaseService.measure_operation("get_booking")
    def get_booking(self, caller: CallerIdentity, booking_id: str) -> Booking:
        """Fetch one booking with its projections; parties and admins only."""
        booking = self._get_or_404(booking_id)
        if not is_allowed(caller, BookingOperation.VIEW, booking):
            raise ForbiddenException("You do not have access to this booking")
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self,
        caller: CallerIdentity,
        *,
        status: Optional[str] = None,
        professional_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        booking_date: Optional[date] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[Booking], int]:
        """
        List bookings visible to the caller, newest first.

        Customers only see their own bookings and professionals only the ones
        assigned to them; admins may filter freely.
        """
        if page < 1:
            raise ValidationException("page must be >= 1", details={"page": page})
        page_size = min(limit or settings.default_page_size, settings.max_page_size)
        if page_size < 1:
            raise ValidationException("limit must be >= 1", details={"limit": limit})

        if caller.is_customer:
            if customer_id and customer_id != caller.id:
                raise ForbiddenException("Customers can only list their own bookings")
            customer_id = caller.id
        elif caller.is_professional:
            if professional_id and professional_id != caller.id:
                raise ForbiddenException("Professionals can only list their own bookings")
            professional_id = caller.id

        status_value = parse_status(status).value if status else None
        return self.repository.list_bookings(
            customer_id=customer_id,
            professional_id=professional_id,
            status=status_value,
            booking_date=booking_date,
            page=page,
            limit=page_size,
        )

    @BaseService.measure_operation("update_booking")
    def update_booking(
        self, caller: CallerIdentity, booking_id: str, updates: BookingUpdate
    ) -> Booking:
        """
        Reschedule or edit a booking.

        Schedule changes re-run the availability check (ignoring the booking
        itself) and re-price from the rate captured at creation.

        Raises:
            NotFoundException: Unknown booking
            ForbiddenException: Caller is neither the customer nor the professional
            InvalidTransitionException: Booking can no longer be edited
            SlotConflictException: New window overlaps another active booking
        """
        changes = updates.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationException("No changes supplied")
        self.log_operation("update_booking", caller_id=caller.id, booking_id=booking_id, fields=sorted(changes))

        schedule_changed = any(key in changes for key in _SCHEDULE_FIELDS)

        with self._booking_write({"booking_id": booking_id}):
            booking = self._get_or_404(booking_id, lock=True)
            if not is_allowed(caller, BookingOperation.UPDATE, booking):
                raise ForbiddenException("Only the booking's customer or professional can modify it")

            current = parse_status(booking.status)
            if current in TERMINAL_BOOKING_STATUSES or (
                schedule_changed and current not in _RESCHEDULABLE_STATUSES
            ):
                raise InvalidTransitionException(
                    current.value,
                    "rescheduled" if schedule_changed else "updated",
                    message=f"Cannot modify booking in status {current.value}",
                )

            column_changes: Dict[str, Any] = {
                key: value for key, value in changes.items() if key not in _SCHEDULE_FIELDS
            }

            if schedule_changed:
                new_date = changes.get("booking_date") or booking.booking_date
                new_time = changes.get("booking_time") or booking.booking_time
                if changes.get("duration_hours") is not None:
                    new_minutes = self._resolve_duration_minutes(changes["duration_hours"], None)
                else:
                    new_minutes = int(booking.duration_minutes)
                self._ensure_same_day(new_time, new_minutes)

                self._lock_professional(booking.professional_id)
                self._ensure_slot_free(
                    booking.professional_id, new_date, new_time, new_minutes, exclude_booking_id=booking.id
                )

                price = self._price(
                    booking.hourly_rate,
                    new_minutes,
                    call_out_fee=booking.call_out_fee,
                    emergency=bool(booking.emergency_booking),
                    discount_amount=self._fixed_discount(booking),
                    discount_percent=booking.discount_percent,
                )
                column_changes.update(
                    booking_date=new_date,
                    booking_time=new_time,
                    duration_minutes=new_minutes,
                    base_amount=price.base_amount,
                    emergency_premium=price.emergency_premium,
                    discount_amount=price.discount_amount,
                    final_amount=price.final_amount,
                )

            column_changes["updated_at"] = datetime.now(timezone.utc)
            self.repository.apply_changes(booking, **column_changes)

        self.logger.info(f"Booking {booking_id} updated by {caller.id}")
        return self._get_or_404(booking_id)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, caller: CallerIdentity, booking_id: str, reason: Optional[str] = None
    ) -> Booking:
        """
        Cancel a pending or confirmed booking.

        Cancelling an already-cancelled booking is an error, not a no-op.

        Raises:
            NotFoundException: Unknown booking
            ForbiddenException: Caller is not a party to the booking (or an admin)
            InvalidTransitionException: Booking is not pending or confirmed
        """
        self.log_operation("cancel_booking", caller_id=caller.id, booking_id=booking_id)

        with self._booking_write({"booking_id": booking_id}):
            booking = self._get_or_404(booking_id, lock=True)
            if not is_allowed(caller, BookingOperation.VIEW, booking):
                raise ForbiddenException("You do not have access to this booking")

            current = parse_status(booking.status)
            if not booking.is_cancellable:
                raise InvalidTransitionException(
                    current.value,
                    BookingStatus.CANCELLED.value,
                    message="Cannot cancel booking in current status",
                )
            if not is_allowed(caller, BookingOperation.CANCEL, booking):
                raise ForbiddenException("You cannot cancel this booking")

            now = datetime.now(timezone.utc)
            self.repository.apply_changes(
                booking,
                status=BookingStatus.CANCELLED.value,
                cancelled_at=now,
                cancelled_by_id=caller.id,
                cancellation_reason=reason,
                cancellation_fee=self._cancellation_fee(booking, caller),
                updated_at=now,
            )

        prometheus_metrics.inc_booking_transition(current.value, BookingStatus.CANCELLED.value)
        self.logger.info(f"Booking {booking_id} cancelled by {caller.id} (was {current.value})")
        return self._get_or_404(booking_id)

    @BaseService.measure_operation("update_booking_status")
    def update_status(
        self, caller: CallerIdentity, booking_id: str, new_status: Union[str, BookingStatus]
    ) -> Booking:
        """
        Move a booking through its lifecycle.

        Raises:
            ValidationException: Unknown status value
            NotFoundException: Unknown booking
            ForbiddenException: Caller's role may not perform this transition
            InvalidTransitionException: ``current -> requested`` is not allowed
        """
        requested = parse_status(new_status)
        self.log_operation(
            "update_booking_status", caller_id=caller.id, booking_id=booking_id, requested=requested.value
        )

        with self._booking_write({"booking_id": booking_id}):
            booking = self._get_or_404(booking_id, lock=True)
            if not is_allowed(caller, BookingOperation.VIEW, booking):
                raise ForbiddenException("You do not have access to this booking")

            current = parse_status(booking.status)
            ensure_transition(current, requested)
            if not is_allowed(caller, OPERATION_FOR_TARGET[requested], booking):
                raise ForbiddenException(
                    f"Your role cannot move a booking to {requested.value}",
                    details={"current_status": current.value, "requested_status": requested.value},
                )

            now = datetime.now(timezone.utc)
            changes: Dict[str, Any] = {"status": requested.value, "updated_at": now}
            if requested == BookingStatus.CONFIRMED:
                changes["confirmed_at"] = now
            elif requested == BookingStatus.IN_PROGRESS:
                changes["started_at"] = now
            elif requested == BookingStatus.COMPLETED:
                changes["completed_at"] = now
            elif requested == BookingStatus.CANCELLED:
                changes.update(
                    cancelled_at=now,
                    cancelled_by_id=caller.id,
                    cancellation_fee=self._cancellation_fee(booking, caller),
                )
            self.repository.apply_changes(booking, **changes)

        prometheus_metrics.inc_booking_transition(current.value, requested.value)
        self.logger.info(f"Booking {booking_id} moved {current.value} -> {requested.value} by {caller.id}")
        return self._get_or_404(booking_id)
