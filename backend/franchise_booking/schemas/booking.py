# backend/franchise_booking/schemas/booking.py
"""
Booking schemas for the booking engine.

Bookings are self-contained: the request carries the date, start time and
(optionally) duration; the end time and all amounts are derived server-side.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from ..models.booking import BookingStatus, RecurrencePattern
from .base import Money, StandardizedModel, StrictRequestModel


def _strip_seconds(value: time) -> time:
    return value.replace(second=0, microsecond=0)


class BookingCreate(StrictRequestModel):
    """Create a booking for one service with one professional."""

    customer_id: str = Field(..., min_length=1, description="Customer the booking is for")
    professional_id: str = Field(..., min_length=1, description="Professional to book")
    service_id: str = Field(..., min_length=1, description="Catalog service being booked")
    booking_date: date = Field(..., description="Date of the booking")
    booking_time: time = Field(..., description="Start time")
    duration_hours: Optional[Decimal] = Field(
        None, description="Requested duration; defaults to the service's duration"
    )
    notes: Optional[str] = Field(None, max_length=2000)
    emergency_booking: bool = False

    service_address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    special_instructions: Optional[str] = Field(None, max_length=2000)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=50)

    discount_amount: Optional[Decimal] = Field(None, description="Fixed discount (professional/admin only)")
    discount_percent: Optional[Decimal] = Field(None, description="Percentage discount (professional/admin only)")

    parent_booking_id: Optional[str] = Field(None, description="Series parent for recurring bookings")
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[date] = None

    @field_validator("booking_time")
    @classmethod
    def _normalize_time(cls, value: time) -> time:
        return _strip_seconds(value)

    @model_validator(mode="after")
    def _validate_recurrence(self) -> "BookingCreate":
        if self.is_recurring and self.recurrence_pattern is None:
            raise ValueError("recurrence_pattern is required for recurring bookings")
        if not self.is_recurring and (self.recurrence_pattern or self.recurrence_end_date):
            raise ValueError("recurrence fields require is_recurring=true")
        if self.recurrence_end_date and self.recurrence_end_date < self.booking_date:
            raise ValueError("recurrence_end_date cannot be before booking_date")
        return self


class BookingUpdate(StrictRequestModel):
    """
    Patch a booking's schedule or details.

    Status is deliberately absent: status changes go through the status endpoint.
    """

    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    duration_hours: Optional[Decimal] = None
    notes: Optional[str] = Field(None, max_length=2000)
    service_address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    special_instructions: Optional[str] = Field(None, max_length=2000)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=50)

    @field_validator("booking_time")
    @classmethod
    def _normalize_time(cls, value: Optional[time]) -> Optional[time]:
        return _strip_seconds(value) if value is not None else value


class BookingStatusUpdate(StrictRequestModel):
    status: str = Field(..., description="Requested status")


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class ServiceSummary(StandardizedModel):
    id: str
    name: str
    price: Money
    duration_hours: Optional[Money] = None


class ProfessionalSummary(StandardizedModel):
    id: str
    business_name: str
    rating_average: Money
    total_reviews: int


class CustomerSummary(StandardizedModel):
    id: str
    first_name: str
    last_name: str


class BookingResponse(StandardizedModel):
    """Booking as returned by the API, with derived end time and projections."""

    id: str
    customer_id: str
    professional_id: str
    service_id: str
    parent_booking_id: Optional[str] = None

    booking_date: date
    booking_time: time
    end_time: time
    duration_minutes: int
    duration_hours: float

    hourly_rate: Money
    base_amount: Money
    call_out_fee: Money
    emergency_premium: Money
    discount_amount: Money
    discount_percent: Money = Money("0")
    final_amount: Money

    status: BookingStatus
    emergency_booking: bool
    notes: Optional[str] = None
    service_address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    special_instructions: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None

    cancellation_reason: Optional[str] = None
    cancellation_fee: Money = Money("0")
    cancelled_by_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[date] = None

    created_at: datetime
    updated_at: datetime

    service: Optional[ServiceSummary] = None
    professional: Optional[ProfessionalSummary] = None
    customer: Optional[CustomerSummary] = None


class BookingCreateResponse(StandardizedModel):
    booking: BookingResponse
    message: str = "Booking created successfully"
    payment_required: bool


class BookingActionResponse(StandardizedModel):
    booking: BookingResponse
    message: str


class AvailabilityCheckRequest(StrictRequestModel):
    professional_id: str = Field(..., min_length=1)
    date: date
    start_time: time
    end_time: time
    exclude_booking_id: Optional[str] = None

    @model_validator(mode="after")
    def _validate_range(self) -> "AvailabilityCheckRequest":
        midnight = time(0, 0)
        if self.end_time != midnight and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ConflictItem(StandardizedModel):
    booking_id: str
    booking_time: str
    end_time: str
    status: str
    service_id: str


class AvailabilityCheckResponse(StandardizedModel):
    available: bool
    conflicts: List[ConflictItem]
    professional_id: str
    date: date
    start_time: time
    end_time: time


class TimeSlot(StandardizedModel):
    start_time: time
    end_time: time


class AvailableSlotsResponse(StandardizedModel):
    professional_id: str
    date: date
    duration_minutes: int
    slots: List[TimeSlot]


def conflict_items(conflicts: List[Dict[str, Any]]) -> List[ConflictItem]:
    return [ConflictItem(**conflict) for conflict in conflicts]
