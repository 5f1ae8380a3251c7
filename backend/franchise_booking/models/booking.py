# backend/franchise_booking/models/booking.py
"""
Booking model for the franchise booking engine.

A booking is a commitment of a professional's time to a customer for one
catalog service on one day. Pricing inputs are snapshotted at booking time
so later catalog changes never rewrite history. Bookings are never
hard-deleted; cancellation is a status change.
"""

from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
import logging
from typing import cast

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Created, awaiting the professional
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"  # Legacy records only; nothing transitions into it


# Statuses that hold a professional's time
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
)

TERMINAL_BOOKING_STATUSES = (
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
)

_ACTIVE_SQL = "status IN ('pending', 'confirmed', 'in_progress')"


class RecurrencePattern(str, Enum):
    """Cadence of a recurring booking series."""

    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"


class Booking(Base):
    """
    Self-contained booking record between a customer and a professional.

    Time is stored as ``booking_date`` + ``booking_time`` + ``duration_minutes``;
    the end of the booking is always derived, never stored.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Core relationships
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)
    professional_id = Column(String(26), ForeignKey("professionals.id"), nullable=False)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    parent_booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True)

    # Schedule
    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    # Pricing snapshot
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    base_amount = Column(Numeric(10, 2), nullable=False)
    call_out_fee = Column(Numeric(10, 2), nullable=False, default=0)
    emergency_premium = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    final_amount = Column(Numeric(10, 2), nullable=False)

    # Request details
    emergency_booking = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    service_address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    special_instructions = Column(Text, nullable=True)
    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_fee = Column(Numeric(10, 2), nullable=False, default=0)

    # Recurrence tagging; series materialization happens elsewhere
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_pattern = Column(String(20), nullable=True)
    recurrence_end_date = Column(Date, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    customer = relationship("Customer", back_populates="bookings")
    professional = relationship("Professional", back_populates="bookings")
    service = relationship("Service")
    parent_booking = relationship("Booking", remote_side=[id], uselist=False)
    review = relationship("Review", back_populates="booking", uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "recurrence_pattern IS NULL OR recurrence_pattern IN ('weekly', 'bi_weekly', 'monthly')",
            name="ck_bookings_recurrence_pattern",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("final_amount >= 0", name="check_final_amount_non_negative"),
        CheckConstraint("hourly_rate >= 0", name="check_rate_non_negative"),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100", name="check_discount_percent_range"
        ),
        # Backstop for the check-then-insert race; overlapping windows are
        # rejected by the service and, on PostgreSQL, by an exclusion constraint.
        Index(
            "uq_bookings_professional_active_start",
            "professional_id",
            "booking_date",
            "booking_time",
            unique=True,
            postgresql_where=text(_ACTIVE_SQL),
            sqlite_where=text(_ACTIVE_SQL),
        ),
        Index("idx_bookings_professional_date", "professional_id", "booking_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: customer={self.customer_id}, "
            f"professional={self.professional_id}, date={self.booking_date}, "
            f"time={self.booking_time}+{self.duration_minutes}m, status={self.status}>"
        )

    @property
    def start_minutes(self) -> int:
        start = cast(time, self.booking_time)
        return start.hour * 60 + start.minute

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + int(cast(int, self.duration_minutes))

    @property
    def end_time(self) -> time:
        """Derived end of the booking; a booking ending at midnight reports 00:00."""
        start = datetime.combine(cast(date, self.booking_date), cast(time, self.booking_time))
        return (start + timedelta(minutes=int(cast(int, self.duration_minutes)))).time()

    @property
    def duration_hours(self) -> float:
        return int(cast(int, self.duration_minutes)) / 60

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    @property
    def is_cancellable(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)
