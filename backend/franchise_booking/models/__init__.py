"""ORM models; importing this package registers every table on ``Base.metadata``."""

from .booking import (
    ACTIVE_BOOKING_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    RecurrencePattern,
)
from .professional import Customer, Professional
from .review import Review
from .service import Service

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "TERMINAL_BOOKING_STATUSES",
    "Booking",
    "BookingStatus",
    "Customer",
    "Professional",
    "RecurrencePattern",
    "Review",
    "Service",
]
