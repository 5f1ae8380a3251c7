"""
Booking permission policy.

Every role/ownership decision for bookings goes through ``is_allowed`` so
the rules live in one place:

- customers act on their own bookings, professionals on bookings assigned
  to them, admins on any booking
- only the assigned professional confirms, starts and completes work
- pending/confirmed bookings can be cancelled by either party or an admin;
  once work has started only the professional can cancel
- only the booking's customer reviews it
- only the professional (or an admin) can grant a discount
"""

from typing import Optional, Protocol

from ..principal import CallerIdentity
from .enums import BookingOperation


class BookingParties(Protocol):
    """Anything that names the two parties of a booking."""

    customer_id: str
    professional_id: str


def _status_of(booking: BookingParties) -> Optional[str]:
    status = getattr(booking, "status", None)
    return getattr(status, "value", status)


def is_allowed(caller: CallerIdentity, operation: BookingOperation, booking: BookingParties) -> bool:
    """Return True when ``caller`` may perform ``operation`` on ``booking``."""
    is_customer = caller.is_customer and caller.id == booking.customer_id
    is_professional = caller.is_professional and caller.id == booking.professional_id

    if operation in (BookingOperation.VIEW, BookingOperation.CREATE):
        return caller.is_admin or is_customer or is_professional

    if operation == BookingOperation.UPDATE:
        return is_customer or is_professional

    if operation == BookingOperation.APPLY_DISCOUNT:
        return caller.is_admin or is_professional

    if operation in (BookingOperation.CONFIRM, BookingOperation.START, BookingOperation.COMPLETE):
        return is_professional

    if operation == BookingOperation.CANCEL:
        if _status_of(booking) == "in_progress":
            return is_professional
        return caller.is_admin or is_customer or is_professional

    if operation == BookingOperation.REVIEW:
        return is_customer

    return False
