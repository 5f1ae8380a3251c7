"""Booking status transition table.

``in_progress -> cancelled`` is legal here; who may perform it is decided by
the permission policy, not by this table.
"""

from typing import Dict, FrozenSet, Union

from ..core.enums import BookingOperation
from ..core.exceptions import InvalidTransitionException, ValidationException
from ..models.booking import BookingStatus

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

# Operation a caller performs when requesting each target status
OPERATION_FOR_TARGET: Dict[BookingStatus, BookingOperation] = {
    BookingStatus.CONFIRMED: BookingOperation.CONFIRM,
    BookingStatus.IN_PROGRESS: BookingOperation.START,
    BookingStatus.COMPLETED: BookingOperation.COMPLETE,
    BookingStatus.CANCELLED: BookingOperation.CANCEL,
}


def parse_status(value: Union[str, BookingStatus]) -> BookingStatus:
    """Coerce a raw status string, rejecting unknown values."""
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError as exc:
        raise ValidationException(
            f"Invalid status: {value}",
            code="INVALID_STATUS",
            details={"allowed": [status.value for status in BookingStatus]},
        ) from exc


def is_transition_allowed(current: Union[str, BookingStatus], requested: Union[str, BookingStatus]) -> bool:
    return parse_status(requested) in ALLOWED_TRANSITIONS[parse_status(current)]


def ensure_transition(current: Union[str, BookingStatus], requested: Union[str, BookingStatus]) -> BookingStatus:
    """
    Validate ``current -> requested`` and return the requested status.

    Raises:
        InvalidTransitionException: naming both statuses when the pair is illegal
    """
    current_status = parse_status(current)
    requested_status = parse_status(requested)
    if requested_status not in ALLOWED_TRANSITIONS[current_status]:
        raise InvalidTransitionException(current_status.value, requested_status.value)
    return requested_status
