import pytest

from franchise_booking.core.exceptions import InvalidTransitionException, ValidationException
from franchise_booking.models.booking import BookingStatus
from franchise_booking.services.booking_transitions import (
    ALLOWED_TRANSITIONS,
    ensure_transition,
    is_transition_allowed,
    parse_status,
)

ALLOWED = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "in_progress"),
    ("confirmed", "cancelled"),
    ("in_progress", "completed"),
    ("in_progress", "cancelled"),
}


@pytest.mark.parametrize("current", [status.value for status in BookingStatus])
@pytest.mark.parametrize("requested", [status.value for status in BookingStatus])
def test_transition_table(current, requested):
    assert is_transition_allowed(current, requested) == ((current, requested) in ALLOWED)


@pytest.mark.parametrize("terminal", ["completed", "cancelled", "no_show"])
def test_terminal_statuses_have_no_exits(terminal):
    assert ALLOWED_TRANSITIONS[BookingStatus(terminal)] == frozenset()


def test_ensure_transition_names_both_statuses():
    with pytest.raises(InvalidTransitionException) as exc_info:
        ensure_transition("pending", "completed")

    assert exc_info.value.code == "INVALID_TRANSITION"
    assert exc_info.value.details == {"current_status": "pending", "requested_status": "completed"}
    assert "pending" in exc_info.value.message and "completed" in exc_info.value.message


def test_ensure_transition_returns_requested_status():
    assert ensure_transition(BookingStatus.PENDING, "confirmed") == BookingStatus.CONFIRMED


def test_parse_status_rejects_unknown_values():
    with pytest.raises(ValidationException) as exc_info:
        parse_status("archived")

    assert exc_info.value.code == "INVALID_STATUS"
