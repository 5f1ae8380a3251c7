# backend/franchise_booking/services/conflict_checker.py
"""
Conflict Checker Service for the booking engine.

Handles booking conflict detection:
- Checking if a time range overlaps existing active bookings
- Listing open start times on a day's slot grid

Intervals are half-open: a booking ending at 11:00 does not conflict with
one starting at 11:00. Only pending, confirmed and in-progress bookings
hold time.
"""

from dataclasses import dataclass, field
from datetime import date, time
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..models.booking import MINUTES_PER_DAY, Booking
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityResult:
    available: bool
    conflicts: List[Dict[str, Any]] = field(default_factory=list)


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Clock time for a minute offset; 1440 wraps to midnight."""
    minutes %= MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def window_minutes(start_time: time, end_time: time) -> Tuple[int, int]:
    """
    Convert a same-day time range to minute offsets.

    An end time of 00:00 after a non-midnight start means "until midnight".

    Raises:
        ValidationException: If the range is empty or runs backwards
    """
    start = to_minutes(start_time)
    end = to_minutes(end_time)
    if end == 0 and start != 0:
        end = MINUTES_PER_DAY
    if end <= start:
        raise ValidationException(
            "End time must be after start time",
            details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
        )
    return start, end


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap."""
    return start_a < end_b and start_b < end_a


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts.

    Read-only: never modifies bookings. Callers that act on the answer must
    hold the professional's row lock for the same transaction.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @staticmethod
    def _conflict_entry(booking: Booking) -> Dict[str, Any]:
        return {
            "booking_id": booking.id,
            "booking_time": booking.booking_time.isoformat(timespec="minutes"),
            "end_time": booking.end_time.isoformat(timespec="minutes"),
            "status": booking.status,
            "service_id": booking.service_id,
        }

    @BaseService.measure_operation("check_booking_conflicts")
    def check_booking_conflicts(
        self,
        professional_id: str,
        check_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Check if a time range conflicts with existing bookings.

        Args:
            professional_id: The professional to check
            check_date: The date to check
            start_time: Start time of the range to check
            end_time: End time of the range to check
            exclude_booking_id: Optional booking ID to exclude from check

        Returns:
            List of conflicts with booking details
        """
        start, end = window_minutes(start_time, end_time)
        bookings = self.repository.get_bookings_for_conflict_check(
            professional_id, check_date, exclude_booking_id
        )

        conflicts = [
            self._conflict_entry(booking)
            for booking in bookings
            if overlaps(start, end, booking.start_minutes, booking.end_minutes)
        ]

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for {professional_id} "
                f"on {check_date} between {start_time}-{end_time}"
            )

        return conflicts

    @BaseService.measure_operation("check_availability")
    def check_availability(
        self,
        professional_id: str,
        check_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """Boolean availability plus the bookings standing in the way."""
        conflicts = self.check_booking_conflicts(
            professional_id, check_date, start_time, end_time, exclude_booking_id
        )
        return AvailabilityResult(available=not conflicts, conflicts=conflicts)

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self, professional_id: str, target_date: date, duration_minutes: int
    ) -> List[Dict[str, time]]:
        """
        List start times on the business-hours grid where a booking of
        ``duration_minutes`` would not overlap any active booking.

        Args:
            professional_id: The professional
            target_date: The day to inspect
            duration_minutes: Length of the booking to place

        Returns:
            Slots as ``{"start_time", "end_time"}`` dicts, earliest first
        """
        if duration_minutes <= 0:
            raise ValidationException(
                "Duration must be greater than zero", details={"duration_minutes": duration_minutes}
            )

        day_start = to_minutes(settings.business_day_start_time)
        day_end = to_minutes(settings.business_day_end_time)
        step = settings.slot_interval_minutes

        booked = [
            (booking.start_minutes, booking.end_minutes)
            for booking in self.repository.get_bookings_for_conflict_check(professional_id, target_date)
        ]

        slots = []
        for start in range(day_start, day_end - duration_minutes + 1, step):
            end = start + duration_minutes
            if any(overlaps(start, end, b_start, b_end) for b_start, b_end in booked):
                continue
            slots.append({"start_time": from_minutes(start), "end_time": from_minutes(end)})
        return slots
