# backend/franchise_booking/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the booking engine.

All conflict checking reads the self-contained booking fields
(date, start time, duration). Only active bookings hold time.
"""

from datetime import date
import logging
from typing import List, Optional, cast

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [status.value for status in ACTIVE_BOOKING_STATUSES]


class ConflictCheckerRepository(BaseRepository[Booking]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        """Initialize with Booking model as primary."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_bookings_for_conflict_check(
        self, professional_id: str, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """
        Get active bookings that could conflict with a time range on a date.

        Args:
            professional_id: The professional to check
            check_date: The date to check for conflicts
            exclude_booking_id: Optional booking ID to exclude from results

        Returns:
            Active bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.professional_id == professional_id,
                Booking.booking_date == check_date,
                Booking.status.in_(_ACTIVE_VALUES),
            )

            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)

            return cast(List[Booking], query.order_by(Booking.booking_time).all())

        except Exception as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}") from e
