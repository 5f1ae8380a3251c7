# backend/franchise_booking/repositories/booking_repository.py
"""
Booking Repository for the booking engine.

Implements data access for bookings:
- Booking creation that surfaces integrity errors for conflict handling
- Detail loading with service/professional/customer projections
- Caller-scoped, paginated listings
"""

from datetime import date
import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        """Initialize with Booking model."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        """
        Get a booking with its service, professional and customer loaded.

        Args:
            booking_id: The booking ID

        Returns:
            The booking with relationships, or None if not found
        """
        try:
            booking: Booking | None = (
                self._apply_eager_loading(self.db.query(Booking))
                .filter(Booking.id == booking_id)
                .first()
            )
            return booking
        except Exception as e:
            self.logger.error(f"Error getting booking details: {str(e)}")
            raise RepositoryException(f"Failed to get booking details: {str(e)}") from e

    def list_bookings(
        self,
        *,
        customer_id: Optional[str] = None,
        professional_id: Optional[str] = None,
        status: Optional[str] = None,
        booking_date: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        """
        List bookings newest first, filtered by any combination of fields.

        Returns:
            Tuple of (page of bookings, total matching bookings)
        """
        query = self._apply_eager_loading(self.db.query(Booking))
        if customer_id:
            query = query.filter(Booking.customer_id == customer_id)
        if professional_id:
            query = query.filter(Booking.professional_id == professional_id)
        if status:
            query = query.filter(Booking.status == status)
        if booking_date:
            query = query.filter(Booking.booking_date == booking_date)
        query = query.order_by(Booking.created_at.desc(), Booking.id.desc())
        return self._paginate(query, page, limit)

    # Helper method overrides

    def _apply_eager_loading(self, query: Query) -> Query:
        """Include the projections every booking read needs."""
        return query.options(
            joinedload(Booking.service),
            joinedload(Booking.professional),
            joinedload(Booking.customer),
        )
