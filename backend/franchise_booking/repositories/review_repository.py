# backend/franchise_booking/repositories/review_repository.py
"""
Repository for reviews and the per-professional rating totals.

Follows repository pattern: no business logic, DB-only operations.
"""

import logging
from typing import Any, List, Mapping, Optional, Tuple, TypedDict, cast

from sqlalchemy import func
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.review import Review
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProfessionalAggregate(TypedDict):
    total_reviews: int
    rating_sum: int


class ReviewRepository(BaseRepository[Review]):
    """Data access for `Review`."""

    def __init__(self, db: Session):
        super().__init__(db, Review)
        self.logger = logging.getLogger(__name__)

    def create_review(self, **kwargs: Any) -> Review:
        """Insert a review; unique-constraint violations propagate as IntegrityError."""
        try:
            review = Review(**kwargs)
            self.db.add(review)
            self.db.flush()
            return review
        except IntegrityError:
            raise
        except Exception as e:
            self.logger.error(f"Error creating review: {e}")
            raise RepositoryException(f"Failed to create review: {e}") from e

    def exists_for_booking(self, booking_id: str) -> bool:
        try:
            return (
                self.db.query(self.model.id).filter(self.model.booking_id == booking_id).first()
                is not None
            )
        except Exception as e:
            self.logger.error(f"Error checking review existence: {e}")
            raise RepositoryException(f"Failed to check review existence: {e}") from e

    def get_by_booking_id(self, booking_id: str) -> Optional[Review]:
        try:
            return cast(
                Optional[Review],
                self.db.query(Review).filter(Review.booking_id == booking_id).first(),
            )
        except Exception as e:
            self.logger.error(f"Error fetching review by booking: {e}")
            raise RepositoryException(f"Failed to fetch review by booking: {e}") from e

    def get_professional_aggregates(self, professional_id: str) -> ProfessionalAggregate:
        """Return count and rating sum over every review of a professional."""
        try:
            row = (
                self.db.query(
                    func.count(Review.id).label("total_reviews"),
                    func.coalesce(func.sum(Review.rating), 0).label("rating_sum"),
                )
                .filter(Review.professional_id == professional_id)
                .first()
            )
            if not row:
                return {"total_reviews": 0, "rating_sum": 0}
            mapping: Mapping[str, Any] = cast(Row[Any], row)._mapping
            return {
                "total_reviews": int(mapping.get("total_reviews", 0) or 0),
                "rating_sum": int(mapping.get("rating_sum", 0) or 0),
            }
        except Exception as e:
            self.logger.error(f"Error aggregating professional reviews: {e}")
            raise RepositoryException(f"Failed to aggregate reviews: {e}") from e

    def list_reviews(
        self,
        *,
        professional_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        public_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Review], int]:
        query = self.db.query(Review)
        if professional_id:
            query = query.filter(Review.professional_id == professional_id)
        if booking_id:
            query = query.filter(Review.booking_id == booking_id)
        if public_only:
            query = query.filter(Review.is_public.is_(True))
        query = query.order_by(Review.created_at.desc(), Review.id.desc())
        return self._paginate(query, page, limit)
