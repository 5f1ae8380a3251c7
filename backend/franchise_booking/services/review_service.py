# backend/franchise_booking/services/review_service.py
"""
ReviewService: business logic for reviews/ratings.

Implements:
- Eligibility and submission (one per completed booking, customer only)
- Recomputation of the professional's rating aggregate with retry
- Paginated review listings and aggregate reads

The review is committed before the aggregate is recomputed. If the
recompute keeps failing the review still stands and the response carries
a warning instead of an error.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
import time
from typing import List, Optional, Tuple, TypedDict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.booking_policy import is_allowed
from ..core.config import settings
from ..core.enums import BookingOperation
from ..core.exceptions import (
    DependencyFailureException,
    DuplicateReviewException,
    NotEligibleException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.booking import BookingStatus
from ..models.review import Review
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import CallerIdentity
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.professional_repository import ProfessionalRepository
from ..repositories.review_repository import ReviewRepository
from ..schemas.review import ReviewCreate
from .base import BaseService

RATING_STEP = Decimal("0.1")
AGGREGATE_DELAYED_WARNING = "Rating aggregate update is delayed"


class RatingAggregate(TypedDict):
    professional_id: str
    rating_average: Decimal
    total_reviews: int


class ReviewSubmissionResult(TypedDict):
    review: Review
    aggregate: Optional[RatingAggregate]
    warning: Optional[str]


def average_rating(rating_sum: int, total_reviews: int) -> Decimal:
    """Mean rating rounded half-up to one decimal; 0.0 with no reviews."""
    if total_reviews <= 0:
        return Decimal("0.0")
    return (Decimal(rating_sum) / Decimal(total_reviews)).quantize(RATING_STEP, rounding=ROUND_HALF_UP)


class ReviewService(BaseService):
    """Service layer for reviews & ratings."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repository: ReviewRepository = RepositoryFactory.create_review_repository(db)
        self.booking_repository: BookingRepository = RepositoryFactory.create_booking_repository(db)
        self.professional_repository: ProfessionalRepository = (
            RepositoryFactory.create_professional_repository(db)
        )

    @BaseService.measure_operation("submit_review")
    def submit_review(self, caller: CallerIdentity, data: ReviewCreate) -> ReviewSubmissionResult:
        """
        Submit a review for a completed booking.

        Sub-ratings default to the overall rating when omitted.

        Raises:
            ValidationException: Review text too long
            NotFoundException: Unknown booking
            NotEligibleException: Caller is not the booking's customer, or the
                booking is not completed
            DuplicateReviewException: The booking already has a review
        """
        review_text = (data.review_text or "").strip()
        if len(review_text) > settings.review_text_max_length:
            raise ValidationException(
                f"Review text cannot exceed {settings.review_text_max_length} characters",
                details={"field": "review_text"},
            )

        booking = self.booking_repository.get_by_id(data.booking_id, load_relationships=False)
        if not booking:
            raise NotFoundException("Booking not found", details={"booking_id": data.booking_id})

        # Eligibility
        if not is_allowed(caller, BookingOperation.REVIEW, booking):
            raise NotEligibleException(
                "You can only review your own booking", details={"booking_id": booking.id}
            )
        if booking.status != BookingStatus.COMPLETED.value:
            raise NotEligibleException(
                "Can only review completed bookings",
                details={"booking_id": booking.id, "status": booking.status},
            )
        if self.repository.exists_for_booking(booking.id):
            raise DuplicateReviewException(booking.id)

        self.log_operation("submit_review", caller_id=caller.id, booking_id=booking.id, rating=data.rating)

        try:
            with self.repository.transaction():
                review = self.repository.create_review(
                    booking_id=booking.id,
                    customer_id=booking.customer_id,
                    professional_id=booking.professional_id,
                    rating=data.rating,
                    punctuality_rating=data.punctuality_rating or data.rating,
                    quality_rating=data.quality_rating or data.rating,
                    communication_rating=data.communication_rating or data.rating,
                    review_text=review_text,
                    would_recommend=data.would_recommend,
                    is_public=data.is_public,
                )
        except IntegrityError as exc:
            # Lost a race with a concurrent submission for the same booking
            raise DuplicateReviewException(booking.id) from exc
        except (SQLAlchemyError, RepositoryException) as exc:
            self.logger.error(f"Failed to store review for booking {booking.id}: {exc}")
            raise DependencyFailureException(
                "Booking storage is temporarily unavailable. Please retry."
            ) from exc

        aggregate, warning = self._recompute_with_retry(booking.professional_id)
        return {"review": review, "aggregate": aggregate, "warning": warning}

    def _recompute_with_retry(
        self, professional_id: str
    ) -> Tuple[Optional[RatingAggregate], Optional[str]]:
        attempts = max(1, settings.rating_recompute_attempts)
        for attempt in range(attempts):
            try:
                return self.recompute_professional_rating(professional_id), None
            except DependencyFailureException as exc:
                self.logger.warning(
                    f"Rating recompute for {professional_id} failed "
                    f"(attempt {attempt + 1}/{attempts}): {exc.__cause__ or exc}"
                )
                if attempt + 1 < attempts:
                    time.sleep(settings.rating_recompute_backoff_seconds * (2**attempt))

        self.logger.error(
            f"Giving up on rating recompute for {professional_id} after {attempts} attempts"
        )
        prometheus_metrics.inc_rating_recompute_failure()
        return None, AGGREGATE_DELAYED_WARNING

    @BaseService.measure_operation("recompute_professional_rating")
    def recompute_professional_rating(self, professional_id: str) -> RatingAggregate:
        """
        Recompute ``rating_average`` and ``total_reviews`` from every review.

        The professional row is locked so concurrent recomputes serialize and
        the last writer sees all committed reviews.
        """
        with self.transaction():
            professional = self.professional_repository.get_for_update(professional_id)
            if professional is None:
                raise NotFoundException(
                    "Professional not found", details={"professional_id": professional_id}
                )
            stats = self.repository.get_professional_aggregates(professional_id)
            rating_average = average_rating(stats["rating_sum"], stats["total_reviews"])
            self.professional_repository.set_rating_aggregate(
                professional, rating_average, stats["total_reviews"]
            )

        self.logger.info(
            f"Professional {professional_id} rating now {rating_average} "
            f"over {stats['total_reviews']} reviews"
        )
        return {
            "professional_id": professional_id,
            "rating_average": rating_average,
            "total_reviews": stats["total_reviews"],
        }

    @BaseService.measure_operation("get_professional_rating")
    def get_professional_rating(self, professional_id: str) -> RatingAggregate:
        professional = self.professional_repository.get_by_id(professional_id, load_relationships=False)
        if professional is None:
            raise NotFoundException("Professional not found", details={"professional_id": professional_id})
        return {
            "professional_id": professional.id,
            "rating_average": Decimal(professional.rating_average or 0).quantize(RATING_STEP),
            "total_reviews": int(professional.total_reviews or 0),
        }

    @BaseService.measure_operation("list_reviews")
    def list_reviews(
        self,
        caller: CallerIdentity,
        *,
        professional_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[Review], int]:
        """List reviews newest first; private reviews only for admins and the reviewed professional."""
        if page < 1:
            raise ValidationException("page must be >= 1", details={"page": page})
        page_size = min(limit or settings.default_page_size, settings.max_page_size)
        can_see_private = caller.is_admin or (
            caller.is_professional and professional_id is not None and caller.id == professional_id
        )
        return self.repository.list_reviews(
            professional_id=professional_id,
            booking_id=booking_id,
            public_only=not can_see_private,
            page=page,
            limit=page_size,
        )
