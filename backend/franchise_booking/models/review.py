# backend/franchise_booking/models/review.py
"""
Review model.

Design notes:
- ULID string IDs (26 chars)
- One review per booking, enforced by a unique constraint
- Reviews are immutable once written
- Sub-ratings default to the overall rating when the customer skips them
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Review(Base):
    """Per-booking review submitted by the booking's customer."""

    __tablename__ = "booking_reviews"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)
    professional_id = Column(String(26), ForeignKey("professionals.id"), nullable=False)

    rating = Column(Integer, nullable=False)
    punctuality_rating = Column(Integer, nullable=False)
    quality_rating = Column(Integer, nullable=False)
    communication_rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=False, default="")
    would_recommend = Column(Boolean, nullable=False, default=True)
    is_public = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    booking = relationship("Booking", back_populates="review")
    customer = relationship("Customer")

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_booking_reviews_booking"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_booking_reviews_rating_range"),
        CheckConstraint(
            "punctuality_rating >= 1 AND punctuality_rating <= 5",
            name="ck_booking_reviews_punctuality_range",
        ),
        CheckConstraint(
            "quality_rating >= 1 AND quality_rating <= 5",
            name="ck_booking_reviews_quality_range",
        ),
        CheckConstraint(
            "communication_rating >= 1 AND communication_rating <= 5",
            name="ck_booking_reviews_communication_range",
        ),
        Index("idx_booking_reviews_professional", "professional_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Review {self.id}: booking={self.booking_id}, rating={self.rating}>"
