"""Review and rating schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import Money, StandardizedModel, StrictRequestModel


class ReviewCreate(StrictRequestModel):
    booking_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    punctuality_rating: Optional[int] = Field(None, ge=1, le=5)
    quality_rating: Optional[int] = Field(None, ge=1, le=5)
    communication_rating: Optional[int] = Field(None, ge=1, le=5)
    review_text: Optional[str] = None
    would_recommend: bool = True
    is_public: bool = True


class ReviewResponse(StandardizedModel):
    id: str
    booking_id: str
    customer_id: str
    professional_id: str
    rating: int
    punctuality_rating: int
    quality_rating: int
    communication_rating: int
    review_text: str
    would_recommend: bool
    is_public: bool
    created_at: datetime


class RatingAggregateResponse(StandardizedModel):
    professional_id: str
    rating_average: Money
    total_reviews: int


class ReviewSubmitResponse(StandardizedModel):
    review: ReviewResponse
    aggregate: Optional[RatingAggregateResponse] = None
    warning: Optional[str] = None
    message: str = "Review submitted successfully"
