# backend/franchise_booking/routes/v1/reviews.py
"""
Reviews routes - API v1

Versioned review endpoints under /api/v1/reviews.
All business logic delegated to ReviewService.

Endpoints:
    POST /                                      → Submit a review (customer)
    GET /                                       → List reviews
    GET /professionals/{professional_id}/rating → Rating aggregate (public)
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies.auth import get_current_caller
from ...api.dependencies.services import get_review_service
from ...core.exceptions import DomainException
from ...principal import CallerIdentity
from ...schemas.base import PaginatedResponse, PaginationMeta
from ...schemas.review import (
    RatingAggregateResponse,
    ReviewCreate,
    ReviewResponse,
    ReviewSubmitResponse,
)
from ...services.review_service import ReviewService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["reviews-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=ReviewSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_review(
    payload: ReviewCreate = Body(...),
    caller: CallerIdentity = Depends(get_current_caller),
    service: ReviewService = Depends(get_review_service),
) -> ReviewSubmitResponse:
    """
    Submit a review for a completed booking.

    Customers can submit one review per booking. If the professional's
    aggregate could not be refreshed the review is still saved and
    ``warning`` says so.
    """
    try:
        result = await asyncio.to_thread(service.submit_review, caller, payload)
        aggregate = result["aggregate"]
        return ReviewSubmitResponse(
            review=ReviewResponse.model_validate(result["review"]),
            aggregate=RatingAggregateResponse(**aggregate) if aggregate else None,
            warning=result["warning"],
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("", response_model=PaginatedResponse[ReviewResponse])
async def list_reviews(
    professional_id: Optional[str] = Query(None),
    booking_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    caller: CallerIdentity = Depends(get_current_caller),
    service: ReviewService = Depends(get_review_service),
) -> PaginatedResponse[ReviewResponse]:
    """Reviews newest first, filtered by professional or booking."""
    try:
        reviews, total = await asyncio.to_thread(
            service.list_reviews,
            caller,
            professional_id=professional_id,
            booking_id=booking_id,
            page=page,
            limit=limit,
        )
        return PaginatedResponse[ReviewResponse](
            items=[ReviewResponse.model_validate(review) for review in reviews],
            pagination=PaginationMeta(page=page, limit=limit, total=total),
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/professionals/{professional_id}/rating", response_model=RatingAggregateResponse)
def get_professional_rating(
    professional_id: str,
    service: ReviewService = Depends(get_review_service),
) -> RatingAggregateResponse:
    """
    Get a professional's rating aggregate.

    Public endpoint - no authentication required.
    """
    try:
        return RatingAggregateResponse(**service.get_professional_rating(professional_id))
    except DomainException as exc:
        handle_domain_exception(exc)
