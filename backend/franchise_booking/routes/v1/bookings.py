# backend/franchise_booking/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService and ConflictChecker.

Endpoints:
    POST /                       → Create a booking
    GET /                        → List bookings visible to the caller
    POST /check-availability     → Check a time range for conflicts
    GET /availability            → Open start times for a day
    GET /{booking_id}            → Booking details
    PATCH /{booking_id}          → Reschedule or edit details
    PUT /{booking_id}/status     → Lifecycle transition
    POST /{booking_id}/cancel    → Cancel a booking
"""

import asyncio
from datetime import date
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies.auth import get_current_caller
from ...api.dependencies.services import get_booking_service, get_conflict_checker
from ...core.exceptions import DomainException
from ...principal import CallerIdentity
from ...schemas.base import PaginatedResponse, PaginationMeta
from ...schemas.booking import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    AvailableSlotsResponse,
    BookingActionResponse,
    BookingCancel,
    BookingCreate,
    BookingCreateResponse,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
    TimeSlot,
    conflict_items,
)
from ...services.booking_service import BookingService
from ...services.conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# =============================================================================
# Static routes first (before dynamic routes with path parameters)
# =============================================================================


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    caller: CallerIdentity = Depends(get_current_caller),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    """
    Create a booking.

    The new booking starts out pending; amounts are computed server-side.
    """
    try:
        result = await asyncio.to_thread(booking_service.create_booking, caller, booking_data)
        return BookingCreateResponse(
            booking=BookingResponse.model_validate(result.booking),
            payment_required=result.payment_required,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=PaginatedResponse[BookingResponse])
async def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    professional_id: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    booking_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    caller: CallerIdentity = Depends(get_current_caller),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaginatedResponse[BookingResponse]:
    """List bookings visible to the caller, newest first."""
    try:
        bookings, total = await asyncio.to_thread(
            booking_service.list_bookings,
            caller,
            status=status_filter,
            professional_id=professional_id,
            customer_id=customer_id,
            booking_date=booking_date,
            page=page,
            limit=limit,
        )
        return PaginatedResponse[BookingResponse](
            items=[BookingResponse.model_validate(booking) for booking in bookings],
            pagination=PaginationMeta(page=page, limit=limit, total=total),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/check-availability", response_model=AvailabilityCheckResponse)
async def check_availability(
    check_data: AvailabilityCheckRequest = Body(...),
    caller: CallerIdentity = Depends(get_current_caller),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> AvailabilityCheckResponse:
    """Check if a time range is free for a professional."""
    try:
        result = await asyncio.to_thread(
            conflict_checker.check_availability,
            check_data.professional_id,
            check_data.date,
            check_data.start_time,
            check_data.end_time,
            check_data.exclude_booking_id,
        )
        return AvailabilityCheckResponse(
            available=result.available,
            conflicts=conflict_items(result.conflicts),
            professional_id=check_data.professional_id,
            date=check_data.date,
            start_time=check_data.start_time,
            end_time=check_data.end_time,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/availability", response_model=AvailableSlotsResponse)
async def get_available_slots(
    professional_id: str = Query(..., min_length=1),
    target_date: date = Query(..., alias="date"),
    duration_minutes: int = Query(60, ge=1, le=24 * 60),
    caller: CallerIdentity = Depends(get_current_caller),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> AvailableSlotsResponse:
    """Open start times for a professional on one day."""
    try:
        slots = await asyncio.to_thread(
            conflict_checker.get_available_slots, professional_id, target_date, duration_minutes
        )
        return AvailableSlotsResponse(
            professional_id=professional_id,
            date=target_date,
            duration_minutes=duration_minutes,
            slots=[TimeSlot(**slot) for slot in slots],
        )
    except DomainException as e:
        handle_domain_exception(e)


# =============================================================================
# Dynamic routes with path parameters
# =============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Booking details for its customer, its professional or an admin."""
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, caller, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str,
    update_data: BookingUpdate = Body(...),
    caller: CallerIdentity = Depends(get_current_caller),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Reschedule a booking or edit its details; status is not editable here."""
    try:
        booking = await asyncio.to_thread(
            booking_service.update_booking, caller, booking_id, update_data
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/status", response_model=BookingActionResponse)
async def update_booking_status(
    booking_id: str,
    status_data: BookingStatusUpdate = Body(...),
    caller: CallerIdentity = Depends(get_current_caller),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    """Move a booking to its next lifecycle status."""
    try:
        booking = await asyncio.to_thread(
            booking_service.update_status, caller, booking_id, status_data.status
        )
        return BookingActionResponse(
            booking=BookingResponse.model_validate(booking),
            message=f"Booking status updated to {booking.status}",
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingActionResponse)
async def cancel_booking(
    booking_id: str,
    cancel_data: Optional[BookingCancel] = Body(None),
    caller: CallerIdentity = Depends(get_current_caller),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    """Cancel a pending or confirmed booking."""
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking,
            caller,
            booking_id,
            cancel_data.reason if cancel_data else None,
        )
        return BookingActionResponse(
            booking=BookingResponse.model_validate(booking),
            message="Booking cancelled successfully",
        )
    except DomainException as e:
        handle_domain_exception(e)
