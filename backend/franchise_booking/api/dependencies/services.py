# backend/franchise_booking/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.conflict_checker import ConflictChecker
from ...services.review_service import ReviewService
from .database import get_db


def get_conflict_checker(db: Session = Depends(get_db)) -> ConflictChecker:
    """Get ConflictChecker instance for availability reads."""
    return ConflictChecker(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """
    Get booking service instance.

    Args:
        db: Database session

    Returns:
        BookingService instance
    """
    return BookingService(db)


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    """Get ReviewService instance."""
    return ReviewService(db)
