# backend/franchise_booking/core/enums.py
"""
Core enums for the booking engine.

Roles are resolved by the upstream identity provider; the engine only
needs to know which of these three a caller acts as.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles a caller can hold when talking to the booking engine."""

    ADMIN = "admin"
    PROFESSIONAL = "professional"
    CUSTOMER = "customer"


class BookingOperation(str, Enum):
    """Operations gated by the booking permission policy."""

    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    APPLY_DISCOUNT = "apply_discount"
    CANCEL = "cancel"
    CONFIRM = "confirm"
    START = "start"
    COMPLETE = "complete"
    REVIEW = "review"
