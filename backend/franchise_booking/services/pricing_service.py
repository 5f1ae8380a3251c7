"""Centralized pricing calculations for bookings.

Everything here is pure: callers pass in the rate, duration and fee inputs
and get back an itemized breakdown. Amounts use Decimal with half-up
rounding to cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Optional, Union

from ..core.exceptions import InvalidInputException

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemized price of one booking."""

    hourly_rate: Decimal
    duration_hours: Decimal
    base_amount: Decimal
    call_out_fee: Decimal
    emergency_premium: Decimal
    discount_amount: Decimal
    final_amount: Decimal


def _to_decimal(value: Optional[Amount], field: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputException(
            f"{field} must be a number", details={"field": field, "value": str(value)}
        ) from exc
    if not result.is_finite():
        raise InvalidInputException(f"{field} must be a finite number", details={"field": field})
    return result


def _non_negative(value: Optional[Amount], field: str) -> Decimal:
    amount = _to_decimal(value, field)
    if amount is None:
        return ZERO
    if amount < 0:
        raise InvalidInputException(f"{field} cannot be negative", details={"field": field})
    return amount


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_booking_price(
    base_rate: Optional[Amount],
    duration_hours: Optional[Amount] = None,
    *,
    default_duration_hours: Optional[Amount] = None,
    call_out_fee: Optional[Amount] = None,
    emergency_premium: Optional[Amount] = None,
    discount_amount: Optional[Amount] = None,
    discount_percent: Optional[Amount] = None,
) -> PriceBreakdown:
    """
    Price a booking.

    ``final = base_rate * duration + call_out_fee + emergency_premium - discount``,
    where the discount is the fixed ``discount_amount`` plus ``discount_percent``
    of the pre-discount total. A negative result is clamped to zero.

    Args:
        base_rate: Hourly rate of the service
        duration_hours: Requested duration; falls back to ``default_duration_hours``
        default_duration_hours: The service's default duration
        call_out_fee: Flat fee for travelling to the customer
        emergency_premium: Surcharge for emergency bookings
        discount_amount: Fixed discount
        discount_percent: Percentage discount (0-100)

    Raises:
        InvalidInputException: If the duration is missing or not positive, the
            rate is missing or negative, or any fee or discount is negative.
    """
    rate = _to_decimal(base_rate, "base_rate")
    if rate is None:
        raise InvalidInputException("A base rate is required to price a booking")
    if rate < 0:
        raise InvalidInputException("base_rate cannot be negative", details={"field": "base_rate"})

    duration = _to_decimal(
        duration_hours if duration_hours is not None else default_duration_hours, "duration_hours"
    )
    if duration is None or duration <= 0:
        raise InvalidInputException(
            "Duration must be greater than zero",
            details={"field": "duration_hours", "value": str(duration)},
        )

    fee = _non_negative(call_out_fee, "call_out_fee")
    premium = _non_negative(emergency_premium, "emergency_premium")
    fixed_discount = _non_negative(discount_amount, "discount_amount")
    percent = _non_negative(discount_percent, "discount_percent")
    if percent > HUNDRED:
        raise InvalidInputException(
            "discount_percent cannot exceed 100", details={"field": "discount_percent"}
        )

    base_amount = quantize_money(rate * duration)
    gross = base_amount + fee + premium
    discount = quantize_money(fixed_discount + gross * percent / HUNDRED)
    final_amount = quantize_money(gross - discount)

    if final_amount < 0:
        logger.warning(
            f"Discount {discount} exceeds gross amount {gross}; clamping final amount to 0.00"
        )
        final_amount = ZERO

    return PriceBreakdown(
        hourly_rate=quantize_money(rate),
        duration_hours=duration,
        base_amount=base_amount,
        call_out_fee=quantize_money(fee),
        emergency_premium=quantize_money(premium),
        discount_amount=discount,
        final_amount=final_amount,
    )


def emergency_premium_for(base_amount: Decimal, premium_percent: Amount) -> Decimal:
    """Emergency surcharge as a percentage of the base amount."""
    percent = _non_negative(premium_percent, "emergency_premium_percent")
    return quantize_money(base_amount * percent / HUNDRED)


def cancellation_fee_for(final_amount: Amount, fee_percent: Amount) -> Decimal:
    """Fee retained when a booking is cancelled late."""
    amount = _non_negative(final_amount, "final_amount")
    percent = _non_negative(fee_percent, "late_cancellation_fee_percent")
    return quantize_money(amount * percent / HUNDRED)
