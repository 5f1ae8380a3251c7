from decimal import Decimal

import pytest

from franchise_booking.core.exceptions import InvalidInputException
from franchise_booking.services.pricing_service import (
    calculate_booking_price,
    cancellation_fee_for,
    emergency_premium_for,
    quantize_money,
)


def test_base_times_duration_plus_call_out_fee():
    price = calculate_booking_price(Decimal("20.00"), Decimal("2"), call_out_fee=Decimal("5.00"))

    assert price.base_amount == Decimal("40.00")
    assert price.call_out_fee == Decimal("5.00")
    assert price.final_amount == Decimal("45.00")


def test_fractional_duration():
    price = calculate_booking_price("10", "1.5")

    assert price.base_amount == Decimal("15.00")
    assert price.final_amount == Decimal("15.00")


def test_duration_falls_back_to_service_default():
    price = calculate_booking_price(Decimal("30"), None, default_duration_hours=Decimal("2"))

    assert price.duration_hours == Decimal("2")
    assert price.final_amount == Decimal("60.00")


@pytest.mark.parametrize("duration", [None, 0, -1, "-0.5"])
def test_rejects_missing_or_non_positive_duration(duration):
    with pytest.raises(InvalidInputException):
        calculate_booking_price(Decimal("20"), duration)


def test_rejects_negative_rate():
    with pytest.raises(InvalidInputException):
        calculate_booking_price(Decimal("-1"), 1)


def test_rejects_missing_rate():
    with pytest.raises(InvalidInputException):
        calculate_booking_price(None, 1)


def test_rejects_negative_fee_and_excessive_percent():
    with pytest.raises(InvalidInputException):
        calculate_booking_price(Decimal("20"), 1, call_out_fee=Decimal("-5"))
    with pytest.raises(InvalidInputException):
        calculate_booking_price(Decimal("20"), 1, discount_percent=Decimal("101"))


def test_emergency_premium_and_discounts():
    premium = emergency_premium_for(Decimal("40.00"), 25)
    price = calculate_booking_price(
        Decimal("20"),
        2,
        call_out_fee=Decimal("5"),
        emergency_premium=premium,
        discount_amount=Decimal("5"),
        discount_percent=Decimal("10"),
    )

    assert premium == Decimal("10.00")
    # gross 55.00, discount 5.00 + 5.50
    assert price.discount_amount == Decimal("10.50")
    assert price.final_amount == Decimal("44.50")


def test_discount_larger_than_total_clamps_to_zero():
    price = calculate_booking_price(Decimal("10"), 1, discount_amount=Decimal("50"))

    assert price.final_amount == Decimal("0.00")


def test_rounding_is_half_up():
    assert quantize_money(Decimal("0.125")) == Decimal("0.13")
    assert quantize_money(Decimal("2.675")) == Decimal("2.68")
    price = calculate_booking_price(Decimal("10.01"), Decimal("0.5"))
    assert price.base_amount == Decimal("5.01")


def test_cancellation_fee():
    assert cancellation_fee_for(Decimal("45.00"), 50) == Decimal("22.50")
    assert cancellation_fee_for(Decimal("45.00"), 0) == Decimal("0.00")
