from decimal import Decimal

import pytest

from franchise_booking.services.review_service import average_rating


@pytest.mark.parametrize(
    "rating_sum, total, expected",
    [
        (12, 3, "4.0"),
        (14, 4, "3.5"),
        (13, 3, "4.3"),
        (14, 3, "4.7"),
        (81, 20, "4.1"),  # 4.05 rounds half-up
        (5, 1, "5.0"),
        (0, 0, "0.0"),
    ],
)
def test_average_rating(rating_sum, total, expected):
    assert average_rating(rating_sum, total) == Decimal(expected)
