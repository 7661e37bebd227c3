"""Rental price computation: whole days (rounded up) times the daily rate."""

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from booking_service.errors import ValidationError

_CENTS = Decimal("0.01")
_SECONDS_PER_HOUR = 3600

# Largest value bookings.total_price (NUMERIC(10, 2)) can hold.
MAX_TOTAL_PRICE = Decimal("99999999.99")


def days_between(pickup: datetime, dropoff: datetime) -> int:
    """Billable days for a rental: ``ceil(whole_hours / 24)``.

    Hours are truncated toward zero before rounding days up, so 24h59m is one
    day and 25h is two.
    """
    hours = int((dropoff - pickup).total_seconds() // _SECONDS_PER_HOUR)
    return math.ceil(hours / 24)


def compute_total_price(pickup: datetime, dropoff: datetime, price_per_day: Decimal) -> Decimal:
    """Total for the rental, in cents precision.

    Raises:
        ValidationError: If the total does not fit the stored price column.
    """
    days = days_between(pickup, dropoff)
    total = (Decimal(days) * Decimal(price_per_day)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if total > MAX_TOTAL_PRICE:
        raise ValidationError(
            "Booking total exceeds the maximum price",
            details={"totalPrice": str(total), "maximum": str(MAX_TOTAL_PRICE)},
        )
    return total
