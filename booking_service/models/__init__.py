"""SQLAlchemy models for the booking service.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from booking_service.models.booking import Booking, BookingStatus
from booking_service.models.car import Car

__all__ = [
    "Booking",
    "BookingStatus",
    "Car",
]
