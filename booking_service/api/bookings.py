"""Bookings API router.

Ownership rule: a user can only see or cancel their **own** bookings. Every
lookup is scoped by booking id *and* caller id inside the ledger, so a
foreign booking is indistinguishable from a missing one.
"""

import uuid

from fastapi import APIRouter, Depends, status

from booking_service.api.deps import get_current_user_id, get_ledger
from booking_service.errors import NotFoundError
from booking_service.models.booking import Booking
from booking_service.schemas.booking import AvailabilityRequest, BookingCreate, BookingResponse
from booking_service.services.booking_ledger import BookingLedger

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _parse_booking_id(booking_id: str) -> uuid.UUID:
    """Malformed ids are reported exactly like unknown ones."""
    try:
        return uuid.UUID(booking_id)
    except ValueError:
        raise NotFoundError("Booking not found") from None


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a car",
)
async def create_booking(
    body: BookingCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ledger: BookingLedger = Depends(get_ledger),
) -> Booking:
    """Reserve a car for ``[pickupTime, dropoffTime)``.

    Returns 404 if the car is unknown or inactive and 409 if the car is
    already booked for any part of the window.
    """
    return await ledger.create_booking(user_id, body.car_id, body.pickup_time, body.dropoff_time)


@router.get(
    "",
    response_model=list[BookingResponse],
    summary="List the current user's bookings",
)
async def list_bookings(
    user_id: uuid.UUID = Depends(get_current_user_id),
    ledger: BookingLedger = Depends(get_ledger),
) -> list[Booking]:
    return await ledger.get_user_bookings(user_id)


@router.post(
    "/availability",
    response_model=dict[str, bool],
    summary="Check availability of several cars (internal)",
)
async def check_availability(
    body: AvailabilityRequest,
    ledger: BookingLedger = Depends(get_ledger),
) -> dict[str, bool]:
    """Report, per car id, whether the car is free for the whole window.

    Used by the search service. The answer is a hint: a later booking
    request can still conflict.
    """
    requested = {car_id: uuid.UUID(car_id) for car_id in body.car_ids}
    availability = await ledger.check_availability(list(requested.values()), body.pickup_time, body.dropoff_time)
    # Keys echo the ids exactly as sent, whatever their case or format.
    return {raw: availability[parsed] for raw, parsed in requested.items()}


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get one of the current user's bookings",
)
async def get_booking(
    booking_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ledger: BookingLedger = Depends(get_ledger),
) -> Booking:
    return await ledger.get_booking_by_id(_parse_booking_id(booking_id), user_id)


@router.delete(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Cancel a booking",
)
async def cancel_booking(
    booking_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ledger: BookingLedger = Depends(get_ledger),
) -> Booking:
    """Cancel a confirmed booking. Returns the cancelled booking."""
    return await ledger.cancel_booking(_parse_booking_id(booking_id), user_id)
