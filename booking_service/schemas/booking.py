"""Pydantic v2 request/response schemas for booking endpoints.

Field names are snake_case in Python and camelCase on the wire
(``carId``, ``pickupTime``...), matching the rest of the marketplace APIs.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from booking_service.models.booking import BookingStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(CamelModel):
    """Schema for creating a new booking."""

    car_id: uuid.UUID
    pickup_time: AwareDatetime
    dropoff_time: AwareDatetime

    @model_validator(mode="after")
    def check_times(self) -> "BookingCreate":
        """Validate that dropoff is strictly after pickup."""
        if self.dropoff_time <= self.pickup_time:
            raise ValueError("Dropoff time must be after pickup time")
        return self


class AvailabilityRequest(CamelModel):
    """Bulk availability query used by the search service."""

    # Kept as the caller wrote them; the response is keyed by these strings.
    car_ids: list[str] = Field(default_factory=list)
    pickup_time: AwareDatetime
    dropoff_time: AwareDatetime

    @field_validator("car_ids")
    @classmethod
    def check_car_ids(cls, value: list[str]) -> list[str]:
        for car_id in value:
            try:
                uuid.UUID(car_id)
            except ValueError:
                raise ValueError(f"Invalid car id: {car_id!r}") from None
        return value

    @model_validator(mode="after")
    def check_times(self) -> "AvailabilityRequest":
        if self.dropoff_time <= self.pickup_time:
            raise ValueError("Dropoff time must be after pickup time")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CarSummary(CamelModel):
    """Minimal car display fields embedded in booking responses."""

    id: uuid.UUID
    name: str
    image: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(CamelModel):
    """Booking returned from every booking endpoint."""

    id: uuid.UUID
    user_id: uuid.UUID
    car_id: uuid.UUID
    pickup_time: datetime
    dropoff_time: datetime
    total_price: Decimal
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
    car: CarSummary | None = None

    model_config = ConfigDict(from_attributes=True)
