"""Car lookup: where the ledger learns a car's status and price.

Two implementations share the :class:`CarLookup` protocol:

- :class:`DatabaseCarLookup` reads the shared ``cars`` table inside the
  booking transaction, so the price and active flag come from the same
  snapshot as the conflict check.
- :class:`HttpCarLookup` asks the car service over HTTP. It runs *before*
  the booking transaction opens so no row lock is held across a network
  round trip.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_service.errors import InternalError
from booking_service.models.car import Car

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveCar:
    """The slice of a catalog car the ledger needs."""

    id: uuid.UUID
    name: str
    price_per_day: Decimal


class CarLookup(Protocol):
    # True when get_active_car must run inside the booking transaction.
    in_transaction: bool

    async def get_active_car(
        self, car_id: uuid.UUID, session: AsyncSession | None = None
    ) -> ActiveCar | None: ...


class DatabaseCarLookup:
    """Point lookup on the ``cars`` table using the caller's transaction."""

    in_transaction = True

    async def get_active_car(
        self, car_id: uuid.UUID, session: AsyncSession | None = None
    ) -> ActiveCar | None:
        if session is None:
            raise RuntimeError("DatabaseCarLookup requires the booking transaction's session")

        # FOR NO KEY UPDATE: serializes bookers of the same car without
        # blocking foreign-key checks; a no-op on SQLite.
        result = await session.execute(
            select(Car)
            .where(Car.id == car_id, Car.is_active.is_(True))
            .with_for_update(key_share=True)
        )
        car = result.scalar_one_or_none()
        if car is None:
            return None
        return ActiveCar(id=car.id, name=car.name, price_per_day=car.price_per_day)


class HttpCarLookup:
    """Fetch cars from the car service's ``GET /cars/{id}`` endpoint."""

    in_transaction = False

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get_active_car(
        self, car_id: uuid.UUID, session: AsyncSession | None = None
    ) -> ActiveCar | None:
        try:
            response = await self._client.get(f"/cars/{car_id}")
        except httpx.HTTPError as exc:
            logger.warning("Car service request for %s failed: %s", car_id, exc)
            raise InternalError("Car lookup failed", code="car_lookup_failed") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.is_error:
            logger.warning("Car service returned %s for car %s", response.status_code, car_id)
            raise InternalError("Car lookup failed", code="car_lookup_failed")

        body = response.json()
        # The car service wraps payloads as {"success": true, "data": {...}}.
        data = body.get("data", body) if isinstance(body, dict) else None
        if not data or not data.get("isActive", True):
            return None

        try:
            return ActiveCar(
                id=uuid.UUID(str(data["id"])),
                name=str(data["name"]),
                price_per_day=Decimal(str(data["pricePerDay"])),
            )
        except (KeyError, ValueError, ArithmeticError) as exc:
            logger.warning("Car service returned an unexpected payload for %s: %r", car_id, data)
            raise InternalError("Car lookup failed", code="car_lookup_failed") from exc
