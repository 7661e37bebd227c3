"""Conflict-safe car reservations: the booking ledger.

CONCURRENCY STRATEGY
====================

Problem:
  Two users book the same car for overlapping dates at the same moment.
  Both check for conflicts, both see none, both insert. The car is now
  double-booked.

Solution:
  The conflict check and the insert run as one transaction that the store
  serializes:

  1. Open a SERIALIZABLE transaction with bounded lock wait and duration.
  2. Read the car row (``FOR NO KEY UPDATE``) so concurrent bookers of the
     same car queue behind each other.
  3. SELECT overlapping non-cancelled bookings ``FOR UPDATE``.
     ``[a, b)`` and ``[c, d)`` overlap iff ``a < d AND c < b``, so a booking
     ending exactly when another starts is not a conflict.
  4. Abort with ConflictError if anything overlaps, otherwise insert and commit.

  On SQLite every transaction begins with ``BEGIN IMMEDIATE`` (see
  ``database.py``), which gives the same serialization with a database lock.

  There are no in-process locks: they would not protect a second instance.
  Serialization failures are reported as 409 and left to the caller to retry.

Availability checks use the same overlap predicate without locking. They are
a hint for search results, not a reservation.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_service.database import utc_now
from booking_service.errors import ConflictError, NotFoundError, ValidationError
from booking_service.models.booking import Booking, BookingStatus
from booking_service.services.car_lookup import ActiveCar, CarLookup
from booking_service.services.notifications import NotificationDispatcher
from booking_service.services.pricing import compute_total_price
from booking_service.services.transactions import bounded_transaction, read_session

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_MS = 5000
DEFAULT_TRANSACTION_TIMEOUT_SECONDS = 10.0

_CANCELLABLE = [status for status in BookingStatus if status.can_transition_to(BookingStatus.CANCELLED)]


def _overlaps(pickup_time: datetime, dropoff_time: datetime):
    """SQL predicate: booking interval intersects ``[pickup_time, dropoff_time)``."""
    return (Booking.pickup_time < dropoff_time) & (Booking.dropoff_time > pickup_time)


def _validate_window(pickup_time: datetime, dropoff_time: datetime) -> None:
    if pickup_time.tzinfo is None or dropoff_time.tzinfo is None:
        raise ValidationError("Pickup and dropoff times must include a timezone")
    if dropoff_time <= pickup_time:
        raise ValidationError("Dropoff time must be after pickup time")


async def _reload(session: AsyncSession, booking_id: uuid.UUID) -> Booking:
    """Re-read a booking with its car so it can be used after the session closes."""
    result = await session.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


class BookingLedger:
    """Owns every write to the bookings table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        car_lookup: CarLookup,
        notifications: NotificationDispatcher,
        *,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        transaction_timeout_seconds: float = DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._car_lookup = car_lookup
        self._notifications = notifications
        self._lock_timeout_ms = lock_timeout_ms
        self._transaction_timeout_seconds = transaction_timeout_seconds

    def _transaction(self, isolation_level: str | None = None):
        return bounded_transaction(
            self._session_factory,
            isolation_level=isolation_level,
            lock_timeout_ms=self._lock_timeout_ms,
            total_timeout_seconds=self._transaction_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_booking(
        self,
        user_id: uuid.UUID,
        car_id: uuid.UUID,
        pickup_time: datetime,
        dropoff_time: datetime,
    ) -> Booking:
        """Reserve ``car_id`` for ``[pickup_time, dropoff_time)``.

        Raises:
            ValidationError: Times are naive, out of order, or pickup is not in the
                future, or the total exceeds the largest storable price.
            NotFoundError: The car does not exist or is inactive.
            ConflictError: The car is already booked for part of the window, or
                the store could not serialize this booking against a concurrent one.
            InternalError: The store failed or the transaction ran out of time.
        """
        _validate_window(pickup_time, dropoff_time)
        if pickup_time <= datetime.now(timezone.utc):
            raise ValidationError("Pickup time must be in the future")

        car: ActiveCar | None = None
        if not self._car_lookup.in_transaction:
            # Remote lookup happens before any lock is taken.
            car = await self._car_lookup.get_active_car(car_id)
            if car is None:
                raise NotFoundError("Car not found or inactive", code="car_not_found")

        async with self._transaction("SERIALIZABLE") as session:
            if car is None:
                car = await self._car_lookup.get_active_car(car_id, session)
                if car is None:
                    raise NotFoundError("Car not found or inactive", code="car_not_found")

            total_price = compute_total_price(pickup_time, dropoff_time, car.price_per_day)

            conflicts = await session.execute(
                select(Booking.id)
                .where(
                    Booking.car_id == car_id,
                    Booking.status != BookingStatus.CANCELLED,
                    _overlaps(pickup_time, dropoff_time),
                )
                .with_for_update()
            )
            if conflicts.first() is not None:
                logger.info(
                    "Booking conflict for car %s between %s and %s",
                    car_id,
                    pickup_time.isoformat(),
                    dropoff_time.isoformat(),
                )
                raise ConflictError("Car not available for selected dates")

            booking = Booking(
                user_id=user_id,
                car_id=car_id,
                pickup_time=pickup_time,
                dropoff_time=dropoff_time,
                total_price=total_price,
                status=BookingStatus.CONFIRMED,
            )
            session.add(booking)
            await session.flush()
            booking = await _reload(session, booking.id)

        logger.info(
            "Booking %s created: car=%s user=%s total=%s",
            booking.id,
            car_id,
            user_id,
            booking.total_price,
        )
        self._notifications.dispatch("confirmed", user_id, booking.id, car.name)
        return booking

    async def cancel_booking(self, booking_id: uuid.UUID, user_id: uuid.UUID) -> Booking:
        """Flip a confirmed booking owned by ``user_id`` to cancelled.

        Missing, foreign and non-confirmed bookings all raise the same
        NotFoundError so callers cannot probe other users' bookings.
        """
        async with self._transaction() as session:
            # Conditional UPDATE: only one of two concurrent cancels matches.
            result = await session.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.user_id == user_id,
                    Booking.status.in_(_CANCELLABLE),
                )
                .values(status=BookingStatus.CANCELLED, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundError("Booking not found or cannot be cancelled")

            booking = await _reload(session, booking_id)

        logger.info("Booking %s cancelled by user %s", booking_id, user_id)
        car_name = booking.car.name if booking.car is not None else str(booking.car_id)
        self._notifications.dispatch("cancelled", user_id, booking.id, car_name)
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_user_bookings(self, user_id: uuid.UUID) -> list[Booking]:
        """All of a user's bookings, newest first."""
        async with read_session(self._session_factory) as session:
            result = await session.execute(
                select(Booking)
                .where(Booking.user_id == user_id)
                .order_by(Booking.created_at.desc(), Booking.id)
            )
            return list(result.scalars().all())

    async def get_booking_by_id(self, booking_id: uuid.UUID, user_id: uuid.UUID) -> Booking:
        async with read_session(self._session_factory) as session:
            result = await session.execute(
                select(Booking).where(Booking.id == booking_id, Booking.user_id == user_id)
            )
            booking = result.scalar_one_or_none()

        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def check_availability(
        self,
        car_ids: list[uuid.UUID],
        pickup_time: datetime,
        dropoff_time: datetime,
    ) -> dict[uuid.UUID, bool]:
        """Map each car id to whether it is free for the whole window.

        Non-locking; a True here does not reserve anything.
        """
        if not car_ids:
            return {}
        _validate_window(pickup_time, dropoff_time)

        unique_ids = list(dict.fromkeys(car_ids))
        async with read_session(self._session_factory) as session:
            result = await session.execute(
                select(Booking.car_id)
                .where(
                    Booking.car_id.in_(unique_ids),
                    Booking.status != BookingStatus.CANCELLED,
                    _overlaps(pickup_time, dropoff_time),
                )
                .distinct()
            )
            unavailable = set(result.scalars().all())

        return {car_id: car_id not in unavailable for car_id in unique_ids}

    async def wait_for_notifications(self) -> None:
        await self._notifications.drain()

