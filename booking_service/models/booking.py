"""A car reservation over a half-open time interval."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Enum, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_service.database import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class BookingStatus(str, enum.Enum):
    """Booking lifecycle states.

    ``confirmed`` is the only state with outgoing transitions; ``cancelled``
    and ``completed`` are terminal.
    """

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    def can_transition_to(self, target: "BookingStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A reservation of one car by one user for ``[pickup_time, dropoff_time)``."""

    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    # Cars belong to the catalog service. No FK so the ledger also works
    # when the catalog lives in another database (HttpCarLookup).
    car_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    pickup_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    dropoff_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=BookingStatus.CONFIRMED,
        nullable=False,
    )

    car: Mapped["Car"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        primaryjoin="foreign(Booking.car_id) == Car.id",
        lazy="selectin",
        viewonly=True,
    )

    __table_args__ = (
        CheckConstraint("dropoff_time > pickup_time", name="check_booking_dropoff_after_pickup"),
        CheckConstraint("total_price >= 0", name="check_booking_total_price_non_negative"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        Index("ix_bookings_car_window", "car_id", "pickup_time", "dropoff_time"),
        Index("ix_bookings_car_status", "car_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, car_id={self.car_id}, user_id={self.user_id}, status={self.status})>"
