"""Read-only view of the catalog service's cars table."""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from booking_service.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Car(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A rentable car. Written by the catalog service, only read here."""

    __tablename__ = "cars"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    images: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    @property
    def image(self) -> str | None:
        """Cover image shown in booking listings (the first catalog image)."""
        return self.images[0] if self.images else None

    def __repr__(self) -> str:
        return f"<Car(id={self.id}, name={self.name!r}, active={self.is_active})>"
