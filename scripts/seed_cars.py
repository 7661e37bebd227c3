"""Seed the cars table with sample vehicles for local development.

In a full deployment the car service owns this table; the booking service only
reads it. Use this when running the booking service on its own.

Run from the repository root:
    python -m scripts.seed_cars
"""

import asyncio
import logging
from decimal import Decimal
from urllib.parse import quote

from sqlalchemy import select

import booking_service.models  # noqa: F401
from booking_service.config import settings
from booking_service.database import Base, create_engine, create_session_factory
from booking_service.models.car import Car

logger = logging.getLogger(__name__)

CARS = [
    {"name": "Tesla Model 3", "price_per_day": Decimal("120.00")},
    {"name": "Toyota Camry", "price_per_day": Decimal("65.00")},
    {"name": "Nissan Rogue", "price_per_day": Decimal("75.00")},
    {"name": "Honda Civic", "price_per_day": Decimal("55.00")},
    {"name": "Ford Mustang", "price_per_day": Decimal("140.00")},
    {"name": "Hyundai Ioniq 5", "price_per_day": Decimal("110.00")},
]


def _images(name: str) -> list[str]:
    label = quote(name)
    return [
        f"https://via.placeholder.com/800x600/4F46E5/FFFFFF?text={label}",
        f"https://via.placeholder.com/800x600/7C3AED/FFFFFF?text={label}+Interior",
    ]


async def seed() -> None:
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        async with session.begin():
            existing = set((await session.execute(select(Car.name))).scalars().all())
            created = 0
            for car_data in CARS:
                if car_data["name"] in existing:
                    continue
                session.add(Car(**car_data, images=_images(car_data["name"]), is_active=True))
                created += 1

    logger.info("Seeded %d cars (%d already present)", created, len(CARS) - created)
    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(seed())
