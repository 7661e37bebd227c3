"""Booking service — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from booking_service.api.bookings import router as bookings_router
from booking_service.config import Settings, get_settings
from booking_service.database import create_engine, create_session_factory
from booking_service.errors import register_exception_handlers
from booking_service.services.booking_ledger import BookingLedger
from booking_service.services.car_lookup import CarLookup, DatabaseCarLookup, HttpCarLookup
from booking_service.services.notifications import HttpNotifier, LoggingNotifier, NotificationDispatcher, Notifier

logger = logging.getLogger(__name__)


async def _build_collaborators(settings: Settings, stack: AsyncExitStack) -> tuple[CarLookup, Notifier]:
    car_lookup: CarLookup = DatabaseCarLookup()
    if settings.car_lookup_mode == "http":
        car_client = await stack.enter_async_context(
            httpx.AsyncClient(base_url=settings.car_service_url, timeout=settings.car_service_timeout_seconds)
        )
        car_lookup = HttpCarLookup(car_client)

    notifier: Notifier = LoggingNotifier()
    if settings.notification_service_url:
        notification_client = await stack.enter_async_context(
            httpx.AsyncClient(
                base_url=settings.notification_service_url,
                timeout=settings.notification_timeout_seconds,
            )
        )
        notifier = HttpNotifier(notification_client)

    return car_lookup, notifier


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the store handle and the ledger on startup; release them on shutdown."""
    settings: Settings = app.state.settings
    engine = create_engine(settings)

    async with AsyncExitStack() as stack:
        car_lookup, notifier = await _build_collaborators(settings, stack)
        ledger = BookingLedger(
            create_session_factory(engine),
            car_lookup,
            NotificationDispatcher(notifier),
            lock_timeout_ms=settings.booking_lock_timeout_ms,
            transaction_timeout_seconds=settings.booking_transaction_timeout_seconds,
        )
        app.state.ledger = ledger
        logger.info(
            "%s %s started (car lookup: %s, environment: %s)",
            settings.app_name,
            settings.app_version,
            settings.car_lookup_mode,
            settings.environment,
        )
        try:
            yield
        finally:
            # Let queued notifications go out before their HTTP client closes.
            await ledger.wait_for_notifications()

    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Conflict-safe car reservations for the car rental marketplace.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app, settings)
    app.include_router(bookings_router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "booking-service"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("booking_service.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
