"""Best-effort booking notifications.

The ledger never waits on a notification and never fails because of one:
:class:`NotificationDispatcher` schedules each send as a background task and
logs whatever goes wrong.
"""

import asyncio
import logging
import uuid
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)

BookingEvent = Literal["confirmed", "cancelled"]


class Notifier(Protocol):
    async def notify(
        self, event: BookingEvent, user_id: uuid.UUID, booking_id: uuid.UUID, car_name: str
    ) -> None: ...


class HttpNotifier:
    """Post booking events to the notification service."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def notify(
        self, event: BookingEvent, user_id: uuid.UUID, booking_id: uuid.UUID, car_name: str
    ) -> None:
        response = await self._client.post(
            "/notifications/bookings",
            json={
                "event": event,
                "userId": str(user_id),
                "bookingId": str(booking_id),
                "carName": car_name,
            },
        )
        response.raise_for_status()


class LoggingNotifier:
    """Stand-in used when no notification service is configured."""

    async def notify(
        self, event: BookingEvent, user_id: uuid.UUID, booking_id: uuid.UUID, car_name: str
    ) -> None:
        logger.info(
            "Notification (%s) for user %s: booking %s for %s",
            event,
            user_id,
            booking_id,
            car_name,
        )


class NotificationDispatcher:
    """Run notifier calls in the background and swallow their failures."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, event: BookingEvent, user_id: uuid.UUID, booking_id: uuid.UUID, car_name: str) -> None:
        task = asyncio.create_task(self._send(event, user_id, booking_id, car_name))
        # Hold a reference until done; the event loop only keeps weak ones.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, event: BookingEvent, user_id: uuid.UUID, booking_id: uuid.UUID, car_name: str) -> None:
        try:
            await self._notifier.notify(event, user_id, booking_id, car_name)
        except Exception:
            logger.warning(
                "Failed to send %s notification for booking %s",
                event,
                booking_id,
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for every in-flight notification to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
