"""Shared API dependencies for the routers.

The ledger is built once at startup (see ``main.lifespan``) and stored on
``app.state``; routers receive it through :func:`get_ledger`::

    from booking_service.api.deps import get_current_user_id, get_ledger
"""

from fastapi import Request

from booking_service.auth.dependencies import get_current_user_id
from booking_service.services.booking_ledger import BookingLedger


def get_ledger(request: Request) -> BookingLedger:
    return request.app.state.ledger


__all__ = [
    "get_current_user_id",
    "get_ledger",
]
