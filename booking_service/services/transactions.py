"""Bounded transaction scope for ledger writes.

:func:`bounded_transaction` opens a session, starts a transaction at the
requested isolation level and guarantees commit on success and rollback on
every other exit path. It also bounds how long the unit may wait for locks
and how long it may run overall, and turns store failures into the service's
error taxonomy so callers can tell a lock timeout from a real conflict.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_service.errors import BookingServiceError, ConflictError, InternalError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATEs
_SERIALIZATION_FAILURE = "40001"
_DEADLOCK_DETECTED = "40P01"
_LOCK_NOT_AVAILABLE = "55P03"
_QUERY_CANCELED = "57014"


def classify_store_error(exc: DBAPIError) -> BookingServiceError:
    """Map a driver error to a ConflictError or InternalError."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)

    if sqlstate in (_SERIALIZATION_FAILURE, _DEADLOCK_DETECTED):
        return ConflictError(
            "Booking could not be completed due to a concurrent booking, please retry",
            code="serialization_conflict",
        )
    if sqlstate == _LOCK_NOT_AVAILABLE or "database is locked" in str(orig):
        return ConflictError(
            "Timed out waiting for the car's booking lock, please retry",
            code="lock_timeout",
        )
    if sqlstate == _QUERY_CANCELED:
        return InternalError("Booking transaction timed out", code="transaction_timeout")
    return InternalError("Booking store error", code="store_error")


@asynccontextmanager
async def bounded_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    isolation_level: str | None = None,
    lock_timeout_ms: int,
    total_timeout_seconds: float,
) -> AsyncIterator[AsyncSession]:
    """Yield a session inside a transaction that commits or rolls back as a unit."""
    try:
        async with asyncio.timeout(total_timeout_seconds):
            async with session_factory() as session:
                async with session.begin():
                    dialect = session.bind.dialect.name if session.bind is not None else ""
                    # SQLite transactions are already serialized by BEGIN IMMEDIATE.
                    options = {"isolation_level": isolation_level} if isolation_level and dialect != "sqlite" else {}
                    await session.connection(execution_options=options)
                    if dialect == "postgresql":
                        # SET does not take bind parameters; both values are ints.
                        await session.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))
                        await session.execute(
                            text(f"SET LOCAL statement_timeout = {int(total_timeout_seconds * 1000)}")
                        )
                    yield session
    except TimeoutError as exc:
        logger.warning("Booking transaction exceeded %.1fs", total_timeout_seconds)
        raise InternalError("Booking transaction timed out", code="transaction_timeout") from exc
    except DBAPIError as exc:
        error = classify_store_error(exc)
        if isinstance(error, ConflictError):
            logger.info("Booking transaction aborted: %s", error.code)
        else:
            logger.exception("Booking transaction failed")
        raise error from exc


@asynccontextmanager
async def read_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Yield a session for plain reads, mapping store failures like writes do."""
    try:
        async with session_factory() as session:
            yield session
    except DBAPIError as exc:
        logger.exception("Booking read failed")
        raise classify_store_error(exc) from exc
