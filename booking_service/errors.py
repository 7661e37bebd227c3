"""Error taxonomy and the FastAPI handlers that render it.

Every domain error carries an HTTP status, a stable machine-readable ``code``
and a human-readable message. Routers never catch these; the handlers
registered by :func:`register_exception_handlers` turn them into
``{"error": {"code": ..., "message": ...}}`` responses.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booking_service.config import Settings

logger = logging.getLogger(__name__)


class BookingServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, message: str, *, code: str | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class ValidationError(BookingServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class UnauthorizedError(BookingServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class NotFoundError(BookingServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(BookingServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "booking_conflict"


class InternalError(BookingServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"


def error_body(code: str, message: str, details: Any = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"error": error}


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Install handlers mapping domain and framework errors to JSON responses."""
    show_details = not settings.is_production

    async def handle_service_error(request: Request, exc: BookingServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, exc.message, exc.details if show_details else None),
            headers=headers,
        )

    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("validation_error", message, errors),
        )

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "not_found" if exc.status_code == status.HTTP_404_NOT_FOUND else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("internal_error", "Internal server error", str(exc) if show_details else None),
        )

    app.add_exception_handler(BookingServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
