"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from booking_service.auth.jwt import decode_token, user_id_from_payload
from booking_service.config import Settings
from booking_service.errors import UnauthorizedError

# auto_error=False so a missing header goes through the service's 401 body
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> uuid.UUID:
    """Extract and verify the Bearer token, then return the caller's user id.

    The token is checked against the settings the app was created with.

    Raises:
        UnauthorizedError: If the header is missing or the token is invalid or expired.
    """
    if credentials is None:
        raise UnauthorizedError("Missing or invalid authorization header")

    settings: Settings = request.app.state.settings
    try:
        payload = decode_token(credentials.credentials, settings)
        return user_id_from_payload(payload)
    except JWTError:
        raise UnauthorizedError("Invalid or expired token") from None
