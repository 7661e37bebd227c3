"""Verification of access tokens issued by the auth service."""

import uuid

from jose import JWTError, jwt

from booking_service.config import Settings


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and verify a JWT token.

    Args:
        token: Encoded JWT string.
        settings: Settings holding the secret shared with the auth service.

    Returns:
        Decoded payload dictionary.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def user_id_from_payload(payload: dict) -> uuid.UUID:
    """Return the caller id from a verified payload.

    The auth service puts the user id in ``sub``; older tokens carry it as
    ``userId``.

    Raises:
        jose.JWTError: If neither claim holds a UUID.
    """
    raw = payload.get("sub") or payload.get("userId")
    if not raw:
        raise JWTError("Token has no subject")
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise JWTError("Token subject is not a user id") from None
