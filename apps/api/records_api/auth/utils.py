"""JWT access tokens identifying the officer behind a request."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from records_api.core.config import settings

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(minutes=30)
ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    officer_id: UUID,
    station_id: Optional[UUID] = None,
    expires_in: timedelta = ACCESS_TOKEN_TTL,
) -> str:
    """
    Issue a signed access token for an officer.

    Args:
        officer_id: Officer the token identifies (``sub`` claim)
        station_id: Officer's station, if any
        expires_in: Token lifetime

    Returns:
        Encoded JWT
    """
    claims = {
        "sub": str(officer_id),
        "type": ACCESS_TOKEN_TYPE,
        "exp": datetime.now(timezone.utc) + expires_in,
        "jti": secrets.token_urlsafe(16),
    }
    if station_id:
        claims["station_id"] = str(station_id)
    return jwt.encode(claims, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Return the token's claims, or None if it is invalid, expired or not an access token."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        return None
    return claims
