from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from records_api.auth.utils import decode_access_token
from records_api.core.errors import UnauthorizedError

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentOfficer:
    """Authenticated officer making the request."""

    officer_id: UUID
    station_id: Optional[UUID] = None


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def get_current_officer(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentOfficer:
    """Resolve the officer from the bearer token; who may import is decided upstream."""
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    if not claims:
        raise UnauthorizedError("Invalid token")

    officer_id = _parse_uuid(claims.get("sub"))
    if not officer_id:
        raise UnauthorizedError("Invalid token payload")

    # Picked up by the request logging middleware
    request.state.officer_id = officer_id
    return CurrentOfficer(
        officer_id=officer_id,
        station_id=_parse_uuid(claims.get("station_id")),
    )
