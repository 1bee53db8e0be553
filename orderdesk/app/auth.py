# auth.py

"""Bearer token authentication for dashboard staff.

Tokens are issued by the external identity provider; this module only
verifies them and turns the claims into a :class:`Principal`. The tenant
role is not part of the token: it is looked up per restaurant when an order
is touched.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from config import get_settings

from .utils.responses import ApiError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60

bearer_scheme = HTTPBearer(auto_error=False)


class Principal(BaseModel):
    """Authenticated staff user."""

    user_id: str
    email: Optional[str] = None

    @property
    def actor(self) -> str:
        """Identity recorded on audit events."""
        return self.user_id


def create_access_token(
    user_id: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Return a signed JWT for ``user_id``."""

    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims: dict = {"sub": user_id, "exp": expire}
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Principal:
    """Validate ``token`` and return its principal.

    Raises :class:`ApiError` (401) for expired, malformed or unsigned tokens.
    """

    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.PyJWTError as exc:
        logger.info("rejected bearer token: %s", exc.__class__.__name__)
        raise ApiError(401, "UNAUTHORIZED") from exc
    user_id = payload.get("sub")
    if not user_id:
        raise ApiError(401, "UNAUTHORIZED")
    return Principal(user_id=str(user_id), email=payload.get("email"))


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Resolve the principal from the ``Authorization`` header."""

    if credentials is None or not credentials.credentials:
        raise ApiError(401, "UNAUTHORIZED")
    return decode_token(credentials.credentials)


async def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal | None:
    """Like :func:`get_current_principal` but returns ``None`` instead of 401.

    Used where an unauthenticated caller must get the same answer as a
    caller without access.
    """

    if credentials is None or not credentials.credentials:
        return None
    try:
        return decode_token(credentials.credentials)
    except ApiError:
        return None


__all__ = [
    "Principal",
    "create_access_token",
    "decode_token",
    "get_current_principal",
    "get_optional_principal",
]
